"""IO modules for quote loading.

- quotes: Flat quote records, normalization and CSV loading
"""

from vix_engine.io.quotes import (
    RawCols,
    WideCols,
    Cols,
    OptionType,
    parse_quotes,
    validate_quotes,
    normalize_quotes,
    normalize_day_quotes,
    melt_wide_quotes,
    scan_quotes_csv,
    load_quotes_csv,
    get_unique_quote_dates,
)

__all__ = [
    "RawCols",
    "WideCols",
    "Cols",
    "OptionType",
    "parse_quotes",
    "validate_quotes",
    "normalize_quotes",
    "normalize_day_quotes",
    "melt_wide_quotes",
    "scan_quotes_csv",
    "load_quotes_csv",
    "get_unique_quote_dates",
]
