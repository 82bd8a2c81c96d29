"""Option quote loading and normalization.

Input records arrive in a flat long format, one row per option:

    date, expiration, strike, optionType, bid, ask

Dates may be text in a fixed format per column. Normalization parses them,
maps option type spellings onto ``C``/``P``, derives the midquote and the
time to expiry, and validates the chain invariants.
"""

from datetime import date
from pathlib import Path
from typing import Optional

import polars as pl

from vix_engine.config import DAYS_PER_YEAR
from vix_engine.errors import InvalidQuoteError


# =============================================================================
# Raw column names (input contract)
# =============================================================================

class RawCols:
    """Column names of the flat quote records consumed by the engine."""

    DATE = "date"
    EXPIRATION = "expiration"
    STRIKE = "strike"
    OPTION_TYPE = "optionType"
    BID = "bid"
    ASK = "ask"

    REQUIRED = [DATE, EXPIRATION, STRIKE, OPTION_TYPE, BID, ASK]


class WideCols:
    """Wide format: one row per strike carrying both call and put quotes."""

    QUOTE_DATE = "quote_date"
    EXPIRATION = "expiration"
    STRIKE = "strike"
    C_BID = "c_bid"
    C_ASK = "c_ask"
    P_BID = "p_bid"
    P_ASK = "p_ask"


# =============================================================================
# Logical column names (clean names for our processing)
# =============================================================================

class Cols:
    """Clean column names for normalized and derived data."""

    # Keys
    QUOTE_DATE = "quote_date"
    EXPIRATION = "expiration"
    STRIKE = "strike"
    OPTION_TYPE = "option_type"

    # Time to expiry
    DTE = "dte"
    T_YEARS = "t_years"

    # Quote
    BID = "bid"
    ASK = "ask"
    MID = "mid"

    # Derived by the engine
    FORWARD = "forward"
    K0 = "k0"
    DELTA_K = "delta_k"
    CONTRIBUTION = "contribution"
    SIGMA2 = "sigma2"


class OptionType:
    CALL = "C"
    PUT = "P"


# One chain per (date, expiration); one wing per (date, expiration, type)
EXPIRY_KEYS = [Cols.QUOTE_DATE, Cols.EXPIRATION]
WING_KEYS = [Cols.QUOTE_DATE, Cols.EXPIRATION, Cols.OPTION_TYPE]
QUOTE_KEYS = [Cols.QUOTE_DATE, Cols.EXPIRATION, Cols.OPTION_TYPE, Cols.STRIKE]

DEFAULT_DATE_FORMAT = "%Y-%m-%d"


# =============================================================================
# Parsing helpers
# =============================================================================

def _date_expr(col_name: str, dtype: pl.DataType, fmt: str, alias: str) -> pl.Expr:
    """Parse a date column; Date and Datetime columns pass through."""
    if dtype == pl.Date:
        return pl.col(col_name).alias(alias)
    if isinstance(dtype, pl.Datetime):
        return pl.col(col_name).dt.date().alias(alias)
    return (
        pl.col(col_name)
        .cast(pl.Utf8)
        .str.strip_chars()
        .str.to_date(fmt, strict=False)
        .alias(alias)
    )


def _float_expr(col_name: str, dtype: pl.DataType, alias: str) -> pl.Expr:
    """Cast a price column to Float64; unparseable text becomes null."""
    expr = pl.col(col_name)
    if dtype == pl.Utf8:
        expr = expr.str.strip_chars()
    return expr.cast(pl.Float64, strict=False).alias(alias)


def _option_type_expr(col_name: str) -> pl.Expr:
    """Map C/Call/P/Put (any case) onto OptionType; anything else is null."""
    raw = pl.col(col_name).cast(pl.Utf8).str.strip_chars().str.to_uppercase()
    return (
        pl.when(raw.is_in(["C", "CALL"]))
        .then(pl.lit(OptionType.CALL))
        .when(raw.is_in(["P", "PUT"]))
        .then(pl.lit(OptionType.PUT))
        .otherwise(pl.lit(None, dtype=pl.Utf8))
        .alias(Cols.OPTION_TYPE)
    )


# =============================================================================
# Normalization
# =============================================================================

def parse_quotes(
    raw: pl.DataFrame,
    date_format: str = DEFAULT_DATE_FORMAT,
    expiration_format: Optional[str] = None,
) -> pl.DataFrame:
    """Parse raw quote records into canonical columns.

    Rows without a usable bid or ask (null/NaN) are dropped as unquoted.
    Per-row consistency is not checked here; see validate_quotes.

    Args:
        raw: DataFrame with RawCols.REQUIRED columns
        date_format: strptime format of the trade date column
        expiration_format: strptime format of the expiration column
                           (defaults to date_format)

    Returns:
        DataFrame with Cols quote columns plus mid, dte and t_years

    Raises:
        InvalidQuoteError: If required columns are missing or a trade date
                           cannot be parsed
    """
    missing = [c for c in RawCols.REQUIRED if c not in raw.columns]
    if missing:
        raise InvalidQuoteError(f"Missing required columns: {missing}")

    if expiration_format is None:
        expiration_format = date_format

    schema = raw.schema
    df = raw.select([
        _date_expr(RawCols.DATE, schema[RawCols.DATE], date_format, Cols.QUOTE_DATE),
        _date_expr(RawCols.EXPIRATION, schema[RawCols.EXPIRATION], expiration_format, Cols.EXPIRATION),
        _float_expr(RawCols.STRIKE, schema[RawCols.STRIKE], Cols.STRIKE),
        _option_type_expr(RawCols.OPTION_TYPE),
        _float_expr(RawCols.BID, schema[RawCols.BID], Cols.BID),
        _float_expr(RawCols.ASK, schema[RawCols.ASK], Cols.ASK),
    ])

    n_bad_dates = df[Cols.QUOTE_DATE].null_count()
    if n_bad_dates > 0:
        raise InvalidQuoteError(
            f"{n_bad_dates} rows have a trade date not matching format {date_format!r}"
        )

    # Unquoted rows carry no price information
    df = df.filter(
        pl.col(Cols.BID).is_not_null()
        & pl.col(Cols.ASK).is_not_null()
        & pl.col(Cols.BID).is_not_nan()
        & pl.col(Cols.ASK).is_not_nan()
    )

    df = df.with_columns(
        ((pl.col(Cols.BID) + pl.col(Cols.ASK)) / 2).alias(Cols.MID),
        (pl.col(Cols.EXPIRATION) - pl.col(Cols.QUOTE_DATE))
        .dt.total_days()
        .cast(pl.Int32)
        .alias(Cols.DTE),
    )

    return df.with_columns(
        (pl.col(Cols.DTE) / DAYS_PER_YEAR).alias(Cols.T_YEARS),
    )


def validate_quotes(chain: pl.DataFrame) -> pl.DataFrame:
    """Check chain invariants on parsed quotes.

    Args:
        chain: Output of parse_quotes (one or more trade dates)

    Returns:
        The same chain, unchanged

    Raises:
        InvalidQuoteError: Listing every violated invariant
    """
    problems = []

    n_no_exp = chain[Cols.EXPIRATION].null_count()
    if n_no_exp:
        problems.append(f"{n_no_exp} rows with unparseable expiration")

    expired = chain.filter(pl.col(Cols.EXPIRATION) < pl.col(Cols.QUOTE_DATE))
    if len(expired) > 0:
        first = expired.row(0, named=True)
        problems.append(
            f"{len(expired)} rows expire before the trade date "
            f"(e.g. expiration {first[Cols.EXPIRATION]} < date {first[Cols.QUOTE_DATE]})"
        )

    n_bad_strike = chain.filter(
        pl.col(Cols.STRIKE).is_null()
        | pl.col(Cols.STRIKE).is_nan()
        | (pl.col(Cols.STRIKE) <= 0)
    ).height
    if n_bad_strike:
        problems.append(f"{n_bad_strike} rows with missing or non-positive strike")

    n_bad_type = chain[Cols.OPTION_TYPE].null_count()
    if n_bad_type:
        problems.append(f"{n_bad_type} rows with unknown option type")

    n_neg_bid = chain.filter(pl.col(Cols.BID) < 0).height
    if n_neg_bid:
        problems.append(f"{n_neg_bid} rows with negative bid")

    n_crossed = chain.filter(pl.col(Cols.ASK) < pl.col(Cols.BID)).height
    if n_crossed:
        problems.append(f"{n_crossed} rows with ask below bid")

    n_dupes = chain.select(QUOTE_KEYS).is_duplicated().sum()
    if n_dupes:
        problems.append(f"{n_dupes} rows share a (date, expiration, type, strike) key")

    if problems:
        raise InvalidQuoteError("; ".join(problems))

    return chain


def normalize_quotes(
    raw: pl.DataFrame,
    date_format: str = DEFAULT_DATE_FORMAT,
    expiration_format: Optional[str] = None,
) -> pl.DataFrame:
    """Parse, validate and sort raw quote records.

    Returns:
        Normalized chain sorted by (date, expiration, type, strike)

    Raises:
        InvalidQuoteError: On any malformed or inconsistent quote
    """
    chain = parse_quotes(raw, date_format=date_format, expiration_format=expiration_format)
    return validate_quotes(chain).sort(QUOTE_KEYS)


def normalize_day_quotes(
    raw: pl.DataFrame,
    quote_date: date,
    date_format: str = DEFAULT_DATE_FORMAT,
    expiration_format: Optional[str] = None,
) -> pl.DataFrame:
    """Normalize the quotes of a single trade date out of a multi-date set.

    Only the selected date is validated, so malformed rows on other dates
    do not prevent inspecting it.

    Returns:
        Normalized chain for quote_date (empty if the date is absent)

    Raises:
        InvalidQuoteError: On a malformed quote for quote_date, or a trade
                           date anywhere that cannot be parsed
    """
    quotes = parse_quotes(raw, date_format=date_format, expiration_format=expiration_format)
    day = quotes.filter(pl.col(Cols.QUOTE_DATE) == quote_date)
    return validate_quotes(day).sort(QUOTE_KEYS)


def melt_wide_quotes(wide: pl.DataFrame) -> pl.DataFrame:
    """Convert wide rows (call and put side by side) into flat records.

    Args:
        wide: DataFrame with WideCols columns

    Returns:
        DataFrame with RawCols.REQUIRED columns, two rows per input row
    """
    def _side(option_type: str, bid_col: str, ask_col: str) -> pl.DataFrame:
        return wide.select([
            pl.col(WideCols.QUOTE_DATE).alias(RawCols.DATE),
            pl.col(WideCols.EXPIRATION).alias(RawCols.EXPIRATION),
            pl.col(WideCols.STRIKE).alias(RawCols.STRIKE),
            pl.lit(option_type).alias(RawCols.OPTION_TYPE),
            pl.col(bid_col).alias(RawCols.BID),
            pl.col(ask_col).alias(RawCols.ASK),
        ])

    calls = _side(OptionType.CALL, WideCols.C_BID, WideCols.C_ASK)
    puts = _side(OptionType.PUT, WideCols.P_BID, WideCols.P_ASK)
    return pl.concat([calls, puts])


# =============================================================================
# Loading functions
# =============================================================================

def scan_quotes_csv(csv_path: Path) -> pl.LazyFrame:
    """Scan a flat quotes CSV lazily, keeping dates as text.

    Args:
        csv_path: Path to a CSV with RawCols.REQUIRED columns

    Returns:
        LazyFrame with the raw columns
    """
    return pl.scan_csv(
        csv_path,
        schema_overrides={
            RawCols.DATE: pl.Utf8,
            RawCols.EXPIRATION: pl.Utf8,
            RawCols.OPTION_TYPE: pl.Utf8,
        },
    ).select(RawCols.REQUIRED)


def load_quotes_csv(csv_path: Path) -> pl.DataFrame:
    """Load a flat quotes CSV into memory."""
    return scan_quotes_csv(csv_path).collect()


def get_unique_quote_dates(chain: pl.DataFrame) -> list:
    """Sorted list of trade dates present in a normalized chain."""
    return chain[Cols.QUOTE_DATE].unique().sort().to_list()
