"""Tests for quote loading and normalization."""

from datetime import date

import pytest
import polars as pl

from vix_engine.errors import InvalidQuoteError
from vix_engine.io.quotes import (
    Cols,
    RawCols,
    WideCols,
    get_unique_quote_dates,
    load_quotes_csv,
    melt_wide_quotes,
    normalize_day_quotes,
    normalize_quotes,
    parse_quotes,
)


def _raw(**overrides) -> pl.DataFrame:
    data = {
        RawCols.DATE: ["2021-07-09", "2021-07-09"],
        RawCols.EXPIRATION: ["2021-08-07", "2021-08-07"],
        RawCols.STRIKE: [100.0, 100.0],
        RawCols.OPTION_TYPE: ["C", "P"],
        RawCols.BID: [2.0, 1.5],
        RawCols.ASK: [2.5, 2.0],
    }
    data.update(overrides)
    return pl.DataFrame(data)


class TestParseQuotes:
    """Tests for parsing raw records."""

    def test_derived_columns(self):
        """Test mid, days and years to expiry."""
        df = parse_quotes(_raw())

        assert df[Cols.QUOTE_DATE][0] == date(2021, 7, 9)
        assert df[Cols.EXPIRATION][0] == date(2021, 8, 7)
        assert df[Cols.DTE].to_list() == [29, 29]
        assert df[Cols.T_YEARS][0] == pytest.approx(29 / 365)
        assert df[Cols.MID].to_list() == [2.25, 1.75]

    def test_custom_date_formats(self):
        """Test independent trade date and expiration formats."""
        raw = _raw(**{
            RawCols.DATE: ["07/09/2021", "07/09/2021"],
            RawCols.EXPIRATION: ["20210807", "20210807"],
        })
        df = parse_quotes(raw, date_format="%m/%d/%Y", expiration_format="%Y%m%d")

        assert df[Cols.QUOTE_DATE][0] == date(2021, 7, 9)
        assert df[Cols.DTE][0] == 29

    def test_option_type_spellings(self):
        """Test that call/put spellings map onto C/P."""
        raw = _raw(**{RawCols.OPTION_TYPE: ["call", " Put "]})
        df = parse_quotes(raw)
        assert df[Cols.OPTION_TYPE].to_list() == ["C", "P"]

    def test_unquoted_rows_dropped(self):
        """Test that rows with a missing bid or ask are skipped."""
        raw = _raw(**{RawCols.BID: [None, 1.5]})
        df = parse_quotes(raw)
        assert len(df) == 1
        assert df[Cols.OPTION_TYPE][0] == "P"

    def test_missing_column_rejected(self):
        """Test that missing required columns raise InvalidQuoteError."""
        with pytest.raises(InvalidQuoteError, match="Missing required columns"):
            parse_quotes(_raw().drop(RawCols.ASK))

    def test_bad_trade_date_rejected(self):
        """Test that a trade date not matching the format is rejected."""
        raw = _raw(**{RawCols.DATE: ["2021-07-09", "09.07.2021"]})
        with pytest.raises(InvalidQuoteError):
            parse_quotes(raw)


class TestValidation:
    """Tests for chain invariant checks."""

    def test_valid_chain_sorted(self):
        """Test that a valid chain is sorted by (date, expiration, type, strike)."""
        raw = _raw(**{
            RawCols.STRIKE: [105.0, 95.0],
            RawCols.OPTION_TYPE: ["P", "C"],
        })
        chain = normalize_quotes(raw)
        assert chain[Cols.OPTION_TYPE].to_list() == ["C", "P"]

    def test_expiration_before_trade_date(self):
        """Test that an expiration before the trade date is rejected."""
        raw = _raw(**{RawCols.EXPIRATION: ["2021-07-08", "2021-08-07"]})
        with pytest.raises(InvalidQuoteError, match="expire before"):
            normalize_quotes(raw)

    def test_same_day_expiration_allowed(self):
        """Test that an expiration on the trade date is valid (zero days)."""
        raw = _raw(**{RawCols.EXPIRATION: ["2021-07-09", "2021-07-09"]})
        chain = normalize_quotes(raw)
        assert chain[Cols.DTE].to_list() == [0, 0]

    def test_crossed_quote_rejected(self):
        raw = _raw(**{RawCols.ASK: [1.0, 2.0]})
        with pytest.raises(InvalidQuoteError, match="ask below bid"):
            normalize_quotes(raw)

    def test_negative_bid_rejected(self):
        raw = _raw(**{RawCols.BID: [-0.1, 1.5]})
        with pytest.raises(InvalidQuoteError, match="negative bid"):
            normalize_quotes(raw)

    def test_non_positive_strike_rejected(self):
        raw = _raw(**{RawCols.STRIKE: [0.0, 100.0]})
        with pytest.raises(InvalidQuoteError, match="strike"):
            normalize_quotes(raw)

    def test_unknown_option_type_rejected(self):
        raw = _raw(**{RawCols.OPTION_TYPE: ["C", "X"]})
        with pytest.raises(InvalidQuoteError, match="option type"):
            normalize_quotes(raw)

    def test_duplicate_key_rejected(self):
        raw = _raw(**{RawCols.OPTION_TYPE: ["C", "C"]})
        with pytest.raises(InvalidQuoteError, match="share a"):
            normalize_quotes(raw)

    def test_all_problems_reported(self):
        """Test that every violated invariant appears in one error."""
        raw = _raw(**{RawCols.BID: [-0.1, 1.5], RawCols.ASK: [1.0, 1.0]})
        with pytest.raises(InvalidQuoteError) as exc_info:
            normalize_quotes(raw)
        assert "negative bid" in exc_info.value.message
        assert "ask below bid" in exc_info.value.message

    def test_other_dates_not_validated(self):
        """Test that a bad row on another date does not block a single-day load."""
        raw = _raw(**{
            RawCols.DATE: ["2021-07-09", "2021-07-09", "2021-07-12", "2021-07-12"],
            RawCols.EXPIRATION: ["2021-08-07", "2021-08-07", "2021-08-07", "2021-08-07"],
            RawCols.STRIKE: [100.0, 100.0, 100.0, 100.0],
            RawCols.OPTION_TYPE: ["P", "C", "C", "P"],
            RawCols.BID: [1.5, 2.0, 2.0, 1.5],
            RawCols.ASK: [2.0, 2.5, 1.0, 2.0],
        })
        with pytest.raises(InvalidQuoteError, match="ask below bid"):
            normalize_quotes(raw)

        day = normalize_day_quotes(raw, date(2021, 7, 9))
        assert len(day) == 2
        assert day[Cols.QUOTE_DATE].unique().to_list() == [date(2021, 7, 9)]
        assert day[Cols.OPTION_TYPE].to_list() == ["C", "P"]

        with pytest.raises(InvalidQuoteError, match="ask below bid"):
            normalize_day_quotes(raw, date(2021, 7, 12))

    def test_absent_date_is_empty(self):
        assert normalize_day_quotes(_raw(), date(2021, 7, 12)).is_empty()


class TestWideAndCsv:
    """Tests for wide-format conversion and CSV loading."""

    def test_melt_wide_quotes(self):
        """Test that each wide row becomes a call and a put record."""
        wide = pl.DataFrame({
            WideCols.QUOTE_DATE: ["2021-07-09", "2021-07-09"],
            WideCols.EXPIRATION: ["2021-08-07", "2021-08-07"],
            WideCols.STRIKE: [95.0, 100.0],
            WideCols.C_BID: [5.5, 2.0],
            WideCols.C_ASK: [6.0, 2.5],
            WideCols.P_BID: [0.5, 1.5],
            WideCols.P_ASK: [1.0, 2.0],
        })
        raw = melt_wide_quotes(wide)
        assert raw.columns == RawCols.REQUIRED
        assert len(raw) == 4

        chain = normalize_quotes(raw)
        puts = chain.filter(pl.col(Cols.OPTION_TYPE) == "P")
        assert puts[Cols.STRIKE].to_list() == [95.0, 100.0]
        assert puts[Cols.MID].to_list() == [0.75, 1.75]

    def test_load_csv_roundtrip(self, tmp_path):
        """Test loading a flat quotes CSV with text dates."""
        path = tmp_path / "quotes.csv"
        _raw().write_csv(path)

        chain = normalize_quotes(load_quotes_csv(path))
        assert len(chain) == 2
        assert get_unique_quote_dates(chain) == [date(2021, 7, 9)]
