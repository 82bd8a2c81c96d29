"""Pytest configuration and fixtures."""

import math
from datetime import date, timedelta

import pytest
import polars as pl

from vix_engine.io.quotes import RawCols, normalize_quotes


def _norm_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def _bs_call(spot: float, strike: float, t: float, vol: float) -> float:
    """Black-Scholes call with zero rate."""
    d1 = (math.log(spot / strike) + 0.5 * vol**2 * t) / (vol * math.sqrt(t))
    d2 = d1 - vol * math.sqrt(t)
    return spot * _norm_cdf(d1) - strike * _norm_cdf(d2)


@pytest.fixture
def sample_date():
    """A trade date used by synthetic chains."""
    return date(2021, 7, 9)


@pytest.fixture
def make_raw_quotes():
    """Factory: rows of (dte, strike, type, bid, ask) -> raw input records."""

    def _make(quote_date: date, rows: list[tuple]) -> pl.DataFrame:
        return pl.DataFrame(
            {
                RawCols.DATE: [quote_date.isoformat()] * len(rows),
                RawCols.EXPIRATION: [
                    (quote_date + timedelta(days=dte)).isoformat() for dte, *_ in rows
                ],
                RawCols.STRIKE: [float(r[1]) for r in rows],
                RawCols.OPTION_TYPE: [r[2] for r in rows],
                RawCols.BID: [float(r[3]) for r in rows],
                RawCols.ASK: [float(r[4]) for r in rows],
            }
        )

    return _make


@pytest.fixture
def make_chain(make_raw_quotes):
    """Factory: rows of (dte, strike, type, bid, ask) -> normalized chain."""

    def _make(quote_date: date, rows: list[tuple]) -> pl.DataFrame:
        return normalize_quotes(make_raw_quotes(quote_date, rows))

    return _make


@pytest.fixture
def make_mid_rows():
    """Factory: {strike: (call_mid, put_mid)} -> rows with a 0.25 half-spread.

    A None mid leaves that side unlisted.
    """

    def _make(dte: int, mids: dict) -> list[tuple]:
        rows = []
        for strike, (c_mid, p_mid) in mids.items():
            if c_mid is not None:
                rows.append((dte, strike, "C", c_mid - 0.25, c_mid + 0.25))
            if p_mid is not None:
                rows.append((dte, strike, "P", p_mid - 0.25, p_mid + 0.25))
        return rows

    return _make


@pytest.fixture
def make_bs_rows():
    """Factory: Black-Scholes quotes (r=0) for a set of expirations.

    Puts come from put-call parity so C - P = S - K exactly, which puts the
    crossing strike and the forward exactly at spot when spot is listed.
    Bids are price - half_spread floored at zero; asks sit 2 * half_spread
    above the bid.
    """

    def _make(
        dtes=(29, 57),
        spot: float = 100.0,
        vol: float = 0.20,
        strikes=range(50, 151),
        half_spread: float = 0.02,
    ) -> list[tuple]:
        rows = []
        for dte in dtes:
            t = dte / 365.0
            for strike in strikes:
                call = _bs_call(spot, float(strike), t, vol)
                put = call - (spot - strike)
                for option_type, price in (("C", call), ("P", put)):
                    bid = max(price - half_spread, 0.0)
                    ask = bid + 2 * half_spread
                    rows.append((dte, strike, option_type, bid, ask))
        return rows

    return _make


@pytest.fixture
def bs_chain(sample_date, make_bs_rows, make_chain):
    """Normalized 20%-vol chain with expirations at 7, 29, 57 and 120 days."""
    return make_chain(sample_date, make_bs_rows(dtes=(7, 29, 57, 120)))
