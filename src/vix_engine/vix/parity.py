"""Forward price computation via put-call parity.

Per VIX methodology, for each (date, expiration):
1. Find K* = strike where |C_mid - P_mid| is minimized (ties: lowest strike)
2. Compute F = K* + exp(rT) * (C_mid(K*) - P_mid(K*))
3. K0 = max strike where strike <= F
"""

from dataclasses import dataclass
from datetime import date

import numpy as np
import polars as pl

from vix_engine.errors import EmptyChainError, NoReferenceStrikeError
from vix_engine.io.quotes import EXPIRY_KEYS, Cols, OptionType


CROSSING_STRIKE = "crossing_strike"
C_MID = "c_mid"
P_MID = "p_mid"
PARITY_DIFF = "parity_diff"


@dataclass(frozen=True)
class ForwardEstimate:
    """Forward price estimate for one (date, expiration)."""

    quote_date: date
    expiration: date

    # Days and years to expiry
    dte: int
    t_years: float

    # The strike K* where put-call parity difference is minimized
    crossing_strike: float

    # Forward price F
    forward: float

    # Midquotes at K*
    c_mid: float
    p_mid: float


def _check_both_sides(chain: pl.DataFrame) -> None:
    """Raise EmptyChainError if any expiration lacks calls or puts."""
    if len(chain) == 0:
        raise EmptyChainError("Chain is empty")

    sides = chain.group_by(EXPIRY_KEYS).agg(
        (pl.col(Cols.OPTION_TYPE) == OptionType.CALL).sum().alias("n_calls"),
        (pl.col(Cols.OPTION_TYPE) == OptionType.PUT).sum().alias("n_puts"),
    )
    one_sided = sides.filter((pl.col("n_calls") == 0) | (pl.col("n_puts") == 0))
    if len(one_sided) > 0:
        row = one_sided.sort(EXPIRY_KEYS).row(0, named=True)
        side = "calls" if row["n_calls"] == 0 else "puts"
        raise EmptyChainError(
            f"No {side} for expiration {row[Cols.EXPIRATION]} on {row[Cols.QUOTE_DATE]}"
        )


def pivot_calls_puts(chain: pl.DataFrame) -> pl.DataFrame:
    """Align call and put midquotes by strike.

    Args:
        chain: Normalized long-format chain

    Returns:
        One row per (date, expiration, strike) quoted on both sides,
        with columns c_mid and p_mid
    """
    calls = chain.filter(pl.col(Cols.OPTION_TYPE) == OptionType.CALL).select(
        EXPIRY_KEYS + [Cols.DTE, Cols.T_YEARS, Cols.STRIKE, pl.col(Cols.MID).alias(C_MID)]
    )
    puts = chain.filter(pl.col(Cols.OPTION_TYPE) == OptionType.PUT).select(
        EXPIRY_KEYS + [Cols.STRIKE, pl.col(Cols.MID).alias(P_MID)]
    )
    return calls.join(puts, on=EXPIRY_KEYS + [Cols.STRIKE], how="inner")


def estimate_forwards(chain: pl.DataFrame, r: float = 0.0) -> pl.DataFrame:
    """Compute the forward price of every expiration in a chain.

    Args:
        chain: Normalized long-format chain (one or more expirations)
        r: Risk-free rate (continuously compounded)

    Returns:
        DataFrame with one row per (date, expiration): dte, t_years,
        crossing_strike, c_mid, p_mid, parity_diff, forward

    Raises:
        EmptyChainError: If an expiration has no calls, no puts, or no strike
                         quoted on both sides
    """
    _check_both_sides(chain)

    pairs = pivot_calls_puts(chain)

    unpaired = (
        chain.select(EXPIRY_KEYS).unique()
        .join(pairs.select(EXPIRY_KEYS).unique(), on=EXPIRY_KEYS, how="anti")
    )
    if len(unpaired) > 0:
        row = unpaired.sort(EXPIRY_KEYS).row(0, named=True)
        raise EmptyChainError(
            f"No strike quoted on both sides for expiration "
            f"{row[Cols.EXPIRATION]} on {row[Cols.QUOTE_DATE]}"
        )

    # K* = argmin |C_mid - P_mid|; sorting by strike second breaks ties low
    crossing = (
        pairs
        .with_columns((pl.col(C_MID) - pl.col(P_MID)).abs().alias(PARITY_DIFF))
        .sort(EXPIRY_KEYS + [PARITY_DIFF, Cols.STRIKE])
        .group_by(EXPIRY_KEYS, maintain_order=True)
        .first()
        .rename({Cols.STRIKE: CROSSING_STRIKE})
    )

    # F = K* + exp(rT) * (C_mid(K*) - P_mid(K*))
    return (
        crossing
        .with_columns(
            (
                pl.col(CROSSING_STRIKE)
                + (pl.col(Cols.T_YEARS) * r).exp() * (pl.col(C_MID) - pl.col(P_MID))
            ).alias(Cols.FORWARD)
        )
        .select(
            EXPIRY_KEYS
            + [Cols.DTE, Cols.T_YEARS, CROSSING_STRIKE, C_MID, P_MID, PARITY_DIFF, Cols.FORWARD]
        )
        .sort(EXPIRY_KEYS)
    )


def compute_forward_price(expiry_df: pl.DataFrame, r: float = 0.0) -> ForwardEstimate:
    """Compute forward price from put-call parity for a single expiry.

    Args:
        expiry_df: Normalized chain for ONE (date, expiration)
        r: Risk-free rate

    Returns:
        ForwardEstimate for that expiration

    Raises:
        ValueError: If expiry_df spans more than one expiration
        EmptyChainError: If calls or puts are missing
    """
    forwards = estimate_forwards(expiry_df, r=r)
    if len(forwards) != 1:
        raise ValueError(f"Expected a single expiration, got {len(forwards)}")

    row = forwards.row(0, named=True)
    return ForwardEstimate(
        quote_date=row[Cols.QUOTE_DATE],
        expiration=row[Cols.EXPIRATION],
        dte=row[Cols.DTE],
        t_years=row[Cols.T_YEARS],
        crossing_strike=row[CROSSING_STRIKE],
        forward=row[Cols.FORWARD],
        c_mid=row[C_MID],
        p_mid=row[P_MID],
    )


def select_reference_strike(strikes: np.ndarray, forward: float) -> float:
    """K0 = max strike where strike <= F.

    Raises:
        NoReferenceStrikeError: If F is below all strikes
    """
    strikes = np.sort(np.asarray(strikes, dtype=float))
    strikes_below_f = strikes[strikes <= forward]

    if len(strikes_below_f) == 0:
        raise NoReferenceStrikeError(f"Forward {forward:.4f} is below every strike")

    return float(strikes_below_f[-1])


def select_reference_strikes(chain: pl.DataFrame, forwards: pl.DataFrame) -> pl.DataFrame:
    """Attach the ATM strike K0 to each forward estimate.

    K0 is drawn from all strikes of the expiration, calls and puts alike.

    Args:
        chain: Normalized chain the forwards were estimated from
        forwards: Output of estimate_forwards

    Returns:
        forwards with an added k0 column

    Raises:
        NoReferenceStrikeError: If some forward lies below all its strikes
    """
    k0 = (
        chain.select(EXPIRY_KEYS + [Cols.STRIKE]).unique()
        .join(forwards.select(EXPIRY_KEYS + [Cols.FORWARD]), on=EXPIRY_KEYS, how="inner")
        .filter(pl.col(Cols.STRIKE) <= pl.col(Cols.FORWARD))
        .group_by(EXPIRY_KEYS)
        .agg(pl.col(Cols.STRIKE).max().alias(Cols.K0))
    )

    reference = forwards.join(k0, on=EXPIRY_KEYS, how="left")

    missing = reference.filter(pl.col(Cols.K0).is_null())
    if len(missing) > 0:
        row = missing.sort(EXPIRY_KEYS).row(0, named=True)
        raise NoReferenceStrikeError(
            f"Forward {row[Cols.FORWARD]:.4f} is below every strike for expiration "
            f"{row[Cols.EXPIRATION]} on {row[Cols.QUOTE_DATE]}"
        )

    return reference.sort(EXPIRY_KEYS)


def list_expirations(chain: pl.DataFrame) -> pl.DataFrame:
    """List available expirations with summary stats.

    Args:
        chain: Normalized chain

    Returns:
        DataFrame with expiration, dte, and strike/quote counts
    """
    return (
        chain
        .group_by(EXPIRY_KEYS + [Cols.DTE])
        .agg(
            pl.col(Cols.STRIKE).n_unique().alias("n_strikes"),
            (pl.col(Cols.OPTION_TYPE) == OptionType.CALL).sum().alias("n_calls"),
            (pl.col(Cols.OPTION_TYPE) == OptionType.PUT).sum().alias("n_puts"),
        )
        .sort(EXPIRY_KEYS)
    )
