"""Model-free variance computation per VIX methodology.

The variance formula (per expiry T):

    sigma2(T) = (2/T) * sum[(delta_K / K^2) * exp(rT) * Q(K)] - (1/T) * (F/K0 - 1)^2

Where:
- T = time to expiry in years (DTE / 365)
- K = strikes surviving the OTM filter, calls and puts alike
- delta_K = strike spacing within the strike's wing
- Q(K) = option midquote
- F = forward price
- K0 = ATM strike
- r = risk-free rate

sigma2 is not clamped; a pathological chain can make it negative.
"""

from dataclasses import dataclass
from datetime import date

import numpy as np
import polars as pl

from vix_engine.config import DEFAULT_ZERO_BID_THRESHOLD
from vix_engine.io.quotes import EXPIRY_KEYS, Cols, OptionType
from vix_engine.vix.parity import estimate_forwards, select_reference_strikes
from vix_engine.vix.strip import build_otm_strip


SUM_TERM = "sum_term"
ADJUSTMENT_TERM = "adjustment_term"
N_QUOTES = "n_quotes"
N_CALLS = "n_calls"
N_PUTS = "n_puts"


@dataclass(frozen=True)
class ExpirationVariance:
    """Model-free variance for one (date, expiration)."""

    quote_date: date
    expiration: date

    # Days to expiration and time to expiry in years
    dte: int
    t_years: float

    # Forward price F and ATM strike K0
    forward: float
    k0: float

    # Model-free variance sigma^2
    sigma2: float

    # Sum term: (2/T) * sum of contributions
    sum_term: float

    # Adjustment term: (1/T) * (F/K0 - 1)^2
    adjustment_term: float

    # Quotes used (a strike at K0 counts once per side)
    n_quotes: int
    n_calls: int
    n_puts: int

    @property
    def implied_vol(self) -> float:
        """Annualized vol in percent, NaN when sigma2 < 0."""
        if not self.sigma2 >= 0:
            return float("nan")
        return float(np.sqrt(self.sigma2) * 100)


def compute_contributions(strip: pl.DataFrame, r: float = 0.0) -> pl.DataFrame:
    """Add per-quote contributions (delta_K / K^2) * exp(rT) * Q(K).

    Args:
        strip: Output of build_otm_strip (needs strike, delta_k, mid, t_years)
        r: Risk-free rate
    """
    return strip.with_columns(
        (
            pl.col(Cols.DELTA_K) / pl.col(Cols.STRIKE) ** 2
            * (pl.col(Cols.T_YEARS) * r).exp()
            * pl.col(Cols.MID)
        ).alias(Cols.CONTRIBUTION)
    )


def compute_variance_terms(
    strip: pl.DataFrame,
    reference: pl.DataFrame,
    r: float = 0.0,
) -> pl.DataFrame:
    """Sum contributions into one variance per expiration.

    Args:
        strip: Filtered chain with delta_k (build_otm_strip)
        reference: Forwards with k0 (select_reference_strikes)
        r: Risk-free rate

    Returns:
        reference with sum_term, adjustment_term, sigma2 and quote counts
    """
    sums = (
        compute_contributions(strip, r=r)
        .group_by(EXPIRY_KEYS)
        .agg(
            pl.col(Cols.CONTRIBUTION).sum().alias("contribution_sum"),
            pl.len().alias(N_QUOTES),
            (pl.col(Cols.OPTION_TYPE) == OptionType.CALL).sum().alias(N_CALLS),
            (pl.col(Cols.OPTION_TYPE) == OptionType.PUT).sum().alias(N_PUTS),
        )
    )

    T = pl.col(Cols.T_YEARS)
    return (
        reference
        .join(sums, on=EXPIRY_KEYS, how="left")
        .with_columns(
            pl.col("contribution_sum").fill_null(0.0),
            pl.col(N_QUOTES).fill_null(0),
            pl.col(N_CALLS).fill_null(0),
            pl.col(N_PUTS).fill_null(0),
        )
        .with_columns(
            (2 / T * pl.col("contribution_sum")).alias(SUM_TERM),
            (1 / T * (pl.col(Cols.FORWARD) / pl.col(Cols.K0) - 1) ** 2).alias(ADJUSTMENT_TERM),
        )
        .with_columns(
            (pl.col(SUM_TERM) - pl.col(ADJUSTMENT_TERM)).alias(Cols.SIGMA2),
        )
        .drop("contribution_sum")
        .sort(EXPIRY_KEYS)
    )


def compute_expiration_variances(
    chain: pl.DataFrame,
    r: float = 0.0,
    zero_bid_threshold: float = DEFAULT_ZERO_BID_THRESHOLD,
) -> pl.DataFrame:
    """Run forward, K0, filter, spacing and variance for every expiration.

    Args:
        chain: Normalized chain (typically one trade date)
        r: Risk-free rate
        zero_bid_threshold: Bids at or below this count as zero

    Returns:
        One row per (date, expiration) with forward, k0, sigma2 and terms

    Raises:
        EmptyChainError: If an expiration lacks calls or puts
        NoReferenceStrikeError: If a forward lies below all strikes
    """
    forwards = estimate_forwards(chain, r=r)
    reference = select_reference_strikes(chain, forwards)
    strip = build_otm_strip(chain, reference, zero_bid_threshold=zero_bid_threshold)
    return compute_variance_terms(strip, reference, r=r)


def variance_records(variances: pl.DataFrame) -> list[ExpirationVariance]:
    """Convert a variance frame into ExpirationVariance records."""
    return [
        ExpirationVariance(
            quote_date=row[Cols.QUOTE_DATE],
            expiration=row[Cols.EXPIRATION],
            dte=row[Cols.DTE],
            t_years=row[Cols.T_YEARS],
            forward=row[Cols.FORWARD],
            k0=row[Cols.K0],
            sigma2=row[Cols.SIGMA2],
            sum_term=row[SUM_TERM],
            adjustment_term=row[ADJUSTMENT_TERM],
            n_quotes=row[N_QUOTES],
            n_calls=row[N_CALLS],
            n_puts=row[N_PUTS],
        )
        for row in variances.iter_rows(named=True)
    ]


def compute_expiry_variance(
    expiry_df: pl.DataFrame,
    r: float = 0.0,
    zero_bid_threshold: float = DEFAULT_ZERO_BID_THRESHOLD,
) -> ExpirationVariance:
    """Compute model-free variance for a single expiry.

    Args:
        expiry_df: Normalized chain for ONE (date, expiration)
        r: Risk-free rate
        zero_bid_threshold: Bids at or below this count as zero

    Returns:
        ExpirationVariance with variance and diagnostics
    """
    records = variance_records(
        compute_expiration_variances(expiry_df, r=r, zero_bid_threshold=zero_bid_threshold)
    )
    if len(records) != 1:
        raise ValueError(f"Expected a single expiration, got {len(records)}")
    return records[0]


def print_variance_diagnostics(result: ExpirationVariance):
    """Print diagnostic information for a variance computation."""
    print("=" * 60)
    print(f"VARIANCE DIAGNOSTICS - {result.quote_date} / Expiry: {result.expiration}")
    print("=" * 60)

    print(f"\n[Forward & ATM]")
    print(f"  Forward (F):        {result.forward:.4f}")
    print(f"  ATM Strike (K0):    {result.k0:.2f}")
    print(f"  F/K0 - 1:           {(result.forward / result.k0 - 1)*100:.4f}%")

    print(f"\n[Time to Expiry]")
    print(f"  DTE:                {result.dte} days")
    print(f"  T (years):          {result.t_years:.6f}")

    print(f"\n[Strike Coverage]")
    print(f"  Quotes used:        {result.n_quotes}")
    print(f"  OTM puts (K<=K0):   {result.n_puts}")
    print(f"  OTM calls (K>=K0):  {result.n_calls}")

    print(f"\n[Variance Computation]")
    print(f"  Sum term:           {result.sum_term:.6f}")
    print(f"  Adjustment term:    {result.adjustment_term:.6f}")
    print(f"  Variance (sigma²):  {result.sigma2:.6f}")
    print(f"  Implied Vol:        {result.implied_vol:.2f}%")

    print("=" * 60)
