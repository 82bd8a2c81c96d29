"""Single-day index computation with full diagnostics.

Combines expiry selection, variance computation, and interpolation into a
single function. Failures are recorded on the result instead of raised, so
one bad date never aborts a batch.
"""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Optional
import traceback

import numpy as np
import polars as pl

from vix_engine.config import IndexConfig
from vix_engine.errors import IndexComputationError
from vix_engine.io.quotes import Cols, validate_quotes
from vix_engine.vix.interpolate import interpolate_and_compute_index
from vix_engine.vix.selection import select_cohort
from vix_engine.vix.variance import (
    ExpirationVariance,
    compute_expiration_variances,
    variance_records,
)


@dataclass
class DailyIndexResult:
    """Result of daily index computation with diagnostics."""

    # Core result
    quote_date: date
    horizon_days: int
    index: Optional[float] = None  # 100 * sqrt(variance)
    variance: Optional[float] = None

    # Expiry info
    near_exp: Optional[date] = None
    next_exp: Optional[date] = None
    near_dte: Optional[int] = None
    next_dte: Optional[int] = None

    # Per-expiry variance
    sigma2_near: Optional[float] = None
    sigma2_next: Optional[float] = None

    # Forward prices and ATM strikes
    forward_near: Optional[float] = None
    forward_next: Optional[float] = None
    k0_near: Optional[float] = None
    k0_next: Optional[float] = None

    # Quote counts after filtering
    n_quotes_near: Optional[int] = None
    n_quotes_next: Optional[int] = None

    # Status
    success: bool = False
    skip_reason: Optional[str] = None
    warning: Optional[str] = None
    error_detail: Optional[str] = None


def _populate_term(result: DailyIndexResult, prefix: str, term: ExpirationVariance) -> None:
    setattr(result, f"sigma2_{prefix}", term.sigma2)
    setattr(result, f"forward_{prefix}", term.forward)
    setattr(result, f"k0_{prefix}", term.k0)
    setattr(result, f"n_quotes_{prefix}", term.n_quotes)


def compute_daily_index(
    day_df: pl.DataFrame,
    quote_date: date,
    config: Optional[IndexConfig] = None,
) -> DailyIndexResult:
    """Compute the index for a single trading day.

    Only the two expirations bracketing the horizon are priced, so a broken
    far-dated chain cannot fail the day.

    Args:
        day_df: Parsed quotes (parse_quotes) for one trading day
        quote_date: The trading date
        config: Horizon, rate and filter parameters (defaults to 30-day VIX)

    Returns:
        DailyIndexResult with index value and diagnostics
    """
    if config is None:
        config = IndexConfig()

    result = DailyIndexResult(quote_date=quote_date, horizon_days=config.horizon_days)

    try:
        chain = validate_quotes(day_df)
        r = config.rate_for(quote_date)

        # Step 1: Select expirations
        selection = select_cohort(
            chain,
            horizon_days=config.horizon_days,
            min_days=config.min_days,
        )
        result.near_exp = selection.near_exp
        result.next_exp = selection.next_exp
        result.near_dte = selection.near_dte
        result.next_dte = selection.next_dte

        # Step 2: Variance for both terms
        cohort_chain = chain.filter(
            pl.col(Cols.EXPIRATION).is_in([selection.near_exp, selection.next_exp])
        )
        terms = {
            term.expiration: term
            for term in variance_records(
                compute_expiration_variances(
                    cohort_chain,
                    r=r,
                    zero_bid_threshold=config.zero_bid_threshold,
                )
            )
        }
        near = terms[selection.near_exp]
        nxt = terms[selection.next_exp]
        _populate_term(result, "near", near)
        _populate_term(result, "next", nxt)

        # Step 3: Interpolate to the horizon
        variance, index = interpolate_and_compute_index(
            t_near=near.t_years,
            sigma2_near=near.sigma2,
            t_next=nxt.t_years,
            sigma2_next=nxt.sigma2,
            horizon_days=config.horizon_days,
            minutes_per_year=config.minutes_per_year,
        )

    except IndexComputationError as e:
        result.skip_reason = e.code
        result.error_detail = e.message
        return result
    except Exception as e:
        result.skip_reason = "COMPUTATION_ERROR"
        result.error_detail = f"{e}\n{traceback.format_exc()}"
        return result

    result.variance = variance
    result.index = index
    result.success = True

    # Not coerced: NaN marks a negative radicand
    if np.isnan(index):
        result.warning = f"NAN_INDEX(variance={variance:.6f})"

    return result


def result_to_dict(result: DailyIndexResult) -> dict:
    """Convert DailyIndexResult to a dictionary for DataFrame creation."""
    return asdict(result)
