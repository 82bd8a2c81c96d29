"""Expiry selection for index computation.

Select two expirations bracketing the target horizon H (in days):
- near_exp: expiry with the largest DTE < H
- next_exp: expiry with the smallest DTE >= H
"""

from dataclasses import dataclass
from datetime import date

import polars as pl

from vix_engine.errors import InsufficientCohortError
from vix_engine.io.quotes import Cols, OptionType


@dataclass(frozen=True)
class CohortSelection:
    """Near-term and next-term expirations bracketing the horizon."""

    horizon_days: int

    # Near-term expiration (DTE < horizon)
    near_exp: date
    near_dte: int

    # Next-term expiration (DTE >= horizon)
    next_exp: date
    next_dte: int


def select_cohort(
    expirations: pl.DataFrame,
    horizon_days: int = 30,
    min_days: int = 0,
) -> CohortSelection:
    """Select near-term and next-term expirations for one trade date.

    Args:
        expirations: Any frame with expiration and dte columns for a single
                     trade date (a chain or a variance frame)
        horizon_days: Target days to expiration
        min_days: Ignore expirations with fewer days than this

    Returns:
        CohortSelection with near and next expirations

    Raises:
        ValueError: If the frame spans more than one trade date
        InsufficientCohortError: If no expiration lies below the horizon, or
                                 none at or above it
    """
    if Cols.QUOTE_DATE in expirations.columns and expirations[Cols.QUOTE_DATE].n_unique() > 1:
        raise ValueError("Cohort selection expects a single trade date")

    candidates = (
        expirations
        .select([Cols.EXPIRATION, Cols.DTE])
        .unique()
        .filter(pl.col(Cols.DTE) >= min_days)
        .sort(Cols.DTE)
    )
    available = candidates[Cols.DTE].to_list()

    near_candidates = candidates.filter(pl.col(Cols.DTE) < horizon_days)
    next_candidates = candidates.filter(pl.col(Cols.DTE) >= horizon_days)

    if len(near_candidates) == 0:
        raise InsufficientCohortError(
            f"No expiration with DTE < {horizon_days} (available DTEs: {available})"
        )
    if len(next_candidates) == 0:
        raise InsufficientCohortError(
            f"No expiration with DTE >= {horizon_days} (available DTEs: {available})"
        )

    near_row = near_candidates.row(len(near_candidates) - 1, named=True)
    next_row = next_candidates.row(0, named=True)

    return CohortSelection(
        horizon_days=horizon_days,
        near_exp=near_row[Cols.EXPIRATION],
        near_dte=near_row[Cols.DTE],
        next_exp=next_row[Cols.EXPIRATION],
        next_dte=next_row[Cols.DTE],
    )


def get_available_expirations(chain: pl.DataFrame, min_days: int = 0) -> pl.DataFrame:
    """Get summary of available expirations for a trading day.

    Args:
        chain: Normalized chain for one trading day
        min_days: Minimum DTE to include

    Returns:
        DataFrame with expiration, dte, n_strikes, n_calls, n_puts
    """
    return (
        chain
        .filter(pl.col(Cols.DTE) >= min_days)
        .group_by([Cols.EXPIRATION, Cols.DTE])
        .agg([
            pl.col(Cols.STRIKE).n_unique().alias("n_strikes"),
            (pl.col(Cols.OPTION_TYPE) == OptionType.CALL).sum().alias("n_calls"),
            (pl.col(Cols.OPTION_TYPE) == OptionType.PUT).sum().alias("n_puts"),
        ])
        .sort(Cols.DTE)
    )
