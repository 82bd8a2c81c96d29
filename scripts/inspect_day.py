#!/usr/bin/env python3
"""Inspect the index computation for a single day with diagnostic output.

This script:
1. Loads quotes for one trading day from a quotes CSV
2. Lists available expirations and the selected near/next cohort
3. Computes variance for both terms and prints diagnostics
4. Prints the interpolated index

Usage:
    uv run python scripts/inspect_day.py --csv data/raw/quotes.csv --date 2021-07-09
    uv run python scripts/inspect_day.py --csv data/raw/quotes.csv --date 2020-03-16 --index VIX3M
"""

import argparse
import sys
from datetime import date
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import polars as pl

from vix_engine.config import IndexConfig, get_horizon_config, list_horizons
from vix_engine.errors import IndexComputationError
from vix_engine.io.quotes import Cols, load_quotes_csv, normalize_day_quotes
from vix_engine.vix import (
    compute_daily_index,
    compute_expiry_diagnostics,
    compute_expiry_variance,
    get_available_expirations,
    print_variance_diagnostics,
    select_cohort,
)


def load_day_chain(csv_path: Path, quote_date: date) -> pl.DataFrame:
    """Load and normalize quotes for a specific trading day."""
    day = normalize_day_quotes(load_quotes_csv(csv_path), quote_date)
    if len(day) == 0:
        raise FileNotFoundError(f"No quotes for {quote_date} in {csv_path}")
    return day


def main():
    parser = argparse.ArgumentParser(description="Inspect index computation on a single day")
    parser.add_argument("--csv", type=Path, required=True, help="Quotes CSV path")
    parser.add_argument("--date", type=str, required=True, help="Trading date (YYYY-MM-DD)")
    parser.add_argument(
        "--index", type=str, default="VIX",
        help=f"Registered index. Available: {', '.join(list_horizons())}",
    )
    parser.add_argument("--rate", type=float, default=0.0, help="Risk-free rate")
    args = parser.parse_args()

    quote_date = date.fromisoformat(args.date)
    registered = get_horizon_config(args.index)
    config = IndexConfig.from_env(
        horizon_days=registered.horizon_days,
        name=registered.name,
        risk_free_rate=args.rate,
    )

    try:
        day = load_day_chain(args.csv, quote_date)
    except (FileNotFoundError, IndexComputationError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(f"Loaded {len(day)} quotes for {quote_date}")
    print("\nAvailable expirations:")
    print(get_available_expirations(day))

    try:
        selection = select_cohort(day, config.horizon_days, min_days=config.min_days)
    except IndexComputationError as e:
        print(f"\nCohort selection failed: {e}")
        sys.exit(1)

    print(f"\nNear term: {selection.near_exp} (DTE={selection.near_dte})")
    print(f"Next term: {selection.next_exp} (DTE={selection.next_dte})")

    for expiration in (selection.near_exp, selection.next_exp):
        expiry_df = day.filter(pl.col(Cols.EXPIRATION) == expiration)
        try:
            result = compute_expiry_variance(
                expiry_df, r=config.rate_for(quote_date),
                zero_bid_threshold=config.zero_bid_threshold,
            )
            diag = compute_expiry_diagnostics(
                expiry_df, r=config.rate_for(quote_date),
                zero_bid_threshold=config.zero_bid_threshold,
            )
        except IndexComputationError as e:
            print(f"\nExpiry {expiration} failed: {e}")
            continue

        print()
        print_variance_diagnostics(result)
        print(f"  Quotes kept:        {diag.n_filtered}/{diag.n_raw}")
        if diag.top_contrib_strike is not None:
            print(f"  Top contribution:   K={diag.top_contrib_strike:.2f} ({diag.top_contrib_frac:.1%})")

    daily = compute_daily_index(day, quote_date, config)
    print()
    if daily.success:
        print(f"{config.name} on {quote_date}: {daily.index:.4f}")
        if daily.warning:
            print(f"WARNING: {daily.warning}")
    else:
        print(f"{config.name} on {quote_date}: SKIP - {daily.skip_reason}: {daily.error_detail}")


if __name__ == "__main__":
    main()
