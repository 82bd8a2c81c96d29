#!/usr/bin/env python3
"""Compute a VIX-style index for every trading day in a quotes CSV.

The CSV holds flat records: date, expiration, strike, optionType, bid, ask.

Usage:
    uv run python scripts/compute_index.py --csv data/raw/quotes.csv                 # VIX (30d)
    uv run python scripts/compute_index.py --csv data/raw/quotes.csv --index VIX3M   # 93d
    uv run python scripts/compute_index.py --csv data/raw/quotes.csv --index VIX --index VIX3M
    uv run python scripts/compute_index.py --csv data/raw/quotes.csv --horizon 60 --rate 0.02
"""

import argparse
import sys
from datetime import date
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import polars as pl

from vix_engine.config import (
    IndexConfig,
    ensure_directories,
    get_horizon_config,
    list_horizons,
)
from vix_engine.errors import InvalidQuoteError
from vix_engine.io.quotes import DEFAULT_DATE_FORMAT, Cols, load_quotes_csv, parse_quotes
from vix_engine.vix import (
    compute_index_series,
    index_points,
    print_summary,
    results_to_frame,
    summarize_results,
)


def build_configs(args) -> list[IndexConfig]:
    """Resolve --index / --horizon flags into configs, applying overrides."""
    overrides = {}
    if args.rate is not None:
        overrides["risk_free_rate"] = args.rate
    if args.zero_bid is not None:
        overrides["zero_bid_threshold"] = args.zero_bid

    configs = []
    for name in args.index or []:
        registered = get_horizon_config(name)
        configs.append(IndexConfig.from_env(
            horizon_days=registered.horizon_days, name=registered.name, **overrides
        ))
    for horizon in args.horizon or []:
        configs.append(IndexConfig.from_env(horizon_days=horizon, name=f"H{horizon}", **overrides))
    if not configs:
        configs.append(IndexConfig.from_env(**overrides))
    return configs


def run_pipeline(
    csv_path: Path,
    configs: list[IndexConfig],
    date_format: str = DEFAULT_DATE_FORMAT,
    expiration_format: str = None,
    start_date: date = None,
    end_date: date = None,
    max_workers: int = None,
    output_dir: Path = None,
    verbose: bool = False,
) -> dict:
    """Run the index pipeline for each configured horizon.

    Returns:
        Dictionary mapping index name to pipeline statistics
    """
    ensure_directories()
    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)

    print(f"Loading quotes from {csv_path}")
    raw = load_quotes_csv(csv_path)
    quotes = parse_quotes(raw, date_format=date_format, expiration_format=expiration_format)
    print(f"Loaded {len(quotes):,} quoted options")

    if start_date:
        quotes = quotes.filter(pl.col(Cols.QUOTE_DATE) >= start_date)
    if end_date:
        quotes = quotes.filter(pl.col(Cols.QUOTE_DATE) <= end_date)

    n_days = quotes[Cols.QUOTE_DATE].n_unique()
    print(f"Processing {n_days} trading days")

    all_stats = {}
    for config in configs:
        results = compute_index_series(
            quotes,
            config=config,
            max_workers=max_workers,
            show_progress=True,
        )

        if verbose:
            for r in results:
                if not r.success:
                    print(f"  {r.quote_date}: SKIP - {r.skip_reason} ({r.error_detail})")

        output_path = config.output_parquet
        diagnostics_path = output_path.with_name(output_path.stem + "_diagnostics.parquet")
        if output_dir:
            output_path = output_dir / output_path.name
            diagnostics_path = output_dir / diagnostics_path.name

        print(f"\nSaving {config.name} series to {output_path}")
        index_points(results).write_parquet(output_path)

        print(f"Saving diagnostics to {diagnostics_path}")
        results_to_frame(results).write_parquet(diagnostics_path)

        stats = summarize_results(results)
        print_summary(stats, title=f"{config.name} ({config.horizon_days}d)")
        all_stats[config.name] = stats

    return all_stats


def main():
    parser = argparse.ArgumentParser(
        description="Compute a VIX-style index from option quotes"
    )
    parser.add_argument("--csv", type=Path, required=True, help="Quotes CSV path")
    parser.add_argument(
        "--index",
        action="append",
        help=f"Registered index (repeatable). Available: {', '.join(list_horizons())}",
    )
    parser.add_argument("--horizon", type=int, action="append", help="Custom horizon in days (repeatable)")
    parser.add_argument("--rate", type=float, help="Constant risk-free rate")
    parser.add_argument("--zero-bid", type=float, help="Zero-bid threshold")
    parser.add_argument("--date-format", default=DEFAULT_DATE_FORMAT, help="Trade date format")
    parser.add_argument("--expiration-format", help="Expiration format (defaults to --date-format)")
    parser.add_argument("--start", type=str, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", type=str, help="End date (YYYY-MM-DD)")
    parser.add_argument("--workers", type=int, help="Thread pool size (1 = sequential)")
    parser.add_argument("--out", type=Path, help="Output directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    args = parser.parse_args()

    start_date = date.fromisoformat(args.start) if args.start else None
    end_date = date.fromisoformat(args.end) if args.end else None

    try:
        configs = build_configs(args)
        all_stats = run_pipeline(
            csv_path=args.csv,
            configs=configs,
            date_format=args.date_format,
            expiration_format=args.expiration_format,
            start_date=start_date,
            end_date=end_date,
            max_workers=args.workers,
            output_dir=args.out,
            verbose=args.verbose,
        )
    except (FileNotFoundError, ValueError, InvalidQuoteError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if any(stats["success_rate"] < 50 for stats in all_stats.values()):
        print("\nWARNING: Success rate below 50%!")
        sys.exit(1)


if __name__ == "__main__":
    main()
