"""Quality control metrics for index computation.

Per-expiry strip diagnostics and batch-level skip summaries, to help
diagnose spikes caused by broken strike ladders or tail-strike dominance in
the 1/K^2 weighting.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Optional

import numpy as np
import polars as pl

from vix_engine.config import DEFAULT_ZERO_BID_THRESHOLD
from vix_engine.io.quotes import Cols, OptionType
from vix_engine.vix.daily import DailyIndexResult
from vix_engine.vix.parity import estimate_forwards, select_reference_strikes
from vix_engine.vix.strip import build_otm_strip
from vix_engine.vix.variance import compute_contributions


@dataclass
class ExpiryDiagnostics:
    """Strip and contribution statistics for one expiration."""

    quote_date: date
    expiration: date

    # Chain size before and after filtering
    n_raw: int
    n_filtered: int

    # Strike range of each wing after filtering
    put_strike_min: Optional[float] = None
    put_strike_max: Optional[float] = None
    call_strike_min: Optional[float] = None
    call_strike_max: Optional[float] = None

    # Largest single contribution and its share of the total
    top_contrib_strike: Optional[float] = None
    top_contrib_frac: Optional[float] = None

    # Share contributed by the lowest strike (deep OTM put tail)
    min_strike_contrib_frac: Optional[float] = None


def compute_expiry_diagnostics(
    expiry_df: pl.DataFrame,
    r: float = 0.0,
    zero_bid_threshold: float = DEFAULT_ZERO_BID_THRESHOLD,
) -> ExpiryDiagnostics:
    """Diagnose the OTM strip of a single expiration.

    Args:
        expiry_df: Normalized chain for ONE (date, expiration)
        r: Risk-free rate
        zero_bid_threshold: Bids at or below this count as zero
    """
    forwards = estimate_forwards(expiry_df, r=r)
    reference = select_reference_strikes(expiry_df, forwards)
    strip = compute_contributions(
        build_otm_strip(expiry_df, reference, zero_bid_threshold=zero_bid_threshold), r=r
    )

    row = reference.row(0, named=True)
    diag = ExpiryDiagnostics(
        quote_date=row[Cols.QUOTE_DATE],
        expiration=row[Cols.EXPIRATION],
        n_raw=len(expiry_df),
        n_filtered=len(strip),
    )

    puts = strip.filter(pl.col(Cols.OPTION_TYPE) == OptionType.PUT)[Cols.STRIKE]
    calls = strip.filter(pl.col(Cols.OPTION_TYPE) == OptionType.CALL)[Cols.STRIKE]
    if len(puts) > 0:
        diag.put_strike_min = float(puts.min())
        diag.put_strike_max = float(puts.max())
    if len(calls) > 0:
        diag.call_strike_min = float(calls.min())
        diag.call_strike_max = float(calls.max())

    strikes = strip[Cols.STRIKE].to_numpy()
    contrib = strip[Cols.CONTRIBUTION].to_numpy()
    total = float(np.sum(contrib))
    if strikes.size > 0 and total > 0:
        top_idx = int(np.argmax(contrib))
        min_idx = int(np.argmin(strikes))
        diag.top_contrib_strike = float(strikes[top_idx])
        diag.top_contrib_frac = float(contrib[top_idx]) / total
        diag.min_strike_contrib_frac = float(contrib[min_idx]) / total

    return diag


def summarize_skip_reasons(results: list[DailyIndexResult]) -> dict[str, int]:
    """Count failed dates by skip reason."""
    return dict(Counter(r.skip_reason for r in results if not r.success and r.skip_reason))


def summarize_results(results: list[DailyIndexResult]) -> dict:
    """Processing statistics for a batch of daily results."""
    n_success = sum(1 for r in results if r.success)
    stats = {
        "total_days": len(results),
        "successful": n_success,
        "failed": len(results) - n_success,
        "success_rate": 100.0 * n_success / len(results) if results else 0.0,
        "skip_reasons": summarize_skip_reasons(results),
        "n_nan_index": sum(1 for r in results if r.success and np.isnan(r.index)),
    }

    indices = [r.index for r in results if r.success and not np.isnan(r.index)]
    if indices:
        stats["index_min"] = min(indices)
        stats["index_max"] = max(indices)
        stats["index_mean"] = sum(indices) / len(indices)

    return stats


def print_summary(stats: dict, title: str = "INDEX"):
    """Print batch summary statistics."""
    print("\n" + "=" * 60)
    print(f"PIPELINE SUMMARY - {title}")
    print("=" * 60)

    print(f"\n[Processing Stats]")
    print(f"  Total days:     {stats['total_days']}")
    print(f"  Successful:     {stats['successful']}")
    print(f"  Failed/Skipped: {stats['failed']}")
    print(f"  Success rate:   {stats['success_rate']:.1f}%")
    if stats.get('n_nan_index'):
        print(f"  NaN index:      {stats['n_nan_index']}")

    if stats.get('skip_reasons'):
        print(f"\n[Skip Reasons]")
        for reason, count in sorted(stats['skip_reasons'].items(), key=lambda x: -x[1]):
            print(f"  {reason}: {count}")

    if stats.get('index_mean'):
        print(f"\n[Index Statistics]")
        print(f"  Min:  {stats['index_min']:.2f}")
        print(f"  Max:  {stats['index_max']:.2f}")
        print(f"  Mean: {stats['index_mean']:.2f}")

    print("=" * 60)
