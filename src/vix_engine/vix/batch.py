"""Index computation over many trading days.

Each date depends only on its own chain, so dates are fanned out to a thread
pool and collected back in date order.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import date
from typing import Optional

import polars as pl
from tqdm import tqdm

from vix_engine.config import IndexConfig
from vix_engine.io.quotes import Cols
from vix_engine.vix.daily import DailyIndexResult, compute_daily_index, result_to_dict


INDEX = "index"
HORIZON_DAYS = "horizon_days"


def partition_by_date(quotes: pl.DataFrame) -> dict[date, pl.DataFrame]:
    """Split parsed quotes into one frame per trade date."""
    return {
        part[Cols.QUOTE_DATE][0]: part
        for part in quotes.partition_by(Cols.QUOTE_DATE, maintain_order=True)
    }


def _await_result(future, quote_date: date, started: dict, timeout: Optional[float]):
    """Wait for one date's result, at most timeout seconds after it started.

    A date still queued behind busy workers is timed from the moment the
    collector reaches it.

    Raises:
        FuturesTimeoutError: If the date has not finished in time
    """
    if timeout is None:
        return future.result()

    reached = time.monotonic()
    while True:
        begun = started.get(quote_date, reached)
        try:
            return future.result(timeout=max(begun + timeout - time.monotonic(), 0.0))
        except FuturesTimeoutError:
            # Started while we waited: restart the clock from its start time
            if started.get(quote_date, reached) == begun:
                raise


def compute_index_series(
    quotes: pl.DataFrame,
    config: Optional[IndexConfig] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
    show_progress: bool = False,
) -> list[DailyIndexResult]:
    """Compute the index for every trade date in a quote set.

    Args:
        quotes: Parsed quotes (parse_quotes) spanning any number of dates
        config: Horizon, rate and filter parameters
        max_workers: Thread pool size; 1 runs sequentially in this thread
        timeout: Seconds a date may run before it is reported as TIMEOUT.
                 The call returns without waiting for timed-out dates; their
                 worker threads finish in the background.
        show_progress: Show a tqdm progress bar

    Returns:
        One DailyIndexResult per trade date, sorted by date

    Raises:
        ValueError: If timeout is combined with sequential execution
    """
    if config is None:
        config = IndexConfig()
    if max_workers == 1 and timeout is not None:
        raise ValueError("timeout requires a thread pool (max_workers != 1)")

    days = partition_by_date(quotes)
    dates = sorted(days)
    desc = f"Computing {config.name} ({config.horizon_days}d)"

    if max_workers == 1:
        return [
            compute_daily_index(days[d], d, config)
            for d in tqdm(dates, desc=desc, disable=not show_progress)
        ]

    started = {}

    def run(quote_date: date) -> DailyIndexResult:
        started[quote_date] = time.monotonic()
        return compute_daily_index(days[quote_date], quote_date, config)

    results = []
    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        futures = {d: executor.submit(run, d) for d in dates}
        for d in tqdm(dates, desc=desc, disable=not show_progress):
            try:
                results.append(_await_result(futures[d], d, started, timeout))
            except FuturesTimeoutError:
                results.append(DailyIndexResult(
                    quote_date=d,
                    horizon_days=config.horizon_days,
                    skip_reason="TIMEOUT",
                    error_detail=f"No result within {timeout}s",
                ))
    finally:
        # Running threads cannot be interrupted; do not block on them
        executor.shutdown(wait=False, cancel_futures=True)

    return results


def results_to_frame(results: list[DailyIndexResult]) -> pl.DataFrame:
    """All results, successful or not, as one DataFrame."""
    # infer_schema_length=None scans all rows (handles mixed None/str types)
    return pl.DataFrame([result_to_dict(r) for r in results], infer_schema_length=None)


def index_points(results: list[DailyIndexResult]) -> pl.DataFrame:
    """Output series: one (quote_date, horizon_days, index) row per successful date."""
    rows = [
        {Cols.QUOTE_DATE: r.quote_date, HORIZON_DAYS: r.horizon_days, INDEX: r.index}
        for r in results
        if r.success
    ]
    schema = {Cols.QUOTE_DATE: pl.Date, HORIZON_DAYS: pl.Int64, INDEX: pl.Float64}
    return (
        pl.DataFrame(rows, schema=schema)
        .unique(subset=[Cols.QUOTE_DATE, HORIZON_DAYS], keep="first", maintain_order=True)
        .sort(Cols.QUOTE_DATE)
    )
