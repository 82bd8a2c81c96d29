"""Tests for multi-day batch computation and summaries."""

import time
from datetime import date

import pytest
import polars as pl

from vix_engine.config import IndexConfig
from vix_engine.io.quotes import Cols, parse_quotes
from vix_engine.vix import batch
from vix_engine.vix.batch import (
    INDEX,
    compute_index_series,
    index_points,
    partition_by_date,
    results_to_frame,
)
from vix_engine.vix.daily import DailyIndexResult
from vix_engine.vix.qc import summarize_results, summarize_skip_reasons


DATES = [date(2021, 7, 9), date(2021, 7, 12), date(2021, 7, 13)]


@pytest.fixture
def multi_day_quotes(make_bs_rows, make_raw_quotes):
    """Three dates: two priceable at 20% and 25% vol, one without a near term."""
    raw = pl.concat([
        make_raw_quotes(DATES[2], make_bs_rows(dtes=(29, 57), vol=0.25)),
        make_raw_quotes(DATES[0], make_bs_rows(dtes=(29, 57), vol=0.20)),
        make_raw_quotes(DATES[1], make_bs_rows(dtes=(45, 60))),
    ])
    return parse_quotes(raw)


class TestIndexSeries:
    """Tests for fan-out over trading days."""

    def test_partition_by_date(self, multi_day_quotes):
        days = partition_by_date(multi_day_quotes)
        assert sorted(days) == DATES
        for d, day in days.items():
            assert day[Cols.QUOTE_DATE].n_unique() == 1
            assert day[Cols.QUOTE_DATE][0] == d

    def test_failed_date_does_not_abort(self, multi_day_quotes):
        """Test one result per date, sorted, with the bad date skipped."""
        results = compute_index_series(multi_day_quotes, max_workers=1)

        assert [r.quote_date for r in results] == DATES
        assert [r.success for r in results] == [True, False, True]
        assert results[1].skip_reason == "INSUFFICIENT_COHORT"
        assert results[2].index > results[0].index

    def test_threaded_matches_sequential(self, multi_day_quotes):
        sequential = compute_index_series(multi_day_quotes, max_workers=1)
        threaded = compute_index_series(multi_day_quotes, max_workers=3)

        assert [r.quote_date for r in threaded] == DATES
        for seq, thr in zip(sequential, threaded):
            assert seq.skip_reason == thr.skip_reason
            if seq.success:
                assert thr.index == seq.index

    def test_horizon_from_config(self, multi_day_quotes):
        config = IndexConfig(horizon_days=50, name="H50")
        results = compute_index_series(multi_day_quotes, config=config)

        assert all(r.horizon_days == 50 for r in results)
        # The 45/60 day cohort now brackets the horizon
        assert results[1].success
        assert (results[1].near_dte, results[1].next_dte) == (45, 60)

    @staticmethod
    def _slow_on(monkeypatch, slow_dates, seconds=3.0):
        compute = batch.compute_daily_index

        def slow(day_df, quote_date, config):
            if quote_date in slow_dates:
                time.sleep(seconds)
            return compute(day_df, quote_date, config)

        monkeypatch.setattr(batch, "compute_daily_index", slow)

    def test_timeout_reported(self, multi_day_quotes, monkeypatch):
        """Test that a slow date is reported as TIMEOUT without waiting for it."""
        self._slow_on(monkeypatch, {DATES[0]})

        start = time.monotonic()
        results = compute_index_series(multi_day_quotes, max_workers=3, timeout=0.5)
        elapsed = time.monotonic() - start

        assert elapsed < 2.0
        assert results[0].skip_reason == "TIMEOUT"
        assert not results[0].success
        assert results[1].skip_reason == "INSUFFICIENT_COHORT"
        assert results[2].success

    def test_queued_date_times_out(self, multi_day_quotes, monkeypatch):
        """Test that a date stuck behind hung workers is bounded too."""
        self._slow_on(monkeypatch, {DATES[0], DATES[1]})

        start = time.monotonic()
        results = compute_index_series(multi_day_quotes, max_workers=2, timeout=0.3)
        elapsed = time.monotonic() - start

        assert elapsed < 2.0
        assert [r.skip_reason for r in results] == ["TIMEOUT"] * 3

    def test_timeout_needs_thread_pool(self, multi_day_quotes):
        with pytest.raises(ValueError, match="timeout"):
            compute_index_series(multi_day_quotes, max_workers=1, timeout=1.0)


class TestOutputs:
    """Tests for result frames and summaries."""

    def test_index_points(self, multi_day_quotes):
        points = index_points(compute_index_series(multi_day_quotes, max_workers=1))

        assert points.columns == [Cols.QUOTE_DATE, "horizon_days", INDEX]
        assert points[Cols.QUOTE_DATE].to_list() == [DATES[0], DATES[2]]
        assert points["horizon_days"].to_list() == [30, 30]

    def test_index_points_unique_per_date(self):
        result = DailyIndexResult(quote_date=DATES[0], horizon_days=30, index=20.0, success=True)
        points = index_points([result, result])
        assert len(points) == 1

    def test_index_points_empty(self):
        points = index_points([DailyIndexResult(quote_date=DATES[0], horizon_days=30)])
        assert len(points) == 0
        assert points.schema[INDEX] == pl.Float64

    def test_results_frame(self, multi_day_quotes):
        results = compute_index_series(multi_day_quotes, max_workers=1)
        frame = results_to_frame(results)

        assert len(frame) == 3
        assert frame["skip_reason"].to_list() == [None, "INSUFFICIENT_COHORT", None]

    def test_summary(self, multi_day_quotes):
        results = compute_index_series(multi_day_quotes, max_workers=1)
        stats = summarize_results(results)

        assert stats["total_days"] == 3
        assert stats["successful"] == 2
        assert stats["success_rate"] == pytest.approx(200 / 3)
        assert stats["skip_reasons"] == {"INSUFFICIENT_COHORT": 1}
        assert stats["index_min"] < stats["index_max"]
        assert summarize_skip_reasons(results) == stats["skip_reasons"]

    def test_summary_empty(self):
        stats = summarize_results([])
        assert stats["total_days"] == 0
        assert stats["success_rate"] == 0.0
        assert "index_mean" not in stats
