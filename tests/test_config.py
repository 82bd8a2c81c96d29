"""Tests for configuration and the error taxonomy."""

from datetime import date

import pytest

from vix_engine.config import (
    IndexConfig,
    MINUTES_PER_YEAR,
    get_horizon_config,
    list_horizons,
)
from vix_engine.errors import (
    DegenerateCohortError,
    EmptyChainError,
    IndexComputationError,
    InsufficientCohortError,
    InvalidQuoteError,
    NoReferenceStrikeError,
)


class TestIndexConfig:
    """Tests for IndexConfig and the horizon registry."""

    def test_defaults(self):
        config = IndexConfig()
        assert config.horizon_days == 30
        assert config.min_days == 1
        assert config.minutes_per_year == MINUTES_PER_YEAR == 525600
        assert config.rate_for(date(2021, 7, 9)) == 0.0

    def test_per_date_rates(self):
        config = IndexConfig(risk_free_rate={date(2021, 7, 9): 0.01})
        assert config.rate_for(date(2021, 7, 9)) == 0.01
        with pytest.raises(KeyError):
            config.rate_for(date(2021, 7, 12))

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            IndexConfig(horizon_days=0)
        with pytest.raises(ValueError):
            IndexConfig(zero_bid_threshold=-1.0)

    def test_with_horizon(self):
        config = IndexConfig(risk_free_rate=0.02).with_horizon(60)
        assert config.horizon_days == 60
        assert config.name == "H60"
        assert config.risk_free_rate == 0.02

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VIX_ENGINE_HORIZON_DAYS", "93")
        monkeypatch.setenv("VIX_ENGINE_RISK_FREE_RATE", "0.015")
        config = IndexConfig.from_env()
        assert config.horizon_days == 93
        assert config.risk_free_rate == 0.015

    def test_overrides_beat_env(self, monkeypatch):
        monkeypatch.setenv("VIX_ENGINE_HORIZON_DAYS", "93")
        config = IndexConfig.from_env(horizon_days=30)
        assert config.horizon_days == 30

    def test_registry(self):
        assert list_horizons() == ["VIX", "VIX3M"]
        assert get_horizon_config("vix3m").horizon_days == 93
        assert get_horizon_config("VIX").output_parquet.name == "vix_index.parquet"
        with pytest.raises(ValueError, match="Unknown index"):
            get_horizon_config("VXX")


class TestErrors:
    """Tests for error codes."""

    @pytest.mark.parametrize("error_cls, code", [
        (InvalidQuoteError, "INVALID_QUOTE"),
        (EmptyChainError, "EMPTY_CHAIN"),
        (NoReferenceStrikeError, "NO_REFERENCE_STRIKE"),
        (InsufficientCohortError, "INSUFFICIENT_COHORT"),
        (DegenerateCohortError, "DEGENERATE_COHORT"),
    ])
    def test_codes(self, error_cls, code):
        err = error_cls("details")
        assert isinstance(err, IndexComputationError)
        assert err.code == code
        assert err.message == "details"
        assert str(err) == f"{code}: details"

    def test_code_override(self):
        err = IndexComputationError("boom", code="CUSTOM")
        assert err.code == "CUSTOM"
        assert IndexComputationError.code == "COMPUTATION_ERROR"

    def test_explicit_none_keeps_class_code(self):
        err = EmptyChainError("no quotes", code=None)
        assert err.code == "EMPTY_CHAIN"
        assert str(err) == "EMPTY_CHAIN: no quotes"
