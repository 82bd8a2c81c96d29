"""Project configuration and paths.

Supports standard index horizons with a registry system.
"""

import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# =============================================================================
# Project Paths
# =============================================================================

# Project root (vix-engine/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
RAW_DATA_DIR = DATA_DIR / "raw"
PROCESSED_DATA_DIR = DATA_DIR / "processed"

# Reports
REPORTS_DIR = PROJECT_ROOT / "reports"


# =============================================================================
# Time constants
# =============================================================================

DAYS_PER_YEAR = 365
MINUTES_PER_DAY = 1440
MINUTES_PER_YEAR = DAYS_PER_YEAR * MINUTES_PER_DAY  # N365 = 525600

# Bids at or below this are treated as zero
DEFAULT_ZERO_BID_THRESHOLD = 1e-6

ENV_PREFIX = "VIX_ENGINE_"


# =============================================================================
# Index Configuration
# =============================================================================

RateInput = Union[float, Mapping[date, float]]


@dataclass(frozen=True)
class IndexConfig:
    """Parameters consumed by a single index computation."""

    # Target horizon in calendar days (30 for VIX, 93 for VIX3M)
    horizon_days: int = 30

    # Risk-free rate: constant, or one rate per trade date
    risk_free_rate: RateInput = 0.0

    # Bids at or below this count as zero for the truncation rule
    zero_bid_threshold: float = DEFAULT_ZERO_BID_THRESHOLD

    # Expirations closer than this many days are ignored for cohort selection
    min_days: int = 1

    # N365
    minutes_per_year: int = MINUTES_PER_YEAR

    # Short name used in output file names
    name: str = "VIX"

    def __post_init__(self):
        if self.horizon_days <= 0:
            raise ValueError(f"horizon_days must be positive, got {self.horizon_days}")
        if self.zero_bid_threshold < 0:
            raise ValueError(f"zero_bid_threshold must be >= 0, got {self.zero_bid_threshold}")

    def rate_for(self, quote_date: date) -> float:
        """Risk-free rate for a trade date.

        Raises:
            KeyError: If a per-date rate mapping has no entry for quote_date
        """
        if isinstance(self.risk_free_rate, Mapping):
            if quote_date not in self.risk_free_rate:
                raise KeyError(f"No risk-free rate for {quote_date}")
            return float(self.risk_free_rate[quote_date])
        return float(self.risk_free_rate)

    def with_horizon(self, horizon_days: int, name: Optional[str] = None) -> "IndexConfig":
        """Copy of this config targeting another horizon."""
        return IndexConfig(
            horizon_days=horizon_days,
            risk_free_rate=self.risk_free_rate,
            zero_bid_threshold=self.zero_bid_threshold,
            min_days=self.min_days,
            minutes_per_year=self.minutes_per_year,
            name=name or f"H{horizon_days}",
        )

    @property
    def output_parquet(self) -> Path:
        """Path to index results parquet."""
        return PROCESSED_DATA_DIR / f"{self.name.lower()}_index.parquet"

    @classmethod
    def from_env(cls, **overrides) -> "IndexConfig":
        """Build a config from VIX_ENGINE_* environment variables.

        Keyword overrides win over the environment.
        """
        values = {}
        horizon = os.environ.get(f"{ENV_PREFIX}HORIZON_DAYS")
        if horizon:
            values["horizon_days"] = int(horizon)
        rate = os.environ.get(f"{ENV_PREFIX}RISK_FREE_RATE")
        if rate:
            values["risk_free_rate"] = float(rate)
        threshold = os.environ.get(f"{ENV_PREFIX}ZERO_BID_THRESHOLD")
        if threshold:
            values["zero_bid_threshold"] = float(threshold)
        min_days = os.environ.get(f"{ENV_PREFIX}MIN_DAYS")
        if min_days:
            values["min_days"] = int(min_days)
        values.update(overrides)
        return cls(**values)


# =============================================================================
# Horizon Registry
# =============================================================================

HORIZON_REGISTRY: dict[str, IndexConfig] = {
    "VIX": IndexConfig(horizon_days=30, name="VIX"),
    "VIX3M": IndexConfig(horizon_days=93, name="VIX3M"),
}


def get_horizon_config(name: str) -> IndexConfig:
    """Get configuration for a standard index.

    Args:
        name: Index name (case-insensitive), e.g. "VIX" or "VIX3M"

    Returns:
        IndexConfig for the requested index

    Raises:
        ValueError: If name not found in registry
    """
    name_upper = name.upper()
    if name_upper not in HORIZON_REGISTRY:
        available = ", ".join(HORIZON_REGISTRY.keys())
        raise ValueError(f"Unknown index: {name}. Available: {available}")
    return HORIZON_REGISTRY[name_upper]


def list_horizons() -> list[str]:
    """List all registered index names."""
    return list(HORIZON_REGISTRY.keys())


# =============================================================================
# Directory Management
# =============================================================================

def ensure_directories():
    """Create all necessary directories."""
    for dir_path in [RAW_DATA_DIR, PROCESSED_DATA_DIR, REPORTS_DIR]:
        dir_path.mkdir(parents=True, exist_ok=True)
