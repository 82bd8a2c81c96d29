"""Constant-maturity interpolation to the target horizon.

Per Cboe VIX methodology, with N365 = minutes in a year, N_H = minutes in
the horizon, and N_T1/N_T2 = minutes to the near/next expirations:

    index = 100 * sqrt( { T1*s1*[(N_T2 - N_H)/(N_T2 - N_T1)]
                        + T2*s2*[(N_H - N_T1)/(N_T2 - N_T1)] } * N365/N_H )
"""

import numpy as np

from vix_engine.config import MINUTES_PER_DAY, MINUTES_PER_YEAR
from vix_engine.errors import DegenerateCohortError


def interpolate_variance(
    t_near: float,
    sigma2_near: float,
    t_next: float,
    sigma2_next: float,
    horizon_days: int = 30,
    minutes_per_year: int = MINUTES_PER_YEAR,
) -> float:
    """Interpolate near/next variances to a constant-horizon variance.

    Args:
        t_near: Near-term time to expiry in years
        sigma2_near: Near-term variance
        t_next: Next-term time to expiry in years
        sigma2_next: Next-term variance
        horizon_days: Target horizon in calendar days
        minutes_per_year: N365

    Returns:
        Annualized horizon variance (the radicand divided by 100^2)

    Raises:
        DegenerateCohortError: If both expirations are equally far out
    """
    n_near = t_near * minutes_per_year
    n_next = t_next * minutes_per_year
    n_horizon = horizon_days * MINUTES_PER_DAY

    if n_next == n_near:
        raise DegenerateCohortError(
            f"Near and next terms coincide (T1 = T2 = {t_near:.6f} years)"
        )

    denom = n_next - n_near
    w_near = (n_next - n_horizon) / denom
    w_next = (n_horizon - n_near) / denom

    return (t_near * sigma2_near * w_near + t_next * sigma2_next * w_next) * (
        minutes_per_year / n_horizon
    )


def compute_index(variance: float) -> float:
    """Convert horizon variance to an index level: 100 * sqrt(variance).

    A negative (or NaN) variance yields NaN; callers decide how to treat it.
    """
    if not variance >= 0:
        return float("nan")
    return float(100.0 * np.sqrt(variance))


def interpolate_and_compute_index(
    t_near: float,
    sigma2_near: float,
    t_next: float,
    sigma2_next: float,
    horizon_days: int = 30,
    minutes_per_year: int = MINUTES_PER_YEAR,
) -> tuple[float, float]:
    """Interpolate variance and compute the index in one call.

    Returns:
        (variance, index) tuple
    """
    variance = interpolate_variance(
        t_near, sigma2_near,
        t_next, sigma2_next,
        horizon_days=horizon_days,
        minutes_per_year=minutes_per_year,
    )
    return variance, compute_index(variance)
