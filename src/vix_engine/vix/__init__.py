"""Index computation modules.

Core modules:
- parity: Forward price via put-call parity and ATM strike K0
- strip: OTM filter, zero-bid cutoff and strike spacing
- variance: Model-free variance per expiration
- selection: Near/next expiry selection around the horizon
- interpolate: Constant-maturity interpolation to the horizon
- daily: Single-day index computation
- batch: Fan-out over trading days
- qc: Quality control metrics
"""

from vix_engine.vix.parity import (
    ForwardEstimate,
    compute_forward_price,
    estimate_forwards,
    list_expirations,
    pivot_calls_puts,
    select_reference_strike,
    select_reference_strikes,
)

from vix_engine.vix.strip import (
    apply_moneyness_filter,
    apply_zero_bid_truncation,
    build_otm_strip,
    compute_strike_spacing,
    filter_chain,
)

from vix_engine.vix.variance import (
    ExpirationVariance,
    compute_contributions,
    compute_expiration_variances,
    compute_expiry_variance,
    compute_variance_terms,
    print_variance_diagnostics,
    variance_records,
)

from vix_engine.vix.selection import (
    CohortSelection,
    get_available_expirations,
    select_cohort,
)

from vix_engine.vix.interpolate import (
    compute_index,
    interpolate_and_compute_index,
    interpolate_variance,
)

from vix_engine.vix.daily import (
    DailyIndexResult,
    compute_daily_index,
    result_to_dict,
)

from vix_engine.vix.batch import (
    compute_index_series,
    index_points,
    partition_by_date,
    results_to_frame,
)

from vix_engine.vix.qc import (
    ExpiryDiagnostics,
    compute_expiry_diagnostics,
    print_summary,
    summarize_results,
    summarize_skip_reasons,
)

__all__ = [
    # Parity
    "ForwardEstimate",
    "compute_forward_price",
    "estimate_forwards",
    "list_expirations",
    "pivot_calls_puts",
    "select_reference_strike",
    "select_reference_strikes",
    # Strip
    "apply_moneyness_filter",
    "apply_zero_bid_truncation",
    "build_otm_strip",
    "compute_strike_spacing",
    "filter_chain",
    # Variance
    "ExpirationVariance",
    "compute_contributions",
    "compute_expiration_variances",
    "compute_expiry_variance",
    "compute_variance_terms",
    "print_variance_diagnostics",
    "variance_records",
    # Selection
    "CohortSelection",
    "get_available_expirations",
    "select_cohort",
    # Interpolation
    "compute_index",
    "interpolate_and_compute_index",
    "interpolate_variance",
    # Daily
    "DailyIndexResult",
    "compute_daily_index",
    "result_to_dict",
    # Batch
    "compute_index_series",
    "index_points",
    "partition_by_date",
    "results_to_frame",
    # QC
    "ExpiryDiagnostics",
    "compute_expiry_diagnostics",
    "print_summary",
    "summarize_results",
    "summarize_skip_reasons",
]
