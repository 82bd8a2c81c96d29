"""OTM option strip construction: moneyness filter, zero-bid cutoff, spacing.

Per VIX methodology:
1. Keep calls with K >= K0 and puts with K <= K0 (both sides at K0)
2. Scan each wing outward from K0; at the first of two consecutive zero
   bids, drop the second one and everything beyond it
3. Compute strike spacing delta_K within each wing
"""

import polars as pl

from vix_engine.config import DEFAULT_ZERO_BID_THRESHOLD
from vix_engine.io.quotes import EXPIRY_KEYS, QUOTE_KEYS, WING_KEYS, Cols, OptionType


# Scratch columns
_SCAN_POS = "_scan_pos"
_IS_ZERO = "_is_zero"
_CUT = "_cut"


def apply_moneyness_filter(chain: pl.DataFrame, reference: pl.DataFrame) -> pl.DataFrame:
    """Drop in-the-money options.

    Args:
        chain: Normalized chain
        reference: Frame with a k0 column per (date, expiration),
                   e.g. from select_reference_strikes

    Returns:
        Chain with a k0 column, keeping calls K >= K0 and puts K <= K0
    """
    # A re-filtered chain already carries derived columns from the last pass
    stale = [c for c in (Cols.K0, Cols.DELTA_K) if c in chain.columns]
    if stale:
        chain = chain.drop(stale)

    df = chain.join(reference.select(EXPIRY_KEYS + [Cols.K0]), on=EXPIRY_KEYS, how="inner")

    is_call = pl.col(Cols.OPTION_TYPE) == OptionType.CALL
    is_put = pl.col(Cols.OPTION_TYPE) == OptionType.PUT
    return df.filter(
        (is_call & (pl.col(Cols.STRIKE) >= pl.col(Cols.K0)))
        | (is_put & (pl.col(Cols.STRIKE) <= pl.col(Cols.K0)))
    )


def apply_zero_bid_truncation(
    chain: pl.DataFrame,
    zero_bid_threshold: float = DEFAULT_ZERO_BID_THRESHOLD,
) -> pl.DataFrame:
    """Apply the two-consecutive-zero-bid cutoff on each wing.

    Calls are scanned upward and puts downward (away from K0). The first
    quote whose bid and whose predecessor's bid are both zero starts the
    truncated tail. An isolated zero bid survives, as does the first zero
    of a consecutive pair.

    Args:
        chain: Moneyness-filtered chain
        zero_bid_threshold: Bids at or below this count as zero

    Returns:
        Truncated chain sorted by (date, expiration, type, strike)
    """
    # Position along the scan direction: ascending for calls, descending for puts
    df = chain.with_columns(
        pl.when(pl.col(Cols.OPTION_TYPE) == OptionType.CALL)
        .then(pl.col(Cols.STRIKE))
        .otherwise(-pl.col(Cols.STRIKE))
        .alias(_SCAN_POS),
        (pl.col(Cols.BID) <= zero_bid_threshold).alias(_IS_ZERO),
    ).sort(WING_KEYS + [_SCAN_POS])

    consecutive_zero = (
        pl.col(_IS_ZERO)
        & pl.col(_IS_ZERO).shift(1).over(WING_KEYS).fill_null(False)
    )

    # Once a consecutive zero pair is seen, everything further out is cut
    df = df.with_columns(
        consecutive_zero.cast(pl.Int32).cum_sum().over(WING_KEYS).alias(_CUT)
    )

    return (
        df.filter(pl.col(_CUT) == 0)
        .drop([_SCAN_POS, _IS_ZERO, _CUT])
        .sort(QUOTE_KEYS)
    )


def filter_chain(
    chain: pl.DataFrame,
    reference: pl.DataFrame,
    zero_bid_threshold: float = DEFAULT_ZERO_BID_THRESHOLD,
) -> pl.DataFrame:
    """Moneyness filter followed by zero-bid truncation.

    Re-applying to an already filtered chain removes nothing further.
    """
    otm = apply_moneyness_filter(chain, reference)
    return apply_zero_bid_truncation(otm, zero_bid_threshold=zero_bid_threshold)


def compute_strike_spacing(filtered: pl.DataFrame) -> pl.DataFrame:
    """Compute strike spacing delta_K for each surviving quote.

    Within each (date, expiration, type) wing sorted by strike:
    - Interior strikes: delta_K = (K_{i+1} - K_{i-1}) / 2
    - Lowest/highest strike: distance to the single neighbor (not halved)
    - Wing with a single strike: delta_K = 0

    Args:
        filtered: Output of filter_chain

    Returns:
        filtered sorted by (date, expiration, type, strike) with a delta_k column
    """
    df = filtered.sort(QUOTE_KEYS)

    prev_k = pl.col(Cols.STRIKE).shift(1).over(WING_KEYS)
    next_k = pl.col(Cols.STRIKE).shift(-1).over(WING_KEYS)

    return df.with_columns(
        pl.when(prev_k.is_not_null() & next_k.is_not_null())
        .then((next_k - prev_k) / 2)
        .when(next_k.is_not_null())
        .then(next_k - pl.col(Cols.STRIKE))
        .when(prev_k.is_not_null())
        .then(pl.col(Cols.STRIKE) - prev_k)
        .otherwise(0.0)
        .alias(Cols.DELTA_K)
    )


def build_otm_strip(
    chain: pl.DataFrame,
    reference: pl.DataFrame,
    zero_bid_threshold: float = DEFAULT_ZERO_BID_THRESHOLD,
) -> pl.DataFrame:
    """Filtered chain annotated with delta_K, ready for variance computation."""
    filtered = filter_chain(chain, reference, zero_bid_threshold=zero_bid_threshold)
    return compute_strike_spacing(filtered)
