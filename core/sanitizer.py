"""
Candle Sanitizer

Detects candles whose high or low lies far outside the robust price band of a
window and replaces their prices with the last accepted candle's prices.

Method:
    1. Typical price per candle: (high + low + close) / 3
    2. Median of the typical prices (low-median: index n // 2 of the sorted list)
    3. MAD: low-median of |typical - median|
    4. Band: median ± 5 * 1.4826 * MAD, computed once for the whole window
    5. A candle is an outlier if its high or its low falls outside the band.
       Outliers take open/high/low/close from the last accepted candle and keep
       their own time and volume. If no candle has been accepted yet, the
       outlier passes through unchanged and is never used as a replacement.

Median/MAD is used instead of mean/stddev because a single bad tick inflates
the standard deviation enough to hide itself.

The functions here are pure: no I/O, no shared state, safe to call from any
thread or task.

Usage:
    from core.sanitizer import sanitize

    cleaned = sanitize(candles)
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from core.logging import get_logger
from core.schemas import Candle


OUTLIER_MULTIPLIER = 5
MAD_SCALE = 1.4826  # MAD -> standard deviation for normally distributed data

logger = get_logger(__name__)


class EmptyInputError(ValueError):
    """Raised when an empty candle sequence is passed to the sanitizer."""


# ============================================
# Robust Statistics
# ============================================

def typical_price(candle: Candle) -> float:
    """Return (high + low + close) / 3."""
    return (candle.high + candle.low + candle.close) / 3


def low_median(values: Sequence[float]) -> float:
    """
    Median using the low-median convention.

    For an even number of values this is the element at index n // 2 of the
    sorted values, not the average of the two middle elements.

    Raises:
        EmptyInputError: If values is empty

    Example:
        >>> low_median([4.0, 1.0, 3.0, 2.0])
        3.0
    """
    if not values:
        raise EmptyInputError("Cannot compute the median of an empty sequence")
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def median_absolute_deviation(values: Sequence[float], median: Optional[float] = None) -> float:
    """
    Median absolute deviation of values around their (low-)median.

    Args:
        values: Sample values
        median: Precomputed low-median of values (computed if omitted)
    """
    if median is None:
        median = low_median(values)
    return low_median([abs(v - median) for v in values])


@dataclass(frozen=True)
class OutlierBounds:
    """Robust band computed over one candle window."""

    median: float
    mad: float
    lower: float
    upper: float

    def is_outlier(self, candle: Candle) -> bool:
        """True if high or low lies outside [lower, upper]."""
        high_out = candle.high > self.upper or candle.high < self.lower
        low_out = candle.low > self.upper or candle.low < self.lower
        return high_out or low_out


def compute_bounds(candles: Sequence[Candle], multiplier: float = OUTLIER_MULTIPLIER) -> OutlierBounds:
    """
    Compute the median/MAD band of the typical prices of candles.

    Raises:
        EmptyInputError: If candles is empty
    """
    if not candles:
        raise EmptyInputError("Cannot compute outlier bounds for an empty candle sequence")

    prices = [typical_price(c) for c in candles]
    median = low_median(prices)
    mad = median_absolute_deviation(prices, median)
    spread = multiplier * MAD_SCALE * mad

    return OutlierBounds(
        median=median,
        mad=mad,
        lower=median - spread,
        upper=median + spread
    )


# ============================================
# Sanitizer
# ============================================

def sanitize(candles: Sequence[Candle], multiplier: float = OUTLIER_MULTIPLIER) -> List[Candle]:
    """
    Replace outlier candles with the prices of the last accepted candle.

    Args:
        candles: Candles sorted by time, oldest first (not re-sorted here)
        multiplier: Band width in scaled MADs (default 5)

    Returns:
        New list of the same length and order. Accepted candles are returned
        as-is; corrected candles keep their time and volume.

    Raises:
        EmptyInputError: If candles is empty

    Example:
        >>> cleaned = sanitize(candles)
        >>> len(cleaned) == len(candles)
        True
    """
    bounds = compute_bounds(candles, multiplier)

    cleaned: List[Candle] = []
    last_accepted: Optional[Candle] = None
    corrected = 0

    for candle in candles:
        if not bounds.is_outlier(candle):
            last_accepted = candle
            cleaned.append(candle)
        elif last_accepted is None:
            # Nothing to substitute yet; leave it and keep looking for a clean candle
            cleaned.append(candle)
        else:
            cleaned.append(candle.model_copy(update={
                "open": last_accepted.open,
                "high": last_accepted.high,
                "low": last_accepted.low,
                "close": last_accepted.close,
            }))
            corrected += 1

    if corrected:
        logger.debug(
            f"Corrected {corrected}/{len(candles)} candles "
            f"(median={bounds.median:.8g}, mad={bounds.mad:.8g}, "
            f"band=[{bounds.lower:.8g}, {bounds.upper:.8g}])"
        )

    return cleaned
