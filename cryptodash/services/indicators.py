"""Pure series helpers: stride downsampling and the RSI oscillator."""

from typing import Sequence, TypeVar

T = TypeVar("T")

DEFAULT_POINTS = 48
DEFAULT_RSI_PERIOD = 14
RSI_MAX = 100.0


def downsample(series: Sequence[T], target_count: int = DEFAULT_POINTS) -> list[T]:
    """
    Thin a series to at most ``target_count`` points by taking every stride-th sample.

    The first sample is always kept. This is not a statistical resample.

    Args:
        series: Time-ascending samples
        target_count: Maximum number of points to return

    Returns:
        The input unchanged (as a list) when it already fits, otherwise the
        ordered subsequence ``series[0], series[stride], ...`` with
        ``stride = ceil(len / target_count)``, reaching to within one stride
        of the newest sample
    """
    if len(series) <= target_count:
        return list(series)
    stride = -(-len(series) // target_count)
    return list(series[::stride])


def rsi(values: Sequence[float], period: int = DEFAULT_RSI_PERIOD) -> float | None:
    """
    Calculate the Relative Strength Index with Wilder smoothing.

    Averages are seeded with the simple mean of the first ``period`` deltas
    and smoothed over the remaining ones.

    When the average loss is zero the ratio is infinite and the result is
    clamped to 100. This includes a flat series, where average gain is also
    zero. There is no matching clamp when the average gain is zero; that case
    yields 0 from the formula.

    Returns:
        A value in [0, 100], or None when fewer than ``period + 1`` values exist
    """
    if len(values) < period + 1:
        return None

    deltas = [values[i] - values[i - 1] for i in range(1, len(values))]
    gains = [max(d, 0.0) for d in deltas]
    losses = [max(-d, 0.0) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return RSI_MAX

    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))
