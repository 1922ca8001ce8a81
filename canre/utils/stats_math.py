"""
Statistical helpers for the correlation engine.

This module provides the Pearson coefficient, lagged cross-correlation and an
approximate p-value for a correlation coefficient. The p-value is built from a
Lanczos/Stirling-series log-gamma and a one-term regularized incomplete beta
approximation. It is not exact: only whether it crosses the significance
threshold matters to callers.
"""
import logging
import math
from typing import Sequence, Union

import numpy as np

from canre.constants import CROSS_CORRELATION_MIN_OVERLAP, MAX_LAG_SAMPLES

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]

_LANCZOS_COEFFICIENTS = (
    76.18009172947146, -86.50532032941677,
    24.01409824083091, -1.231739572450155,
    0.1208650973866179e-2, -0.5395239384953e-5,
)


def population_variance(values: ArrayLike) -> float:
    """Population variance (divide by n). 0 for fewer than 2 values."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size < 2:
        return 0.0
    mean = arr.sum() / arr.size
    return float(((arr - mean) ** 2).sum() / arr.size)


def pearson_correlation(x: ArrayLike, y: ArrayLike) -> float:
    """Pearson correlation coefficient of two equal-length series.

    Returns 0 for fewer than 2 samples or when either series has zero variance.

    Raises:
        ValueError: If the series lengths differ
    """
    a = np.asarray(x, dtype=np.float64)
    b = np.asarray(y, dtype=np.float64)
    if a.size != b.size:
        raise ValueError("Arrays must have the same length")
    if a.size < 2:
        return 0.0

    diff_a = a - a.sum() / a.size
    diff_b = b - b.sum() / b.size
    numerator = float((diff_a * diff_b).sum())
    denominator_a = float((diff_a * diff_a).sum())
    denominator_b = float((diff_b * diff_b).sum())
    if denominator_a == 0 or denominator_b == 0:
        return 0.0

    r = numerator / math.sqrt(denominator_a * denominator_b)
    # rounding can push |r| a hair past 1
    return max(-1.0, min(1.0, r))


def cross_correlation(series_a: ArrayLike, series_b: ArrayLike, lag: int) -> float:
    """Pearson correlation of ``series_a`` shifted by ``lag`` samples against ``series_b``.

    A positive lag drops the first ``lag`` samples of A and the last ``lag``
    samples of B; a negative lag does the opposite. Fewer than 10 overlapping
    samples yield 0.
    """
    a = np.asarray(series_a, dtype=np.float64)
    b = np.asarray(series_b, dtype=np.float64)
    n = a.size
    if lag >= 0:
        shifted_a = a[lag:]
        shifted_b = b[:max(n - lag, 0)]
    else:
        shifted_a = a[:max(n + lag, 0)]
        shifted_b = b[-lag:]

    overlap = min(shifted_a.size, shifted_b.size)
    if overlap < CROSS_CORRELATION_MIN_OVERLAP:
        return 0.0

    try:
        return pearson_correlation(shifted_a[:overlap], shifted_b[:overlap])
    except ValueError:
        return 0.0


def best_lag(series_a: ArrayLike, series_b: ArrayLike) -> int:
    """Lag in [-L, L], L = min(10, n // 10), maximizing |cross-correlation|.

    Ties keep the earliest (most negative) lag; 0 when nothing beats zero.
    """
    n = len(series_a)
    max_lag = min(MAX_LAG_SAMPLES, n // 10)
    max_correlation = 0.0
    lag_found = 0
    for lag in range(-max_lag, max_lag + 1):
        correlation = cross_correlation(series_a, series_b, lag)
        if abs(correlation) > abs(max_correlation):
            max_correlation = correlation
            lag_found = lag
    return lag_found


def log_gamma(x: float) -> float:
    """Approximate ln(Gamma(x)) for x > 0 (Lanczos series, six terms)."""
    y = x
    tmp = x + 5.5
    tmp -= (x + 0.5) * math.log(tmp)
    ser = 1.000000000190015
    for coefficient in _LANCZOS_COEFFICIENTS:
        y += 1
        ser += coefficient / y
    return -tmp + math.log(2.5066282746310005 * ser / x)


def beta_function(a: float, b: float) -> float:
    return math.exp(log_gamma(a) + log_gamma(b) - log_gamma(a + b))


def incomplete_beta(a: float, b: float, x: float) -> float:
    """One-term approximation of the regularized incomplete beta I_x(a, b)."""
    if x < 0 or x > 1:
        return 0.0
    if x == 0:
        return 0.0
    if x == 1:
        return 1.0
    return math.pow(x, a) * math.pow(1 - x, b) / (a * beta_function(a, b))


def t_distribution_cdf(t: float, df: float) -> float:
    """Approximate Student's t CDF for t >= 0."""
    x = df / (df + t * t)
    return 1 - 0.5 * incomplete_beta(0.5 * df, 0.5, x)


def correlation_p_value(correlation: float, n: int) -> float:
    """Approximate two-sided p-value of a Pearson coefficient over ``n`` samples.

    Always within [0, 1]. A perfect correlation yields 0.

    Raises:
        ValueError, OverflowError: On arithmetic domain errors (callers treat
            the comparison as contributing no result)
    """
    if n <= 2:
        return 1.0

    remainder = 1 - correlation * correlation
    if remainder <= 0:
        return 0.0

    t = correlation * math.sqrt((n - 2) / remainder)
    df = n - 2
    p = 2 * (1 - t_distribution_cdf(abs(t), df))
    return min(max(p, 0.0), 1.0)
