"""
Numeric utilities.

This package contains:
- stats_math: Pearson/cross-correlation, best lag and an approximate p-value
"""

from canre.utils.stats_math import (
    population_variance,
    pearson_correlation,
    cross_correlation,
    best_lag,
    correlation_p_value,
)

__all__ = [
    'population_variance',
    'pearson_correlation',
    'cross_correlation',
    'best_lag',
    'correlation_p_value',
]
