import math

import numpy as np
import pytest

from canre.utils.stats_math import (
    best_lag, correlation_p_value, cross_correlation, log_gamma, pearson_correlation,
    population_variance,
)


def test_population_variance():
    assert population_variance([1, 2, 3, 4]) == pytest.approx(1.25)
    assert population_variance([5]) == 0.0


def test_pearson_identical_and_inverted():
    x = [1.0, 2.0, 4.0, 8.0, 3.0]
    assert pearson_correlation(x, x) == pytest.approx(1.0)
    assert pearson_correlation(x, [-v for v in x]) == pytest.approx(-1.0)


def test_pearson_zero_variance_is_zero():
    assert pearson_correlation([1, 1, 1], [1, 2, 3]) == 0.0
    assert pearson_correlation([1], [2]) == 0.0


def test_pearson_length_mismatch():
    with pytest.raises(ValueError):
        pearson_correlation([1, 2], [1, 2, 3])


def test_cross_correlation_needs_ten_overlapping_samples():
    a = np.arange(12, dtype=float)
    assert cross_correlation(a, a, 5) == 0.0
    assert cross_correlation(a, a, 2) == pytest.approx(1.0)
    assert cross_correlation(a, a, -2) == pytest.approx(1.0)


def test_best_lag_finds_shift():
    base = np.random.RandomState(0).normal(size=103)
    a = base[:100]
    b = base[3:103]
    assert best_lag(a, b) == 3
    assert best_lag(b, a) == -3


def test_best_lag_short_series_is_zero():
    a = np.arange(9, dtype=float)
    assert best_lag(a, a) == 0


def test_log_gamma_matches_factorial():
    assert log_gamma(5.0) == pytest.approx(math.log(24.0), abs=1e-8)
    assert log_gamma(0.5) == pytest.approx(math.log(math.sqrt(math.pi)), abs=1e-8)


def test_p_value_bounds():
    assert correlation_p_value(1.0, 50) == 0.0
    assert correlation_p_value(-1.0, 50) == 0.0
    assert correlation_p_value(0.5, 2) == 1.0
    for n in (10, 50, 100):
        for r in np.linspace(-0.99, 0.99, 23):
            p = correlation_p_value(float(r), n)
            assert 0.0 <= p <= 1.0


def test_strong_correlation_is_significant():
    assert correlation_p_value(0.9, 100) < 0.05
