"""
Unit tests for descriptive statistics helpers.
"""

import math

import pytest

from bi_sentinel.anomaly.sample_stats import (
    iqr_bounds,
    mean,
    percentile,
    population_std_dev,
)


def test_mean_and_population_std_dev():
    values = [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]
    center = mean(values)

    assert center == 5.0
    assert population_std_dev(values, center) == 2.0


def test_std_dev_of_constant_sample_is_zero():
    values = [3.0] * 5
    assert population_std_dev(values, mean(values)) == 0.0


def test_percentile_interpolates_between_neighbours():
    values = [1.0, 2.0, 3.0, 4.0]

    assert percentile(values, 0.5) == 2.5
    assert percentile(values, 0.0) == 1.0
    assert percentile(values, 1.0) == 4.0


def test_percentile_on_exact_index():
    assert percentile([10.0, 20.0, 30.0, 40.0, 50.0], 0.25) == 20.0


def test_percentile_rejects_bad_input():
    with pytest.raises(ValueError):
        percentile([], 0.5)
    with pytest.raises(ValueError):
        percentile([1.0, 2.0], 1.5)


def test_iqr_bounds_use_interpolated_quartiles():
    values = sorted([1.0, 2.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 100.0])
    bounds = iqr_bounds(values, 1.5)

    assert math.isclose(bounds.q1, 2.25)
    assert math.isclose(bounds.q3, 7.75)
    assert math.isclose(bounds.iqr, 5.5)
    assert math.isclose(bounds.lower, -6.0)
    assert math.isclose(bounds.upper, 16.0)

    assert bounds.contains(16.0)
    assert not bounds.contains(100.0)
    assert math.isclose(bounds.distance_to_nearest(100.0), 84.0)
    assert math.isclose(bounds.distance_to_nearest(-10.0), 4.0)
