"""
Descriptive statistics for numeric column samples.

Deterministic helpers used by the statistical detector. Standard deviation is
the population form, sqrt(mean of squared deviations), and percentiles use
linear interpolation over index p * (n - 1).
"""

from __future__ import annotations

from dataclasses import dataclass
from math import ceil, floor, sqrt
from typing import Sequence


def mean(values: Sequence[float]) -> float:
    if not values:
        raise ValueError("mean of empty sample")
    return sum(values) / len(values)


def population_std_dev(values: Sequence[float], center: float) -> float:
    if not values:
        raise ValueError("std dev of empty sample")
    return sqrt(sum((v - center) ** 2 for v in values) / len(values))


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Linear-interpolated percentile.

    Args:
        sorted_values: Sample sorted ascending
        p: Percentile as a fraction in [0, 1]

    Returns:
        Value at index p * (n - 1), interpolated between the floor and
        ceiling elements when the index is fractional
    """
    if not sorted_values:
        raise ValueError("percentile of empty sample")
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"percentile must be in [0, 1], got {p}")

    index = p * (len(sorted_values) - 1)
    lower = int(floor(index))
    upper = int(ceil(index))
    if lower == upper:
        return sorted_values[lower]

    weight = index - lower
    return sorted_values[lower] * (1.0 - weight) + sorted_values[upper] * weight


@dataclass(frozen=True)
class IQRBounds:
    """
    Interquartile range and the outlier fences derived from it.

    Fields:
    - q1/q3: 25th and 75th percentiles
    - iqr: q3 - q1
    - lower/upper: q1 - k*iqr and q3 + k*iqr
    """

    q1: float
    q3: float
    iqr: float
    lower: float
    upper: float

    def contains(self, value: float) -> bool:
        return self.lower <= value <= self.upper

    def distance_to_nearest(self, value: float) -> float:
        return min(abs(value - self.lower), abs(value - self.upper))


def iqr_bounds(sorted_values: Sequence[float], multiplier: float) -> IQRBounds:
    q1 = percentile(sorted_values, 0.25)
    q3 = percentile(sorted_values, 0.75)
    iqr = q3 - q1
    return IQRBounds(
        q1=q1,
        q3=q3,
        iqr=iqr,
        lower=q1 - multiplier * iqr,
        upper=q3 + multiplier * iqr,
    )
