"""
fusion/stats.py
Small numeric helpers shared by the fusion components.
"""

import math
from typing import Sequence, Tuple

import numpy as np


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def finite_or(value, default: float) -> float:
    """Return `value` as float, or `default` when it is missing, NaN or infinite."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def weighted_mean_std(scores: Sequence[float], weights: Sequence[float]) -> Tuple[float, float]:
    """
    Weighted mean and (population) weighted standard deviation.
    Falls back to uniform weights when the weights carry no mass.
    Identical scores always yield a standard deviation of exactly 0.
    """
    if len(scores) == 0:
        return 0.5, 0.0

    s = np.asarray(scores, dtype=np.float64)
    w = np.asarray(weights, dtype=np.float64)
    if w.shape != s.shape or not np.all(np.isfinite(w)) or float(w.sum()) <= 0.0:
        w = np.ones_like(s)

    if np.all(s == s[0]):
        return float(s[0]), 0.0

    mean = float(np.average(s, weights=w))
    variance = float(np.average((s - mean) ** 2, weights=w))
    return mean, math.sqrt(max(0.0, variance))


def population_std(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    arr = np.asarray(values, dtype=np.float64)
    if np.all(arr == arr[0]):
        return 0.0
    return float(np.std(arr))
