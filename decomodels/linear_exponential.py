"""
Linear-exponential gas kinetics (Thalmann LE1 style).

Uptake is always exponential. Elimination stays exponential while the
compartment's supersaturation over ambient is at or below its crossover
pressure; above it the gas leaves at a linear rate

    rate = slope * (supersaturation - crossover) / half_time

and the loading is floored at ambient + crossover.
"""

import numpy as np

from .kernel import haldane_loading, haldane_vec


def linear_exponential_loading(
    initial: float,
    partial_pressure: float,
    ambient: float,
    half_time: float,
    crossover: float,
    slope: float,
    time_step: float,
) -> float:
    """New loading of one gas in one compartment after ``time_step`` minutes."""
    if partial_pressure >= initial:
        return haldane_loading(initial, partial_pressure, half_time, time_step)

    supersaturation = initial - ambient
    if supersaturation > crossover:
        rate = slope * (supersaturation - crossover) / half_time
        return max(initial - rate * time_step, ambient + crossover)

    return haldane_loading(initial, partial_pressure, half_time, time_step)


def linear_exponential_vec(
    initial: np.ndarray,
    partial_pressure: float,
    ambient: float,
    half_times: np.ndarray,
    crossovers: np.ndarray,
    slopes: np.ndarray,
    time_step: float,
) -> np.ndarray:
    """Vectorized linear_exponential_loading over all compartments."""
    exponential = haldane_vec(initial, partial_pressure, half_times, time_step)

    supersaturation = initial - ambient
    linear = np.maximum(
        initial - slopes * (supersaturation - crossovers) / half_times * time_step,
        ambient + crossovers,
    )
    use_linear = (partial_pressure < initial) & (supersaturation > crossovers)
    return np.where(use_linear, linear, exponential)
