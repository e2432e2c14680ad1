"""
Bühlmann ZH-L16C constants and gradient factor calculations.

Single source of truth for the 16-compartment half-times and M-value
coefficients shared by the Bühlmann, VPM-B and RGBM models. All functions are
pure (no side effects).

The published (a, b) coefficients define the M-value as a linear law in
ambient pressure:

    M(P) = a*P + b      i.e. slope a, intercept b
"""

import math
from dataclasses import dataclass
from typing import Tuple

from .errors import InvalidParameterError

NUM_COMPARTMENTS = 16

# Half-times in minutes
ZH_L16_N2_HALFTIMES: Tuple[float, ...] = (
    5.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3, 77.0,
    109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0, 635.0,
)

ZH_L16_HE_HALFTIMES: Tuple[float, ...] = (
    1.88, 3.02, 4.72, 6.99, 10.21, 14.48, 20.53, 29.11,
    41.20, 55.19, 70.69, 90.34, 115.29, 147.42, 188.24, 240.03,
)

ZH_L16_N2_A: Tuple[float, ...] = (
    1.2599, 1.0000, 0.8618, 0.7562, 0.6667, 0.5933, 0.5282, 0.4701,
    0.4187, 0.3798, 0.3497, 0.3223, 0.2971, 0.2737, 0.2523, 0.2327,
)

ZH_L16_N2_B: Tuple[float, ...] = (
    0.5050, 0.6514, 0.7222, 0.7825, 0.8126, 0.8434, 0.8693, 0.8910,
    0.9092, 0.9222, 0.9319, 0.9403, 0.9477, 0.9544, 0.9602, 0.9653,
)

ZH_L16_HE_A: Tuple[float, ...] = (
    1.7424, 1.3830, 1.1919, 1.0458, 0.9220, 0.8205, 0.7305, 0.6502,
    0.5950, 0.5545, 0.5333, 0.5189, 0.5181, 0.5176, 0.5172, 0.5119,
)

ZH_L16_HE_B: Tuple[float, ...] = (
    0.4245, 0.5747, 0.6527, 0.7223, 0.7582, 0.7957, 0.8279, 0.8553,
    0.8757, 0.8903, 0.8997, 0.9073, 0.9122, 0.9171, 0.9217, 0.9267,
)


@dataclass(frozen=True)
class GradientFactors:
    """Gradient factor pair in percent.

    low:  applied at the first stop, controls how deep decompression starts
    high: applied at the surface, controls the final ascent
    100/100 uses the full M-value.
    """
    low: float
    high: float

    def __post_init__(self):
        if not (0.0 <= self.low <= 100.0):
            raise InvalidParameterError("Gradient factor low must be between 0 and 100")
        if not (0.0 <= self.high <= 100.0):
            raise InvalidParameterError("Gradient factor high must be between 0 and 100")
        if self.low > self.high:
            raise InvalidParameterError(
                "Gradient factor low cannot be greater than gradient factor high"
            )

    @property
    def is_standard(self) -> bool:
        """True if GF 100/100 (no adjustment)."""
        return self.low == 100.0 and self.high == 100.0


GF_DEFAULT = GradientFactors(low=30.0, high=85.0)


def blend_coefficients(
    n2_loading: float,
    he_loading: float,
    n2_coeffs: Tuple[float, float],
    he_coeffs: Tuple[float, float],
) -> Tuple[float, float]:
    """Loading-weighted (a, b) for a nitrogen/helium mix.

    Falls back to the nitrogen pair when nothing is loaded.
    """
    total = n2_loading + he_loading
    if total <= 0:
        return n2_coeffs
    a = (n2_coeffs[0] * n2_loading + he_coeffs[0] * he_loading) / total
    b = (n2_coeffs[1] * n2_loading + he_coeffs[1] * he_loading) / total
    return a, b


def m_value(a: float, b: float, ambient_pressure: float) -> float:
    """Standard M-value at a given ambient pressure.

    M(P) = a*P + b
    """
    return a * ambient_pressure + b


def m_value_gf(a: float, b: float, ambient_pressure: float, gf: float) -> float:
    """GF-adjusted M-value, never above the standard M-value.

    M_gf(P) = P + gf * (M(P) - P), gf as a fraction.
    """
    m = m_value(a, b, ambient_pressure)
    return min(ambient_pressure + gf * (m - ambient_pressure), m)


def gf_coefficients(a: float, b: float, gf: float) -> Tuple[float, float]:
    """(slope, intercept) of the GF-adjusted M-value line.

    M_gf(P) = (1 - gf + gf*a) * P + gf * b
    """
    return 1.0 - gf + gf * a, gf * b


def ceiling_pressure_gf(a: float, b: float, tissue_pressure: float, gf: float) -> float:
    """GF-adjusted ceiling pressure (bar) for a single compartment.

    Solves tissue_pressure = M_gf(P) for P. Where the GF line would allow more
    than the standard M-value the standard line wins, so the deeper of the two
    solutions is returned. Returns 0.0 when no positive pressure is needed.
    """
    slope, intercept = gf_coefficients(a, b, gf)
    ceil_p = 0.0
    if slope > 0:
        ceil_p = (tissue_pressure - intercept) / slope
    standard_p = (tissue_pressure - b) / a
    return max(0.0, ceil_p, standard_p)


def interpolate_gf(
    gf: GradientFactors, depth: float, first_stop_depth: float
) -> float:
    """Gradient factor in percent at ``depth``.

    High at the surface, low at (and below) the first stop depth.
    """
    if first_stop_depth <= 0:
        return gf.high
    ratio = min(1.0, max(0.0, depth / first_stop_depth))
    return gf.high + (gf.low - gf.high) * ratio


def round_up_to_stop(depth: float, increment: float = 3.0) -> float:
    """Round a depth up to the next stop increment (never negative)."""
    if depth <= 0:
        return 0.0
    return math.ceil(round(depth / increment, 9)) * increment
