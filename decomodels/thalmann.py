"""
Thalmann VVal-18 style linear-exponential model.

Same elimination law as NMRI98 with its own three compartments; the
intermediate compartment is the primary linear-kinetics compartment and
dominates the risk estimate. Tolerance is a gradient-factor-like fraction of
each compartment's M-value (allowed supersaturation over ambient), interpolated
between GF high at the surface and GF low at the first stop. Because the GF
depends on the candidate depth, ceilings come from the kernel's iterative
search and stop times from its binary search.

Out-of-range parameters are clamped, not rejected.
"""

import logging
import math
from dataclasses import dataclass, replace
from functools import partial
from typing import Dict, List, Optional, Tuple

import numpy as np

from .buhlmann_constants import round_up_to_stop
from .kernel import STOP_INCREMENT, DecompressionModel
from .linear_exponential import linear_exponential_loading, linear_exponential_vec
from .nmri98 import clamp_parameters, merge_parameters
from .state import TissueCompartment, total_loading

logger = logging.getLogger(__name__)

THALMANN_N2_HALFTIMES: Tuple[float, ...] = (1.5, 51.0, 488.0)
THALMANN_HE_HALFTIMES: Tuple[float, ...] = (0.57, 19.2, 184.2)
THALMANN_M_VALUES: Tuple[float, ...] = (1.6, 1.2, 0.9)
THALMANN_CROSSOVER_PRESSURES: Tuple[float, ...] = (0.4, 0.25, 0.15)
THALMANN_LINEAR_SLOPES: Tuple[float, ...] = (0.5, 0.9, 0.3)
PRIMARY_LINEAR_COMPARTMENT = 2

PRIMARY_RISK_WEIGHT = 1.0
SECONDARY_RISK_WEIGHT = 0.5

PARAMETER_BOUNDS = {
    "max_dcs_risk": (0.1, 10.0),
    "safety_factor": (1.0, 2.0),
    "gradient_factor_low": (0.0, 1.0),
    "gradient_factor_high": (0.0, 1.0),
}


@dataclass(frozen=True)
class ThalmannParameters:
    max_dcs_risk: float = 3.5  # percent
    safety_factor: float = 1.0
    gradient_factor_low: float = 0.30
    gradient_factor_high: float = 0.85


@dataclass
class ThalmannCompartment(TissueCompartment):
    m_value: float = 0.0
    crossover_pressure: float = 0.0
    linear_slope: float = 0.0
    is_primary_linear: bool = False


def clamp_thalmann_parameters(params: ThalmannParameters) -> ThalmannParameters:
    params = clamp_parameters(params, PARAMETER_BOUNDS, "Thalmann")
    if params.gradient_factor_low > params.gradient_factor_high:
        logger.warning(
            f"Thalmann gradient_factor_low {params.gradient_factor_low} "
            f"lowered to gradient_factor_high {params.gradient_factor_high}"
        )
        params = replace(params, gradient_factor_low=params.gradient_factor_high)
    return params


class ThalmannModel(DecompressionModel):
    """VVal-18 style model (default max DCS risk 3.5%)."""

    def __init__(
        self,
        max_dcs_risk: float = 3.5,
        safety_factor: float = 1.0,
        gradient_factor_low: float = 0.30,
        gradient_factor_high: float = 0.85,
    ):
        self.parameters = clamp_thalmann_parameters(ThalmannParameters(
            max_dcs_risk=max_dcs_risk,
            safety_factor=safety_factor,
            gradient_factor_low=gradient_factor_low,
            gradient_factor_high=gradient_factor_high,
        ))
        super().__init__()

    def _create_compartments(self) -> List[ThalmannCompartment]:
        return [
            ThalmannCompartment(
                number=i + 1,
                nitrogen_half_time=THALMANN_N2_HALFTIMES[i],
                helium_half_time=THALMANN_HE_HALFTIMES[i],
                m_value=THALMANN_M_VALUES[i],
                crossover_pressure=THALMANN_CROSSOVER_PRESSURES[i],
                linear_slope=THALMANN_LINEAR_SLOPES[i],
                is_primary_linear=(i + 1 == PRIMARY_LINEAR_COMPARTMENT),
            )
            for i in range(len(THALMANN_N2_HALFTIMES))
        ]

    def _update_compartments(self, time_step: float) -> None:
        ambient = self.dive_state.ambient_pressure
        p_n2, p_he = self._inspired_pressures()
        for c in self.compartments:
            c.nitrogen_loading = linear_exponential_loading(
                c.nitrogen_loading, p_n2, ambient, c.nitrogen_half_time,
                c.crossover_pressure, c.linear_slope, time_step,
            )
            c.helium_loading = linear_exponential_loading(
                c.helium_loading, p_he, ambient, c.helium_half_time,
                c.crossover_pressure, c.linear_slope, time_step,
            )

    def _simulate_loadings(
        self, n2: np.ndarray, he: np.ndarray, depth: float, duration: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Linear-exponential exposure in steps of at most one minute."""
        ambient = self._ambient(depth)
        p_n2, p_he = self._inspired_pressures(depth)
        n2_half, he_half = self._half_time_arrays()
        crossovers = np.array([c.crossover_pressure for c in self.compartments])
        slopes = np.array([c.linear_slope for c in self.compartments])

        steps = max(1, math.ceil(duration))
        dt = duration / steps
        for _ in range(steps):
            n2 = linear_exponential_vec(n2, p_n2, ambient, n2_half, crossovers, slopes, dt)
            he = linear_exponential_vec(he, p_he, ambient, he_half, crossovers, slopes, dt)
        return n2, he

    # ------------------------------------------------------------------
    # Tolerance
    # ------------------------------------------------------------------

    def _m_values(self) -> np.ndarray:
        return np.array([c.m_value for c in self.compartments]) / self.parameters.safety_factor

    def _first_stop_depth(self, n2: np.ndarray, he: np.ndarray) -> float:
        """Deepest depth where the full allowed supersaturation is reached."""
        pressures = n2 + he - self._m_values()
        return round_up_to_stop(max(0.0, self._depth_at(float(pressures.max()))))

    def _gradient_factor(self, depth: float, first_stop_depth: float) -> float:
        params = self.parameters
        if first_stop_depth <= 0:
            return params.gradient_factor_high
        ratio = min(1.0, max(0.0, depth / first_stop_depth))
        return params.gradient_factor_high + (
            params.gradient_factor_low - params.gradient_factor_high
        ) * ratio

    def _gf_tolerance(
        self, depth: float, n2: np.ndarray, he: np.ndarray, first_stop_depth: float
    ) -> Optional[float]:
        ambient = self._ambient(depth)
        gf = self._gradient_factor(depth, first_stop_depth)
        margins = ambient + gf * self._m_values() - (n2 + he)
        if np.any(margins < 0):
            return None
        return float(margins.min())

    def _tissue_tolerance(self, depth: float, n2: np.ndarray, he: np.ndarray) -> Optional[float]:
        return self._gf_tolerance(depth, n2, he, self._first_stop_depth(n2, he))

    # ------------------------------------------------------------------
    # Kernel contract
    # ------------------------------------------------------------------

    def calculate_ceiling(self) -> float:
        anchor = self._first_stop_depth(*self._loading_arrays())
        return self._search_ceiling(partial(self._gf_tolerance, first_stop_depth=anchor))

    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        anchor = self._first_stop_depth(*self._loading_arrays())
        tolerance = partial(self._gf_tolerance, first_stop_depth=anchor)
        return self._minimum_stop_time(depth, depth - STOP_INCREMENT, tolerance=tolerance)

    def calculate_dcs_risk(self) -> float:
        """Weighted squared supersaturation ratios, primary compartment first."""
        ambient = self.dive_state.ambient_pressure
        allowed = self._m_values()
        index = 0.0
        for c, limit in zip(self.compartments, allowed):
            excess = max(0.0, total_loading(c) - ambient)
            weight = PRIMARY_RISK_WEIGHT if c.is_primary_linear else SECONDARY_RISK_WEIGHT
            index += weight * (excess / limit) ** 2
        return round(min(100.0, index * self.parameters.max_dcs_risk * 10.0), 1)

    def get_model_name(self) -> str:
        return f"VVal-18 Thalmann (Risk: {self.parameters.max_dcs_risk:g}%)"

    # ------------------------------------------------------------------
    # Parameters and inspection
    # ------------------------------------------------------------------

    def get_parameters(self) -> ThalmannParameters:
        return self.parameters

    def update_parameters(self, **changes) -> None:
        """Merge and clamp parameter changes."""
        merged = merge_parameters(self.parameters, changes, "Thalmann")
        self.parameters = clamp_thalmann_parameters(merged)
        logger.debug(f"Thalmann parameters now {self.parameters}")

    def get_thalmann_compartment_data(self, compartment_number: int) -> Dict:
        c = self._compartment(compartment_number)
        return {
            "number": c.number,
            "nitrogen_loading": c.nitrogen_loading,
            "helium_loading": c.helium_loading,
            "total_loading": total_loading(c),
            "m_value": c.m_value,
            "crossover_pressure": c.crossover_pressure,
            "linear_slope": c.linear_slope,
            "is_primary_linear": c.is_primary_linear,
        }

    def get_all_thalmann_compartments(self) -> List[Dict]:
        return [self.get_thalmann_compartment_data(c.number) for c in self.compartments]
