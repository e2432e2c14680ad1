"""
VPM-B (Varying Permeability Model with Boyle compensation).

Gas kinetics are the ZH-L16C Haldanean compartments; tolerance comes from
bubble mechanics instead of M-values. Each compartment carries a critical
nucleus radius. Compression on descent crushes the nuclei (smaller radius,
larger allowable gradient) and the crushing relaxes with the regeneration time
constant. The allowable supersaturation gradient follows from the radius:

    G = 2 * gamma * (gamma_c - gamma) / (gamma_c * r)

On ascent between stops the gradient is reduced by Boyle's law relative to
the first stop pressure. Conservatism enlarges the starting radii.
"""

import logging
import math
from dataclasses import dataclass
from functools import partial
from typing import Dict, List, Optional

import numpy as np

from .buhlmann_constants import NUM_COMPARTMENTS, ZH_L16_HE_HALFTIMES, ZH_L16_N2_HALFTIMES
from .kernel import STOP_INCREMENT, DecompressionModel
from .state import TissueCompartment, total_loading

logger = logging.getLogger(__name__)

SURFACE_TENSION = 0.0179  # N/m, gamma
SKIN_COMPRESSION = 0.257  # N/m, gamma_c
CRITICAL_RADIUS_N2 = 0.55  # micrometers
CRITICAL_RADIUS_HE = 0.45  # micrometers
REGENERATION_TIME_CONSTANT = 20160.0  # min (14 days)
CRITICAL_VOLUME_LAMBDA = 750.0
BUBBLE_DISSOLUTION_TIME = 60.0  # min

# Radius multiplier per conservatism level 0..5
CONSERVATISM_RADIUS_FACTORS = (1.00, 1.04, 1.09, 1.15, 1.22, 1.30)
MAX_CONSERVATISM = len(CONSERVATISM_RADIUS_FACTORS) - 1

PA_PER_BAR = 1.0e5
METERS_PER_MICROMETER = 1.0e-6


@dataclass
class VpmbCompartment(TissueCompartment):
    """Haldanean compartment with bubble-nucleus state.

    Radii are in micrometers, pressures in bar, supersaturation history in
    bar*min.
    """

    nitrogen_critical_radius: float = CRITICAL_RADIUS_N2
    helium_critical_radius: float = CRITICAL_RADIUS_HE
    adjusted_critical_radius: float = CRITICAL_RADIUS_N2
    max_crushing_pressure: float = 0.0
    supersaturation_history: float = 0.0


def base_critical_radius(compartment: VpmbCompartment) -> float:
    """Loading-weighted starting radius of a compartment (micrometers)."""
    total = total_loading(compartment)
    if total <= 0:
        return compartment.nitrogen_critical_radius
    return (
        compartment.nitrogen_critical_radius * compartment.nitrogen_loading
        + compartment.helium_critical_radius * compartment.helium_loading
    ) / total


def crushed_radius(initial_radius: float, crushing_pressure: float) -> float:
    """Radius (micrometers) after a nucleus is crushed by ``crushing_pressure`` bar.

    1/r = dP / (2 * (gamma_c - gamma)) + 1/r0
    """
    r0 = initial_radius * METERS_PER_MICROMETER
    inverse = crushing_pressure * PA_PER_BAR / (2.0 * (SKIN_COMPRESSION - SURFACE_TENSION)) + 1.0 / r0
    return 1.0 / inverse / METERS_PER_MICROMETER


def allowable_gradient(radius: float) -> float:
    """Allowable supersaturation (bar) for a nucleus radius in micrometers."""
    r = radius * METERS_PER_MICROMETER
    pascal = 2.0 * SURFACE_TENSION * (SKIN_COMPRESSION - SURFACE_TENSION) / (SKIN_COMPRESSION * r)
    return pascal / PA_PER_BAR


class VpmbModel(DecompressionModel):
    """VPM-B with conservatism levels 0-5 (default 3)."""

    def __init__(self, conservatism: int = 3):
        self.conservatism = self._clamp_conservatism(conservatism)
        super().__init__()

    @staticmethod
    def _clamp_conservatism(level) -> int:
        clamped = int(min(MAX_CONSERVATISM, max(0, level)))
        if clamped != level:
            logger.warning(f"VPM-B conservatism {level} clamped to {clamped}")
        return clamped

    def _radius_factor(self) -> float:
        return CONSERVATISM_RADIUS_FACTORS[self.conservatism]

    def _create_compartments(self) -> List[VpmbCompartment]:
        factor = self._radius_factor()
        return [
            VpmbCompartment(
                number=i + 1,
                nitrogen_half_time=ZH_L16_N2_HALFTIMES[i],
                helium_half_time=ZH_L16_HE_HALFTIMES[i],
                nitrogen_critical_radius=CRITICAL_RADIUS_N2 * factor,
                helium_critical_radius=CRITICAL_RADIUS_HE * factor,
                adjusted_critical_radius=CRITICAL_RADIUS_N2 * factor,
            )
            for i in range(NUM_COMPARTMENTS)
        ]

    def _update_compartments(self, time_step: float) -> None:
        self._apply_haldane(time_step)

        ambient = self.dive_state.ambient_pressure
        regeneration = math.exp(-time_step / REGENERATION_TIME_CONSTANT)
        dissolution = math.exp(-time_step / BUBBLE_DISSOLUTION_TIME)
        for c in self.compartments:
            loading = total_loading(c)

            crushing = max(0.0, ambient - loading)
            if crushing >= c.max_crushing_pressure:
                c.max_crushing_pressure = crushing
            else:
                c.max_crushing_pressure = max(crushing, c.max_crushing_pressure * regeneration)

            excess = loading - ambient
            if excess > 0:
                c.supersaturation_history += excess * time_step
            else:
                c.supersaturation_history *= dissolution

        self._refresh_derived_state()

    def _refresh_derived_state(self) -> None:
        for c in self.compartments:
            c.adjusted_critical_radius = crushed_radius(
                base_critical_radius(c), c.max_crushing_pressure
            )

    def _reset_extras(self) -> None:
        for c in self.compartments:
            c.max_crushing_pressure = 0.0
            c.supersaturation_history = 0.0
        self._refresh_derived_state()

    # ------------------------------------------------------------------
    # Tolerance
    # ------------------------------------------------------------------

    def _gradients(self) -> np.ndarray:
        return np.array([allowable_gradient(c.adjusted_critical_radius) for c in self.compartments])

    def _bubble_tolerance(
        self,
        depth: float,
        n2: np.ndarray,
        he: np.ndarray,
        first_stop_pressure: Optional[float] = None,
    ) -> Optional[float]:
        ambient = self._ambient(depth)
        gradients = self._gradients()
        if first_stop_pressure is not None and ambient < first_stop_pressure:
            gradients = gradients * (ambient / first_stop_pressure) ** (1.0 / 3.0)

        margins = gradients - (n2 + he - ambient)
        if np.any(margins < 0):
            return None
        return float(margins.min())

    def _tissue_tolerance(self, depth: float, n2: np.ndarray, he: np.ndarray) -> Optional[float]:
        return self._bubble_tolerance(depth, n2, he)

    # ------------------------------------------------------------------
    # Kernel contract
    # ------------------------------------------------------------------

    def calculate_ceiling(self) -> float:
        return self._search_ceiling()

    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        tolerance = partial(
            self._bubble_tolerance, first_stop_pressure=self._ambient(first_stop_depth)
        )
        return self._minimum_stop_time(depth, depth - STOP_INCREMENT, tolerance=tolerance)

    def calculate_dcs_risk(self) -> float:
        """Squared ratio of supersaturation to the bubble-allowed gradient."""
        ambient = self.dive_state.ambient_pressure
        worst = 0.0
        for c in self.compartments:
            excess = max(0.0, total_loading(c) - ambient)
            worst = max(worst, excess / allowable_gradient(c.adjusted_critical_radius))
        return round(min(100.0, worst ** 2 * 50.0), 1)

    def get_model_name(self) -> str:
        return f"VPM-B+{self.conservatism}"

    # ------------------------------------------------------------------
    # Parameters and inspection
    # ------------------------------------------------------------------

    def get_conservatism(self) -> int:
        return self.conservatism

    def set_conservatism(self, level: int) -> None:
        """Change conservatism; starting radii are rescaled, crushing history kept."""
        self.conservatism = self._clamp_conservatism(level)
        factor = self._radius_factor()
        for c in self.compartments:
            c.nitrogen_critical_radius = CRITICAL_RADIUS_N2 * factor
            c.helium_critical_radius = CRITICAL_RADIUS_HE * factor
        self._refresh_derived_state()

    def get_critical_radius(self, compartment_number: int) -> float:
        """Current (crushed) critical radius in micrometers."""
        return self._compartment(compartment_number).adjusted_critical_radius

    def get_allowable_gradient(self, compartment_number: int) -> float:
        return allowable_gradient(self.get_critical_radius(compartment_number))

    def calculate_bubble_count(self, compartment_number: int) -> float:
        """Relative bubble count from the compartment's supersaturation history."""
        c = self._compartment(compartment_number)
        if c.supersaturation_history <= 0:
            return 0.0
        return (
            CRITICAL_VOLUME_LAMBDA
            * c.supersaturation_history
            / allowable_gradient(c.adjusted_critical_radius)
        )

    def get_vpmb_compartment_data(self, compartment_number: int) -> Dict:
        c = self._compartment(compartment_number)
        return {
            "number": c.number,
            "nitrogen_loading": c.nitrogen_loading,
            "helium_loading": c.helium_loading,
            "total_loading": total_loading(c),
            "critical_radius": c.adjusted_critical_radius,
            "initial_critical_radius": base_critical_radius(c),
            "max_crushing_pressure": c.max_crushing_pressure,
            "allowable_gradient": allowable_gradient(c.adjusted_critical_radius),
            "bubble_count": self.calculate_bubble_count(compartment_number),
        }

