"""
Bühlmann ZH-L16C model with gradient factors.

16 Haldanean compartments. The M-value coefficients used for a compartment are
blended from the nitrogen and helium tables by current loading. Gradient
factors shrink the margin between ambient pressure and the M-value: GF high
applies at the surface and GF low at the first stop, where the first stop is
the deepest depth (on the 3 m grid) at which any compartment reaches its
unadjusted M-value.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List

from .buhlmann_constants import (
    NUM_COMPARTMENTS,
    ZH_L16_HE_A,
    ZH_L16_HE_B,
    ZH_L16_HE_HALFTIMES,
    ZH_L16_N2_A,
    ZH_L16_N2_B,
    ZH_L16_N2_HALFTIMES,
    GradientFactors,
    blend_coefficients,
    ceiling_pressure_gf,
    interpolate_gf,
    m_value,
    m_value_gf,
    round_up_to_stop,
)
from .kernel import DecompressionModel
from .state import TissueCompartment, total_loading

logger = logging.getLogger(__name__)


@dataclass
class BuhlmannCompartment(TissueCompartment):
    """ZH-L16C compartment with per-gas and blended M-value coefficients."""

    nitrogen_a: float = 0.0
    nitrogen_b: float = 0.0
    helium_a: float = 0.0
    helium_b: float = 0.0
    combined_a: float = 0.0
    combined_b: float = 0.0


def create_zhl16_compartments(compartment_type=BuhlmannCompartment, **extra) -> List:
    """Fresh ZH-L16C compartments at surface equilibrium.

    Args:
        compartment_type: BuhlmannCompartment or a subclass
        **extra: Initial values for subclass fields

    Returns:
        List of 16 compartments numbered 1..16
    """
    compartments = []
    for i in range(NUM_COMPARTMENTS):
        compartments.append(
            compartment_type(
                number=i + 1,
                nitrogen_half_time=ZH_L16_N2_HALFTIMES[i],
                helium_half_time=ZH_L16_HE_HALFTIMES[i],
                nitrogen_a=ZH_L16_N2_A[i],
                nitrogen_b=ZH_L16_N2_B[i],
                helium_a=ZH_L16_HE_A[i],
                helium_b=ZH_L16_HE_B[i],
                combined_a=ZH_L16_N2_A[i],
                combined_b=ZH_L16_N2_B[i],
                **extra,
            )
        )
    return compartments


def update_combined_coefficients(compartment: BuhlmannCompartment) -> None:
    """Re-blend a compartment's (a, b) from its current loadings."""
    compartment.combined_a, compartment.combined_b = blend_coefficients(
        compartment.nitrogen_loading,
        compartment.helium_loading,
        (compartment.nitrogen_a, compartment.nitrogen_b),
        (compartment.helium_a, compartment.helium_b),
    )


def tiered_stop_time(supersaturation: float) -> int:
    """Stop minutes from the worst supersaturation percentage."""
    if supersaturation > 120:
        return min(30, max(3, math.floor(supersaturation / 10)))
    if supersaturation > 105:
        return min(15, max(2, math.floor(supersaturation / 15)))
    if supersaturation > 100:
        return min(5, max(1, math.floor(supersaturation / 20)))
    return 1


class BuhlmannModel(DecompressionModel):
    """ZH-L16C with gradient factors (default GF 30/85)."""

    def __init__(self, gf_low: float = 30.0, gf_high: float = 85.0):
        self.gradient_factors = GradientFactors(low=gf_low, high=gf_high)
        super().__init__()

    def _create_compartments(self) -> List[BuhlmannCompartment]:
        return create_zhl16_compartments()

    def _update_compartments(self, time_step: float) -> None:
        self._apply_haldane(time_step)
        self._refresh_derived_state()

    def _refresh_derived_state(self) -> None:
        for compartment in self.compartments:
            update_combined_coefficients(compartment)

    def _reset_extras(self) -> None:
        self._refresh_derived_state()

    # ------------------------------------------------------------------
    # Gradient factors
    # ------------------------------------------------------------------

    def get_gradient_factors(self) -> GradientFactors:
        return self.gradient_factors

    def set_gradient_factors(self, low: float, high: float) -> None:
        """Replace the gradient factors; invalid pairs raise before any change."""
        self.gradient_factors = GradientFactors(low=low, high=high)
        logger.debug(f"Gradient factors set to {low:g}/{high:g}")

    def get_first_stop_depth(self) -> float:
        """Deepest depth where a compartment reaches its unadjusted M-value.

        Rounded up to the 3 m grid; 0 when every compartment is below its
        surface M-value.
        """
        deepest = 0.0
        for c in self.compartments:
            pressure = (total_loading(c) - c.combined_b) / c.combined_a
            deepest = max(deepest, self._depth_at(pressure))
        return round_up_to_stop(deepest)

    def _gf_at_depth(self, depth: float) -> float:
        return interpolate_gf(self.gradient_factors, depth, self.get_first_stop_depth())

    # ------------------------------------------------------------------
    # Kernel contract
    # ------------------------------------------------------------------

    def calculate_ceiling(self) -> float:
        first_stop = self.get_first_stop_depth()
        gf = interpolate_gf(self.gradient_factors, first_stop, first_stop) / 100.0

        ceiling = 0.0
        for c in self.compartments:
            pressure = ceiling_pressure_gf(c.combined_a, c.combined_b, total_loading(c), gf)
            ceiling = max(ceiling, self._depth_at(pressure))
        return ceiling

    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        ambient = self._ambient(depth)
        gf = self._gf_at_depth(depth) / 100.0
        worst = 0.0
        for c in self.compartments:
            limit = m_value_gf(c.combined_a, c.combined_b, ambient, gf)
            worst = max(worst, total_loading(c) / limit * 100.0)
        return tiered_stop_time(worst)

    def calculate_dcs_risk(self) -> float:
        """Squared ratio of supersaturation to the GF-allowed M-value fraction."""
        ambient = self.dive_state.ambient_pressure
        gf = self._gf_at_depth(self.dive_state.depth) / 100.0

        worst = 0.0
        for c in self.compartments:
            excess = max(0.0, total_loading(c) - ambient)
            if excess == 0:
                continue
            allowed = m_value(c.combined_a, c.combined_b, ambient) * gf
            if allowed <= 0:
                return 100.0
            worst = max(worst, excess / allowed)
        return round(min(100.0, worst ** 2 * 50.0), 1)

    def get_model_name(self) -> str:
        gf = self.gradient_factors
        return f"Bühlmann ZHL-16C (GF {gf.low:g}/{gf.high:g})"

    # ------------------------------------------------------------------
    # Compartment inspection
    # ------------------------------------------------------------------

    def calculate_m_value(self, compartment_number: int, depth: float) -> float:
        c = self._compartment(compartment_number)
        return m_value(c.combined_a, c.combined_b, self._ambient(depth))

    def calculate_gradient_factor_m_value(self, compartment_number: int, depth: float) -> float:
        c = self._compartment(compartment_number)
        gf = self._gf_at_depth(depth) / 100.0
        return m_value_gf(c.combined_a, c.combined_b, self._ambient(depth), gf)

    def calculate_supersaturation(self, compartment_number: int) -> float:
        """Loading as a percentage of the GF M-value at the current depth."""
        depth = self.dive_state.depth
        limit = self.calculate_gradient_factor_m_value(compartment_number, depth)
        return total_loading(self._compartment(compartment_number)) / limit * 100.0

    def get_buhlmann_compartment_data(self, compartment_number: int) -> Dict:
        c = self._compartment(compartment_number)
        depth = self.dive_state.depth
        return {
            "number": c.number,
            "nitrogen_half_time": c.nitrogen_half_time,
            "helium_half_time": c.helium_half_time,
            "nitrogen_loading": c.nitrogen_loading,
            "helium_loading": c.helium_loading,
            "total_loading": total_loading(c),
            "a": c.combined_a,
            "b": c.combined_b,
            "m_value": self.calculate_m_value(compartment_number, depth),
            "gf_m_value": self.calculate_gradient_factor_m_value(compartment_number, depth),
            "supersaturation": self.calculate_supersaturation(compartment_number),
        }
