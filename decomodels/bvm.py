"""
BVM(3) bubble volume model.

Three compartments (fast, intermediate, slow) whose gas exchange is Haldane
with the half-time shortened by a diffusion modifier. Each compartment also
carries a bubble volume that grows while the tissue is supersaturated and
resolves in proportion to its size. The ceiling allows a pressure drop that
shrinks as bubble volume approaches the critical volume; risk combines the
per-compartment bubble probabilities as independent events.

Out-of-range parameters are clamped, not rejected.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from .kernel import DecompressionModel, haldane_vec
from .nmri98 import clamp_parameters, merge_parameters
from .state import TissueCompartment, total_loading

logger = logging.getLogger(__name__)

BVM_N2_HALFTIMES: Tuple[float, ...] = (5.0, 40.0, 240.0)
BVM_HE_HALFTIMES: Tuple[float, ...] = (2.5, 20.0, 120.0)
BVM_DIFFUSION_MODIFIERS: Tuple[float, ...] = (1.0, 0.7, 0.3)
BVM_MECHANICAL_RESISTANCES: Tuple[float, ...] = (1.0, 1.2, 1.5)
BVM_RISK_WEIGHTINGS: Tuple[float, ...] = (0.6, 0.3, 0.1)

CRITICAL_BUBBLE_VOLUME = 50.0
FORMATION_RATE_CONSTANT = 0.12  # per bar per minute
RESOLUTION_RATE_CONSTANT = 0.08  # per minute
RISK_COEFFICIENT = 2.3
BASE_PRESSURE_DROP = 1.0  # bar
RESOLUTION_FLOOR = 0.001
MAX_STOP_TIME = 30

PARAMETER_BOUNDS = {
    "conservatism": (0, 5),
    "max_dcs_risk": (0.1, 100.0),
}


@dataclass(frozen=True)
class BvmParameters:
    conservatism: float = 3
    max_dcs_risk: float = 5.0  # percent


@dataclass
class BvmCompartment(TissueCompartment):
    """Haldane compartment with bubble volume state."""

    diffusion_modifier: float = 1.0
    mechanical_resistance: float = 1.0
    risk_weighting: float = 0.0
    bubble_volume: float = 0.0
    bubble_formation_rate: float = 0.0
    bubble_resolution_rate: float = 0.0


class BvmModel(DecompressionModel):
    """BVM(3) with conservatism 0-5 (default 3) and a DCS-risk target."""

    def __init__(self, conservatism: float = 3, max_dcs_risk: float = 5.0):
        self.parameters = clamp_parameters(
            BvmParameters(conservatism=conservatism, max_dcs_risk=max_dcs_risk),
            PARAMETER_BOUNDS,
            "BVM",
        )
        super().__init__()

    def _create_compartments(self) -> List[BvmCompartment]:
        return [
            BvmCompartment(
                number=i + 1,
                nitrogen_half_time=BVM_N2_HALFTIMES[i],
                helium_half_time=BVM_HE_HALFTIMES[i],
                diffusion_modifier=BVM_DIFFUSION_MODIFIERS[i],
                mechanical_resistance=BVM_MECHANICAL_RESISTANCES[i],
                risk_weighting=BVM_RISK_WEIGHTINGS[i],
            )
            for i in range(len(BVM_N2_HALFTIMES))
        ]

    def _half_time_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Half-times divided by each compartment's diffusion modifier."""
        n2_half, he_half = super()._half_time_arrays()
        modifiers = np.array([c.diffusion_modifier for c in self.compartments])
        return n2_half / modifiers, he_half / modifiers

    def _update_compartments(self, time_step: float) -> None:
        p_n2, p_he = self._inspired_pressures()
        n2, he = self._loading_arrays()
        n2_half, he_half = self._half_time_arrays()
        n2 = haldane_vec(n2, p_n2, n2_half, time_step)
        he = haldane_vec(he, p_he, he_half, time_step)

        for c, n2_loading, he_loading in zip(self.compartments, n2, he):
            c.nitrogen_loading = float(n2_loading)
            c.helium_loading = float(he_loading)
            self._update_bubble_volume(c, time_step)

    def _update_bubble_volume(self, c: BvmCompartment, time_step: float) -> None:
        """Explicit step of formation minus resolution, floored at zero.

        Conservatism scales formation only.
        """
        supersaturation = max(0.0, total_loading(c) - self.dive_state.ambient_pressure)
        conservatism_factor = 1.0 + 0.1 * self.parameters.conservatism

        c.bubble_formation_rate = (
            FORMATION_RATE_CONSTANT * supersaturation * c.diffusion_modifier * conservatism_factor
        )
        c.bubble_resolution_rate = RESOLUTION_RATE_CONSTANT * c.bubble_volume * c.mechanical_resistance
        change = (c.bubble_formation_rate - c.bubble_resolution_rate) * time_step
        c.bubble_volume = max(0.0, c.bubble_volume + change)

    def _reset_extras(self) -> None:
        for c in self.compartments:
            c.bubble_volume = 0.0
            c.bubble_formation_rate = 0.0
            c.bubble_resolution_rate = 0.0

    def _allowable_pressure_drop(self, c: BvmCompartment) -> float:
        """Pressure drop below the loading the compartment tolerates (bar).

        Ranges from 0.5 to 1.0 bar with the risk target and shrinks as the
        bubble volume grows.
        """
        risk_adjustment = 0.5 + 0.5 * (1.0 - self.parameters.max_dcs_risk / 100.0)
        volume_ratio = c.bubble_volume / CRITICAL_BUBBLE_VOLUME
        return BASE_PRESSURE_DROP * risk_adjustment / (1.0 + volume_ratio)

    def _compartment_probability(self, c: BvmCompartment) -> float:
        normalized = c.bubble_volume / CRITICAL_BUBBLE_VOLUME
        return min(1.0, max(0.0, 1.0 - math.exp(-RISK_COEFFICIENT * normalized)))

    # ------------------------------------------------------------------
    # Kernel contract
    # ------------------------------------------------------------------

    def calculate_ceiling(self) -> float:
        ceiling = 0.0
        for c in self.compartments:
            pressure = total_loading(c) - self._allowable_pressure_drop(c)
            ceiling = max(ceiling, self._depth_at(pressure))
        return ceiling

    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        """Minutes for the largest bubble volume to resolve to the target volume."""
        target = CRITICAL_BUBBLE_VOLUME * (1.0 + self.parameters.max_dcs_risk / 100.0)
        longest = 0.0
        for c in self.compartments:
            if c.bubble_volume > target:
                excess = c.bubble_volume - target
                longest = max(longest, excess / (c.bubble_resolution_rate + RESOLUTION_FLOOR))
        return max(1, min(MAX_STOP_TIME, math.ceil(longest)))

    def calculate_total_dcs_risk(self) -> float:
        """Combined probability 1 - prod(1 - p_i * w_i), in [0, 1]."""
        survival = 1.0
        for c in self.compartments:
            survival *= 1.0 - self._compartment_probability(c) * c.risk_weighting
        return min(1.0, max(0.0, 1.0 - survival))

    def calculate_dcs_risk(self) -> float:
        multiplier = 1.0 + 0.15 * self.parameters.conservatism
        risk = self.calculate_total_dcs_risk() * 100.0 * multiplier
        return round(min(100.0, risk), 1)

    def is_within_risk_target(self) -> bool:
        """True while the current DCS risk does not exceed the configured target."""
        return self.calculate_dcs_risk() <= self.parameters.max_dcs_risk

    def get_model_name(self) -> str:
        return f"BVM(3)+{self.parameters.conservatism:g}"

    # ------------------------------------------------------------------
    # Parameters and inspection
    # ------------------------------------------------------------------

    def get_parameters(self) -> BvmParameters:
        return self.parameters

    def update_parameters(self, **changes) -> None:
        """Merge and clamp parameter changes."""
        merged = merge_parameters(self.parameters, changes, "BVM")
        self.parameters = clamp_parameters(merged, PARAMETER_BOUNDS, "BVM")
        logger.debug(f"BVM parameters now {self.parameters}")

    def get_max_dcs_risk(self) -> float:
        return self.parameters.max_dcs_risk

    def set_max_dcs_risk(self, max_dcs_risk: float) -> None:
        self.update_parameters(max_dcs_risk=max_dcs_risk)

    def calculate_bubble_volume(self, compartment_number: int) -> float:
        return self._compartment(compartment_number).bubble_volume

    def get_bvm_compartment_data(self, compartment_number: int) -> Dict:
        c = self._compartment(compartment_number)
        return {
            "number": c.number,
            "nitrogen_loading": c.nitrogen_loading,
            "helium_loading": c.helium_loading,
            "total_loading": total_loading(c),
            "diffusion_modifier": c.diffusion_modifier,
            "mechanical_resistance": c.mechanical_resistance,
            "risk_weighting": c.risk_weighting,
            "bubble_volume": c.bubble_volume,
            "bubble_formation_rate": c.bubble_formation_rate,
            "bubble_resolution_rate": c.bubble_resolution_rate,
            "allowable_pressure_drop": self._allowable_pressure_drop(c),
        }
