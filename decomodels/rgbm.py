"""
Folded RGBM (Reduced Gradient Bubble Model).

ZH-L16C compartments and M-values, each M-value scaled by a per-compartment
f-factor in [0.6, 1.0]. The f-factor shrinks with conservatism, with the
compartment's bubble-seed density and with the maximum depth reached. Seeds
grow while a compartment is supersaturated and decay back toward the baseline
otherwise. Repetitive dives inflate the risk score.
"""

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Dict, List

from .buhlmann import BuhlmannCompartment, create_zhl16_compartments, update_combined_coefficients
from .buhlmann_constants import m_value
from .errors import InvalidParameterError
from .kernel import DecompressionModel
from .state import SURFACE_NITROGEN_FRACTION, SURFACE_PRESSURE, total_loading

logger = logging.getLogger(__name__)

BASE_SEED_COUNT = 1000.0
MAX_SEED_COUNT = 10000.0
BUBBLE_FORMATION_COEFFICIENT = 0.85
SEED_DECAY_RATE = 0.01  # fraction per minute
SEED_VOLUME = 0.001  # per seed above baseline

MIN_F_FACTOR = 0.6
MAX_F_FACTOR = 1.0

REPETITIVE_THRESHOLD_HOURS = 6.0
MAX_REPETITIVE_PENALTY = 0.3

RISK_SCALE = 45.0


@dataclass(frozen=True)
class RgbmSettings:
    """Construction options; conservatism must lie in [0, 5]."""

    conservatism: float = 2
    enable_repetitive_penalty: bool = True

    def __post_init__(self):
        if not (0 <= self.conservatism <= 5):
            raise InvalidParameterError("RGBM conservatism must be between 0 and 5")


@dataclass
class RgbmCompartment(BuhlmannCompartment):
    """ZH-L16C compartment with microbubble state."""

    f_factor: float = MAX_F_FACTOR
    max_tension: float = SURFACE_NITROGEN_FRACTION * SURFACE_PRESSURE
    bubble_seed_count: float = BASE_SEED_COUNT


def compute_f_factor(conservatism: float, seed_count: float, max_depth: float) -> float:
    """Microbubble reduction factor for one compartment."""
    conservatism_factor = 1.0 - conservatism * 0.05
    bubble_factor = max(0.7, 1.0 - (seed_count / BASE_SEED_COUNT - 1.0) * 0.1)
    depth_factor = max(0.8, 1.0 - max_depth / 100.0 * 0.1)
    f_factor = conservatism_factor * bubble_factor * depth_factor
    return min(MAX_F_FACTOR, max(MIN_F_FACTOR, f_factor))


def repetitive_penalty(dive_count: int, surface_interval_hours: float) -> float:
    """Extra risk fraction for a dive made soon after a previous one."""
    if dive_count <= 1 or surface_interval_hours >= REPETITIVE_THRESHOLD_HOURS:
        return 0.0
    penalty = (dive_count - 1) * 0.1 * (1.0 - surface_interval_hours / REPETITIVE_THRESHOLD_HOURS)
    return min(MAX_REPETITIVE_PENALTY, penalty)


class RgbmFoldedModel(DecompressionModel):
    """Folded RGBM with conservatism 0-5 (default 2)."""

    def __init__(self, conservatism: float = 2, enable_repetitive_penalty: bool = True):
        self.settings = RgbmSettings(
            conservatism=conservatism, enable_repetitive_penalty=enable_repetitive_penalty
        )
        self.max_depth_reached = 0.0
        self.dive_count = 1
        self.surface_interval_hours = 0.0
        super().__init__()
        self._update_f_factors()

    def _create_compartments(self) -> List[RgbmCompartment]:
        return create_zhl16_compartments(RgbmCompartment)

    def _update_compartments(self, time_step: float) -> None:
        self.max_depth_reached = max(self.max_depth_reached, self.dive_state.depth)
        self._apply_haldane(time_step)

        ambient = self.dive_state.ambient_pressure
        for c in self.compartments:
            loading = total_loading(c)
            c.max_tension = max(c.max_tension, loading)

            supersaturation = loading - ambient
            if supersaturation > 0:
                c.bubble_seed_count += supersaturation * BUBBLE_FORMATION_COEFFICIENT * time_step
            else:
                c.bubble_seed_count -= c.bubble_seed_count * SEED_DECAY_RATE * time_step
                c.bubble_seed_count = max(BASE_SEED_COUNT, c.bubble_seed_count)
            c.bubble_seed_count = min(MAX_SEED_COUNT, c.bubble_seed_count)

        self._refresh_derived_state()

    def _update_f_factors(self) -> None:
        for c in self.compartments:
            c.f_factor = compute_f_factor(
                self.settings.conservatism, c.bubble_seed_count, self.max_depth_reached
            )

    def _refresh_derived_state(self) -> None:
        for c in self.compartments:
            update_combined_coefficients(c)
        self._update_f_factors()

    def _reset_extras(self) -> None:
        self.max_depth_reached = 0.0
        for c in self.compartments:
            c.max_tension = total_loading(c)
            c.bubble_seed_count = BASE_SEED_COUNT
        self._refresh_derived_state()

    # ------------------------------------------------------------------
    # Kernel contract
    # ------------------------------------------------------------------

    def calculate_ceiling(self) -> float:
        """Deepest depth where loading meets the f-scaled M-value.

        loading = f * (a*P + b)  =>  P = (loading/f - b) / a
        """
        ceiling = 0.0
        for c in self.compartments:
            pressure = (total_loading(c) / c.f_factor - c.combined_b) / c.combined_a
            ceiling = max(ceiling, self._depth_at(pressure))
        return ceiling

    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        ambient = self._ambient(depth)
        worst = 0.0
        max_seed_ratio = 0.0
        for c in self.compartments:
            limit = m_value(c.combined_a, c.combined_b, ambient) * c.f_factor
            worst = max(worst, total_loading(c) / limit * 100.0)
            max_seed_ratio = max(max_seed_ratio, c.bubble_seed_count / BASE_SEED_COUNT)

        base_time = max(1, math.floor(worst / 15.0))
        bubble_extension = math.floor(max_seed_ratio * 2.0)
        return min(30, base_time + bubble_extension)

    def calculate_dcs_risk(self) -> float:
        ambient = self.dive_state.ambient_pressure
        worst = 0.0
        for c in self.compartments:
            excess = max(0.0, total_loading(c) - ambient)
            limit = m_value(c.combined_a, c.combined_b, ambient) * c.f_factor
            ratio = excess / limit * (1.0 + c.bubble_seed_count / BASE_SEED_COUNT * 0.1)
            worst = max(worst, ratio)

        penalty = self.get_repetitive_penalty()
        return round(min(100.0, worst ** 2 * RISK_SCALE * (1.0 + penalty)), 1)

    def get_model_name(self) -> str:
        return f"RGBM (folded) - C{self.settings.conservatism:g}"

    # ------------------------------------------------------------------
    # Parameters and inspection
    # ------------------------------------------------------------------

    def get_rgbm_settings(self) -> RgbmSettings:
        return self.settings

    def set_rgbm_settings(self, **changes) -> None:
        """Update settings; invalid values raise and leave the model unchanged."""
        known = {f.name for f in fields(RgbmSettings)}
        unknown = set(changes) - known
        if unknown:
            raise InvalidParameterError(f"Unknown RGBM settings: {sorted(unknown)}")
        self.settings = replace(self.settings, **changes)
        self._update_f_factors()
        logger.debug(f"RGBM settings now {self.settings}")

    def set_repetitive_dive_params(self, dive_count: int, surface_interval_hours: float) -> None:
        self.dive_count = max(1, int(dive_count))
        self.surface_interval_hours = max(0.0, surface_interval_hours)

    def get_repetitive_penalty(self) -> float:
        if not self.settings.enable_repetitive_penalty:
            return 0.0
        return repetitive_penalty(self.dive_count, self.surface_interval_hours)

    def get_total_bubble_volume(self) -> float:
        return sum(
            max(0.0, c.bubble_seed_count - BASE_SEED_COUNT) * SEED_VOLUME
            for c in self.compartments
        )

    def get_f_factor(self, compartment_number: int) -> float:
        return self._compartment(compartment_number).f_factor

    def get_rgbm_compartment_data(self, compartment_number: int) -> Dict:
        c = self._compartment(compartment_number)
        ambient = self.dive_state.ambient_pressure
        return {
            "number": c.number,
            "nitrogen_loading": c.nitrogen_loading,
            "helium_loading": c.helium_loading,
            "total_loading": total_loading(c),
            "f_factor": c.f_factor,
            "bubble_seed_count": c.bubble_seed_count,
            "max_tension": c.max_tension,
            "m_value": m_value(c.combined_a, c.combined_b, ambient),
            "adjusted_m_value": m_value(c.combined_a, c.combined_b, ambient) * c.f_factor,
        }
