"""
Tissue-bubble diffusion model (TBDM, Gernhardt-Lambertsen style).

16 Haldane compartments, each with a bubble nucleation threshold. Once the
supersaturation (loading - ambient) passes the threshold, a bubble volume
fraction forms at a tissue-specific rate; perfusion and ambient pressure
eliminate it. The ceiling allows the threshold minus a bubble penalty as
supersaturation over the surface pressure.

The conservatism factor lowers every nucleation threshold and lengthens
stops. Invalid parameters raise, as for the Bühlmann and RGBM models.
"""

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Dict, List, Tuple

from .errors import InvalidParameterError
from .kernel import DecompressionModel
from .state import TissueCompartment, total_loading

logger = logging.getLogger(__name__)

TBDM_N2_HALFTIMES: Tuple[float, ...] = (
    4.0, 8.2, 12.8, 18.7, 27.8, 38.9, 54.7, 77.5,
    110.0, 146.2, 187.9, 239.6, 305.8, 390.7, 498.4, 635.8,
)

TBDM_HE_HALFTIMES: Tuple[float, ...] = (
    1.5, 3.1, 4.8, 7.2, 10.4, 14.6, 20.7, 29.3,
    41.5, 55.4, 70.9, 90.6, 115.7, 147.8, 188.6, 240.4,
)

# Supersaturation (bar) above which bubbles nucleate
NUCLEATION_THRESHOLDS: Tuple[float, ...] = (
    2.8, 2.6, 2.4, 2.2, 2.0, 1.9, 1.8, 1.7,
    1.6, 1.5, 1.4, 1.35, 1.3, 1.25, 1.2, 1.15,
)

# 1/min
BUBBLE_ELIMINATION_RATES: Tuple[float, ...] = (
    0.23, 0.18, 0.14, 0.11, 0.085, 0.065, 0.048, 0.035,
    0.026, 0.019, 0.015, 0.012, 0.009, 0.007, 0.0055, 0.0045,
)

# mL/min/100g
TISSUE_PERFUSION_RATES: Tuple[float, ...] = (
    850, 650, 480, 350, 260, 190, 140, 100,
    75, 55, 42, 32, 25, 19, 15, 12,
)

BUBBLE_FORMATION_COEFFICIENTS: Tuple[float, ...] = (
    1.8, 1.6, 1.4, 1.3, 1.2, 1.15, 1.1, 1.05,
    1.0, 0.95, 0.9, 0.88, 0.85, 0.82, 0.8, 0.78,
)

MAX_BUBBLE_VOLUME_FRACTION = 0.05
SMALL_BUBBLE_FRACTION = 0.001
BUBBLE_CEILING_PENALTY = 2.0  # bar per unit volume fraction
TEMPERATURE_RISK_COEFFICIENT = 0.02  # per degree C above 37
REFERENCE_TEMPERATURE = 37.0
RISK_SCALE = 45.0
MIN_STOP_TIME = 1
MAX_STOP_TIME = 30


@dataclass(frozen=True)
class TbdmParameters:
    """Global TBDM settings; conservatism factor must lie in [0.5, 2.0]."""

    conservatism_factor: float = 1.0
    body_temperature: float = 37.0  # degrees C
    metabolic_bubble_rate: float = 0.001  # per minute
    surface_tension_parameter: float = 0.0728  # N/m

    def __post_init__(self):
        if not (0.5 <= self.conservatism_factor <= 2.0):
            raise InvalidParameterError("TBDM conservatism factor must be between 0.5 and 2.0")


@dataclass
class TbdmCompartment(TissueCompartment):
    """Haldane compartment with nucleation threshold and bubble fraction."""

    base_nucleation_threshold: float = 0.0
    nucleation_threshold: float = 0.0
    bubble_volume_fraction: float = 0.0
    bubble_elimination_rate: float = 0.0
    bubble_formation_coefficient: float = 0.0
    tissue_perfusion: float = 0.0
    metabolic_coefficient: float = 1.0


class TbdmModel(DecompressionModel):
    """TBDM with a conservatism factor in [0.5, 2.0] (default 1.0)."""

    def __init__(
        self,
        conservatism_factor: float = 1.0,
        body_temperature: float = 37.0,
        metabolic_bubble_rate: float = 0.001,
        surface_tension_parameter: float = 0.0728,
    ):
        self.parameters = TbdmParameters(
            conservatism_factor=conservatism_factor,
            body_temperature=body_temperature,
            metabolic_bubble_rate=metabolic_bubble_rate,
            surface_tension_parameter=surface_tension_parameter,
        )
        super().__init__()

    def _create_compartments(self) -> List[TbdmCompartment]:
        factor = self.parameters.conservatism_factor
        return [
            TbdmCompartment(
                number=i + 1,
                nitrogen_half_time=TBDM_N2_HALFTIMES[i],
                helium_half_time=TBDM_HE_HALFTIMES[i],
                base_nucleation_threshold=NUCLEATION_THRESHOLDS[i],
                nucleation_threshold=NUCLEATION_THRESHOLDS[i] / factor,
                bubble_elimination_rate=BUBBLE_ELIMINATION_RATES[i],
                bubble_formation_coefficient=BUBBLE_FORMATION_COEFFICIENTS[i],
                tissue_perfusion=TISSUE_PERFUSION_RATES[i],
                metabolic_coefficient=1.0 + 0.1 * math.exp(-0.2 * i),
            )
            for i in range(len(TBDM_N2_HALFTIMES))
        ]

    def _update_compartments(self, time_step: float) -> None:
        self._apply_haldane(time_step)
        for c in self.compartments:
            self._update_bubble_fraction(c, time_step)

    def _update_bubble_fraction(self, c: TbdmCompartment, time_step: float) -> None:
        params = self.parameters
        ambient = self.dive_state.ambient_pressure
        supersaturation = max(0.0, total_loading(c) - ambient)

        if supersaturation > c.nucleation_threshold:
            formation = (
                (supersaturation - c.nucleation_threshold)
                * c.bubble_formation_coefficient
                * params.metabolic_bubble_rate
            )
            c.bubble_volume_fraction = min(
                MAX_BUBBLE_VOLUME_FRACTION, c.bubble_volume_fraction + formation * time_step
            )

        # Perfusion and pressure both speed up elimination
        elimination_rate = (
            c.bubble_elimination_rate
            * (c.tissue_perfusion / 100.0)
            * (ambient / self.surface_pressure)
        )
        c.bubble_volume_fraction *= math.exp(-elimination_rate * time_step)

        if c.bubble_volume_fraction < SMALL_BUBBLE_FRACTION:
            c.bubble_volume_fraction = max(
                0.0, c.bubble_volume_fraction - params.surface_tension_parameter * time_step
            )

    def _reset_extras(self) -> None:
        for c in self.compartments:
            c.bubble_volume_fraction = 0.0

    def _allowable_supersaturation(self, c: TbdmCompartment) -> float:
        return c.nucleation_threshold - BUBBLE_CEILING_PENALTY * c.bubble_volume_fraction

    # ------------------------------------------------------------------
    # Kernel contract
    # ------------------------------------------------------------------

    def calculate_ceiling(self) -> float:
        ceiling = 0.0
        for c in self.compartments:
            pressure = total_loading(c) - self._allowable_supersaturation(c)
            ceiling = max(ceiling, self._depth_at(pressure))
        return ceiling

    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        """Longest of off-gassing to the stop pressure and bubble elimination.

        Off-gassing: half_time * log2(loading / P(stop)).
        Bubbles: ln(fraction / 0.001) / elimination rate.
        """
        ambient = self._ambient(depth)
        longest = 0.0
        for c in self.compartments:
            loading = total_loading(c)
            off_gassing = c.nitrogen_half_time * math.log2(loading / ambient) if loading > 0 else 0.0
            bubbles = 0.0
            if c.bubble_volume_fraction > SMALL_BUBBLE_FRACTION:
                bubbles = math.log(c.bubble_volume_fraction / SMALL_BUBBLE_FRACTION) / c.bubble_elimination_rate
            longest = max(longest, off_gassing, bubbles)

        minutes = math.ceil(round(longest * self.parameters.conservatism_factor, 9))
        return max(MIN_STOP_TIME, min(MAX_STOP_TIME, minutes))

    def calculate_dcs_risk(self) -> float:
        """Squared worst tissue risk, where tissue risk is the larger of
        supersaturation over the nucleation threshold and bubble fraction over
        its maximum, adjusted for temperature and metabolism.
        """
        ambient = self.dive_state.ambient_pressure
        temperature_adjustment = 1.0 + (
            (self.parameters.body_temperature - REFERENCE_TEMPERATURE) * TEMPERATURE_RISK_COEFFICIENT
        )

        worst = 0.0
        for c in self.compartments:
            supersaturation = max(0.0, total_loading(c) - ambient)
            nucleation_risk = supersaturation / c.nucleation_threshold
            bubble_risk = c.bubble_volume_fraction / MAX_BUBBLE_VOLUME_FRACTION
            tissue_risk = max(nucleation_risk, bubble_risk)
            worst = max(worst, tissue_risk * temperature_adjustment * c.metabolic_coefficient)
        return round(min(100.0, worst ** 2 * RISK_SCALE), 1)

    def calculate_bubble_risk(self) -> float:
        """Largest bubble fraction relative to the maximum fraction (0-1)."""
        return max(c.bubble_volume_fraction / MAX_BUBBLE_VOLUME_FRACTION for c in self.compartments)

    def get_model_name(self) -> str:
        return f"TBDM (Gernhardt-Lambertsen) CF:{self.parameters.conservatism_factor:g}"

    # ------------------------------------------------------------------
    # Parameters and inspection
    # ------------------------------------------------------------------

    def get_parameters(self) -> TbdmParameters:
        return self.parameters

    def update_parameters(self, **changes) -> None:
        """Update parameters; invalid values raise and leave the model unchanged.

        Loadings and bubble fractions are kept; only the nucleation thresholds
        follow the new conservatism factor.
        """
        known = {f.name for f in fields(TbdmParameters)}
        unknown = set(changes) - known
        if unknown:
            raise InvalidParameterError(f"Unknown TBDM parameters: {sorted(unknown)}")
        self.parameters = replace(self.parameters, **changes)

        factor = self.parameters.conservatism_factor
        for c in self.compartments:
            c.nucleation_threshold = c.base_nucleation_threshold / factor
        logger.debug(f"TBDM parameters now {self.parameters}")

    def get_tbdm_compartment_data(self, compartment_number: int) -> Dict:
        c = self._compartment(compartment_number)
        return {
            "number": c.number,
            "nitrogen_loading": c.nitrogen_loading,
            "helium_loading": c.helium_loading,
            "total_loading": total_loading(c),
            "nucleation_threshold": c.nucleation_threshold,
            "bubble_volume_fraction": c.bubble_volume_fraction,
            "bubble_elimination_rate": c.bubble_elimination_rate,
            "bubble_formation_coefficient": c.bubble_formation_coefficient,
            "tissue_perfusion": c.tissue_perfusion,
            "metabolic_coefficient": c.metabolic_coefficient,
        }
