"""
NMRI98 linear-exponential model.

Three compartments (fast, intermediate, slow) with nitrogen, helium and
optionally oxygen kinetics. Each compartment has a fixed M-value (allowed
supersaturation over ambient), a linear-elimination slope and a crossover
pressure. Oxygen above a compartment threshold adds to the effective loading
(50% weight) for the ceiling and to the risk (30% weight).

Out-of-range parameters are clamped, not rejected.
"""

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Dict, List, Tuple

from .errors import InvalidParameterError
from .kernel import LN2, DecompressionModel
from .linear_exponential import linear_exponential_loading
from .state import SURFACE_PRESSURE, TissueCompartment, inspired_pressure, total_loading

logger = logging.getLogger(__name__)

NMRI98_N2_HALFTIMES: Tuple[float, ...] = (8.0, 40.0, 120.0)
NMRI98_HE_HALFTIMES: Tuple[float, ...] = (3.0, 15.1, 45.3)
NMRI98_O2_HALFTIMES: Tuple[float, ...] = (6.0, 30.0, 90.0)
NMRI98_M_VALUES: Tuple[float, ...] = (1.6, 1.2, 1.0)
NMRI98_LINEAR_SLOPES: Tuple[float, ...] = (0.8, 0.5, 0.3)
NMRI98_CROSSOVER_PRESSURES: Tuple[float, ...] = (0.5, 0.3, 0.2)
NMRI98_O2_THRESHOLDS: Tuple[float, ...] = (1.4, 1.0, 0.8)

SURFACE_OXYGEN_LOADING = 0.21 * SURFACE_PRESSURE
OXYGEN_CEILING_WEIGHT = 0.5
OXYGEN_RISK_WEIGHT = 0.3
MAX_STOP_TIME = 30

# (min, max) per clamped parameter
PARAMETER_BOUNDS = {
    "conservatism": (0, 5),
    "max_dcs_risk": (0.1, 10.0),
    "safety_factor": (1.0, 2.0),
}


@dataclass(frozen=True)
class Nmri98Parameters:
    conservatism: float = 3
    max_dcs_risk: float = 2.0  # percent
    safety_factor: float = 1.2
    enable_oxygen_tracking: bool = True


@dataclass
class Nmri98Compartment(TissueCompartment):
    """Linear-exponential compartment with oxygen loading and hazard."""

    oxygen_half_time: float = 0.0
    m_value: float = 0.0
    linear_slope: float = 0.0
    crossover_pressure: float = 0.0
    oxygen_threshold: float = 0.0
    oxygen_loading: float = SURFACE_OXYGEN_LOADING
    accumulated_hazard: float = 0.0


def clamp_parameters(params, bounds: Dict[str, Tuple[float, float]], label: str):
    """Clamp the bounded fields of a frozen parameter dataclass.

    Each clamped value is logged; nothing is rejected.
    """
    changes = {}
    for name, (low, high) in bounds.items():
        value = getattr(params, name)
        clamped = min(high, max(low, value))
        if clamped != value:
            logger.warning(f"{label} {name} {value} clamped to {clamped}")
            changes[name] = clamped
    return replace(params, **changes) if changes else params


def merge_parameters(params, changes: Dict, label: str):
    known = {f.name for f in fields(params)}
    unknown = set(changes) - known
    if unknown:
        raise InvalidParameterError(f"Unknown {label} parameters: {sorted(unknown)}")
    return replace(params, **changes)


class Nmri98Model(DecompressionModel):
    """NMRI98 LEM with conservatism, DCS-risk target and safety factor."""

    def __init__(
        self,
        conservatism: float = 3,
        max_dcs_risk: float = 2.0,
        safety_factor: float = 1.2,
        enable_oxygen_tracking: bool = True,
    ):
        self.parameters = clamp_parameters(
            Nmri98Parameters(
                conservatism=conservatism,
                max_dcs_risk=max_dcs_risk,
                safety_factor=safety_factor,
                enable_oxygen_tracking=enable_oxygen_tracking,
            ),
            PARAMETER_BOUNDS,
            "NMRI98",
        )
        super().__init__()

    def _create_compartments(self) -> List[Nmri98Compartment]:
        return [
            Nmri98Compartment(
                number=i + 1,
                nitrogen_half_time=NMRI98_N2_HALFTIMES[i],
                helium_half_time=NMRI98_HE_HALFTIMES[i],
                oxygen_half_time=NMRI98_O2_HALFTIMES[i],
                m_value=NMRI98_M_VALUES[i],
                linear_slope=NMRI98_LINEAR_SLOPES[i],
                crossover_pressure=NMRI98_CROSSOVER_PRESSURES[i],
                oxygen_threshold=NMRI98_O2_THRESHOLDS[i],
            )
            for i in range(len(NMRI98_N2_HALFTIMES))
        ]

    def _allowable(self, c: Nmri98Compartment) -> float:
        """Allowed supersaturation over ambient for a compartment (bar)."""
        params = self.parameters
        return c.m_value * (1.0 - 0.1 * params.conservatism) / params.safety_factor

    def _oxygen_excess(self, c: Nmri98Compartment) -> float:
        if not self.parameters.enable_oxygen_tracking:
            return 0.0
        return max(0.0, c.oxygen_loading - c.oxygen_threshold)

    def _update_compartments(self, time_step: float) -> None:
        ambient = self.dive_state.ambient_pressure
        p_n2, p_he = self._inspired_pressures()
        p_o2 = inspired_pressure(self.dive_state.gas_mix.oxygen, ambient)
        tracking = self.parameters.enable_oxygen_tracking

        for c in self.compartments:
            c.nitrogen_loading = linear_exponential_loading(
                c.nitrogen_loading, p_n2, ambient, c.nitrogen_half_time,
                c.crossover_pressure, c.linear_slope, time_step,
            )
            c.helium_loading = linear_exponential_loading(
                c.helium_loading, p_he, ambient, c.helium_half_time,
                c.crossover_pressure, c.linear_slope, time_step,
            )
            if tracking:
                c.oxygen_loading = linear_exponential_loading(
                    c.oxygen_loading, p_o2, ambient, c.oxygen_half_time,
                    c.crossover_pressure, c.linear_slope, time_step,
                )

            allowable = self._allowable(c)
            excess = total_loading(c) - ambient - allowable
            if excess > 0:
                c.accumulated_hazard += excess / allowable * time_step

    def _reset_extras(self) -> None:
        for c in self.compartments:
            c.oxygen_loading = SURFACE_OXYGEN_LOADING
            c.accumulated_hazard = 0.0

    # ------------------------------------------------------------------
    # Kernel contract
    # ------------------------------------------------------------------

    def calculate_ceiling(self) -> float:
        ceiling = 0.0
        for c in self.compartments:
            loading = total_loading(c) + OXYGEN_CEILING_WEIGHT * self._oxygen_excess(c)
            pressure = loading - self._allowable(c)
            ceiling = max(ceiling, self._depth_at(pressure))
        return ceiling

    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        ambient = self._ambient(depth)
        longest = 0.0
        for c in self.compartments:
            loading = total_loading(c)
            excess = loading - (ambient + self._allowable(c))
            if excess <= 0:
                continue

            supersaturation = loading - ambient
            if supersaturation > c.crossover_pressure:
                rate = c.linear_slope * (supersaturation - c.crossover_pressure) / c.nitrogen_half_time
                needed = excess / rate
            else:
                needed = c.nitrogen_half_time * LN2 * excess / (supersaturation + 0.1)
            longest = max(longest, needed)
        return max(1, min(MAX_STOP_TIME, math.ceil(longest)))

    def calculate_dcs_risk(self) -> float:
        ambient = self.dive_state.ambient_pressure
        inert_risk = 0.0
        oxygen_risk = 0.0
        for c in self.compartments:
            allowable = self._allowable(c)
            excess = total_loading(c) - (ambient + allowable)
            if excess > 0:
                inert_risk = max(inert_risk, excess / allowable)
            oxygen_excess = self._oxygen_excess(c)
            if oxygen_excess > 0:
                oxygen_risk = max(oxygen_risk, oxygen_excess / c.oxygen_threshold)

        combined = inert_risk + OXYGEN_RISK_WEIGHT * oxygen_risk
        return round(min(100.0, combined * self.parameters.max_dcs_risk * 100.0), 1)

    def calculate_hazard_risk(self) -> float:
        """Survival-function risk from the accumulated hazard integral."""
        params = self.parameters
        hazard = max(c.accumulated_hazard for c in self.compartments)
        probability = 1.0 - math.exp(-hazard * params.max_dcs_risk / 2.0)
        risk = probability * (1.0 + 0.05 * params.conservatism) * 100.0
        return round(min(100.0, risk), 1)

    def get_model_name(self) -> str:
        params = self.parameters
        return (
            f"NMRI98 LEM (Conservatism: {params.conservatism:g}, "
            f"Risk: {params.max_dcs_risk:g}%)"
        )

    # ------------------------------------------------------------------
    # Parameters and inspection
    # ------------------------------------------------------------------

    def get_parameters(self) -> Nmri98Parameters:
        return self.parameters

    def update_parameters(self, **changes) -> None:
        """Merge and clamp parameter changes."""
        merged = merge_parameters(self.parameters, changes, "NMRI98")
        self.parameters = clamp_parameters(merged, PARAMETER_BOUNDS, "NMRI98")
        logger.debug(f"NMRI98 parameters now {self.parameters}")

    def get_nmri98_compartment_data(self, compartment_number: int) -> Dict:
        c = self._compartment(compartment_number)
        return {
            "number": c.number,
            "nitrogen_loading": c.nitrogen_loading,
            "helium_loading": c.helium_loading,
            "oxygen_loading": c.oxygen_loading,
            "total_loading": total_loading(c),
            "m_value": c.m_value,
            "allowable_supersaturation": self._allowable(c),
            "linear_slope": c.linear_slope,
            "crossover_pressure": c.crossover_pressure,
            "oxygen_threshold": c.oxygen_threshold,
            "accumulated_hazard": c.accumulated_hazard,
        }

    def get_all_nmri98_compartments(self) -> List[Dict]:
        return [self.get_nmri98_compartment_data(c.number) for c in self.compartments]

    def get_model_status(self) -> Dict:
        """Snapshot of parameters, planning results and compartments."""
        return {
            "model_name": self.get_model_name(),
            "parameters": self.parameters,
            "dive_state": self.dive_state,
            "ceiling": self.calculate_ceiling(),
            "can_ascend_directly": self.can_ascend_directly(),
            "dcs_risk": self.calculate_dcs_risk(),
            "hazard_risk": self.calculate_hazard_risk(),
            "compartments": self.get_all_nmri98_compartments(),
        }
