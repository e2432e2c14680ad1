"""
Hills-style thermodynamic decompression model.

16 compartments described by thermal properties instead of bare half-times.
Each compartment has a tissue temperature that relaxes toward a target set by
core temperature, ambient pressure and metabolic heat. Temperature changes
the gas exchange rate twice:

- an Arrhenius factor exp(-Ea/R * (1/T - 1/T_core)) on dissolution kinetics
- a solubility ratio 1 + c * (T - T_core); more soluble tissue changes tension
  more slowly

Tension still equilibrates to the inspired partial pressure. The allowable
supersaturation is 1.6 bar at core temperature, scaled with absolute tissue
temperature.
"""

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Dict, List, Tuple

from .errors import InvalidParameterError
from .kernel import DecompressionModel, haldane_loading
from .state import TissueCompartment, total_loading

logger = logging.getLogger(__name__)

HILLS_N2_HALFTIMES: Tuple[float, ...] = (
    2.5, 5.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3,
    77.0, 109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0,
)
HELIUM_HALFTIME_RATIO = 0.4

# Thermal diffusivity (m^2/s)
THERMAL_DIFFUSIVITIES: Tuple[float, ...] = tuple(
    d * 1e-7 for d in (
        1.5, 1.3, 1.1, 0.95, 0.82, 0.71, 0.63, 0.56,
        0.51, 0.47, 0.44, 0.41, 0.39, 0.37, 0.35, 0.34,
    )
)

# Specific heat capacity (J/kg/K)
HEAT_CAPACITIES: Tuple[float, ...] = (
    3800, 3700, 3600, 3500, 3400, 3300, 3250, 3200,
    3150, 3100, 3080, 3060, 3040, 3020, 3000, 2980,
)

N2_SOLUBILITIES: Tuple[float, ...] = tuple(round(0.012 + 0.001 * i, 3) for i in range(16))
HE_SOLUBILITIES: Tuple[float, ...] = tuple(round(0.008 + 0.001 * i, 3) for i in range(16))

ACTIVATION_ENERGY = 50000.0  # J/mol
GAS_CONSTANT = 8.314  # J/(mol K)
KELVIN = 273.15
REFERENCE_TEMPERATURE_K = 310.15

SOLUBILITY_TEMP_COEFFICIENT = -0.02  # per degree C
THERMAL_EQUILIBRIUM_CONSTANT = 0.85
DIFFUSIVITY_RATE_SCALE = 1.0e7  # diffusivity -> relaxation rate per hour
PRESSURE_HEATING = 0.02  # degrees C per bar above surface
METABOLIC_HEATING = 0.1  # degrees C per unit metabolic rate

ALLOWABLE_SUPERSATURATION = 1.6  # bar at reference temperature
N2_DISSOLUTION_ENTHALPY = -10.5  # kJ/mol
HE_DISSOLUTION_ENTHALPY = -0.4  # kJ/mol

MIN_CONSERVATISM_FACTOR = 0.5
MAX_CONSERVATISM_FACTOR = 2.0
MIN_PERFUSION_MULTIPLIER = 0.1
MAX_PERFUSION_MULTIPLIER = 5.0
MIN_STOP_TIME = 1
MAX_STOP_TIME = 20


@dataclass(frozen=True)
class ThermodynamicParameters:
    """Global thermodynamic settings (temperatures in degrees C)."""

    conservatism_factor: float = 1.0
    core_temperature: float = 37.0
    metabolic_rate: float = 1.2
    perfusion_multiplier: float = 1.0


@dataclass
class HillsCompartment(TissueCompartment):
    """Compartment with thermal properties and a tissue temperature."""

    thermal_diffusivity: float = 0.0
    heat_capacity: float = 0.0
    nitrogen_solubility: float = 0.0
    helium_solubility: float = 0.0
    tissue_temperature: float = 37.0
    dissolution_enthalpy: float = 0.0


def thermal_rate(compartment: HillsCompartment) -> float:
    """Temperature relaxation rate per minute."""
    return (
        compartment.thermal_diffusivity
        * DIFFUSIVITY_RATE_SCALE
        * THERMAL_EQUILIBRIUM_CONSTANT
        / 60.0
    )


def solubility_ratio(temperature: float, core_temperature: float) -> float:
    return 1.0 + SOLUBILITY_TEMP_COEFFICIENT * (temperature - core_temperature)


def arrhenius_factor(temperature: float, core_temperature: float) -> float:
    """Dissolution rate relative to the rate at core temperature."""
    t_kelvin = temperature + KELVIN
    core_kelvin = core_temperature + KELVIN
    return math.exp(-ACTIVATION_ENERGY / GAS_CONSTANT * (1.0 / t_kelvin - 1.0 / core_kelvin))


def allowable_supersaturation(temperature: float) -> float:
    return ALLOWABLE_SUPERSATURATION * (temperature + KELVIN) / REFERENCE_TEMPERATURE_K


class HillsModel(DecompressionModel):
    """Thermodynamic model; conservatism factor clamped to [0.5, 2.0]."""

    def __init__(
        self,
        conservatism_factor: float = 1.0,
        core_temperature: float = 37.0,
        metabolic_rate: float = 1.2,
        perfusion_multiplier: float = 1.0,
    ):
        self.parameters = self._clamped(ThermodynamicParameters(
            conservatism_factor=conservatism_factor,
            core_temperature=core_temperature,
            metabolic_rate=metabolic_rate,
            perfusion_multiplier=perfusion_multiplier,
        ))
        super().__init__()
        self._refresh_derived_state()

    @staticmethod
    def _clamped(params: ThermodynamicParameters) -> ThermodynamicParameters:
        """Conservatism factor into [0.5, 2.0], perfusion multiplier into [0.1, 5.0]."""
        factor = min(MAX_CONSERVATISM_FACTOR, max(MIN_CONSERVATISM_FACTOR, params.conservatism_factor))
        if factor != params.conservatism_factor:
            logger.warning(
                f"Hills conservatism factor {params.conservatism_factor} clamped to {factor}"
            )
        perfusion = min(
            MAX_PERFUSION_MULTIPLIER, max(MIN_PERFUSION_MULTIPLIER, params.perfusion_multiplier)
        )
        if perfusion != params.perfusion_multiplier:
            logger.warning(
                f"Hills perfusion multiplier {params.perfusion_multiplier} clamped to {perfusion}"
            )
        return replace(params, conservatism_factor=factor, perfusion_multiplier=perfusion)

    def _create_compartments(self) -> List[HillsCompartment]:
        core = self.parameters.core_temperature
        return [
            HillsCompartment(
                number=i + 1,
                nitrogen_half_time=HILLS_N2_HALFTIMES[i],
                helium_half_time=HILLS_N2_HALFTIMES[i] * HELIUM_HALFTIME_RATIO,
                thermal_diffusivity=THERMAL_DIFFUSIVITIES[i],
                heat_capacity=HEAT_CAPACITIES[i],
                nitrogen_solubility=N2_SOLUBILITIES[i],
                helium_solubility=HE_SOLUBILITIES[i],
                tissue_temperature=core,
            )
            for i in range(len(HILLS_N2_HALFTIMES))
        ]

    def _target_temperature(self, ambient: float) -> float:
        params = self.parameters
        return (
            params.core_temperature
            + PRESSURE_HEATING * (ambient - self.surface_pressure)
            + METABOLIC_HEATING * params.metabolic_rate
        )

    def _update_compartments(self, time_step: float) -> None:
        params = self.parameters
        ambient = self.dive_state.ambient_pressure
        target = self._target_temperature(ambient)
        p_n2, p_he = self._inspired_pressures()

        for c in self.compartments:
            decay = math.exp(-thermal_rate(c) * time_step)
            c.tissue_temperature = target + (c.tissue_temperature - target) * decay

            multiplier = (
                arrhenius_factor(c.tissue_temperature, params.core_temperature)
                * params.perfusion_multiplier
                / solubility_ratio(c.tissue_temperature, params.core_temperature)
            )
            c.nitrogen_loading = haldane_loading(
                c.nitrogen_loading, p_n2, c.nitrogen_half_time / multiplier, time_step
            )
            c.helium_loading = haldane_loading(
                c.helium_loading, p_he, c.helium_half_time / multiplier, time_step
            )
            self._update_enthalpy(c)

    @staticmethod
    def _update_enthalpy(c: HillsCompartment) -> None:
        c.dissolution_enthalpy = (
            c.nitrogen_loading * N2_DISSOLUTION_ENTHALPY
            + c.helium_loading * HE_DISSOLUTION_ENTHALPY
        ) * 1000.0

    def _refresh_derived_state(self) -> None:
        for c in self.compartments:
            self._update_enthalpy(c)

    def _reset_extras(self) -> None:
        for c in self.compartments:
            c.tissue_temperature = self.parameters.core_temperature
        self._refresh_derived_state()

    # ------------------------------------------------------------------
    # Kernel contract
    # ------------------------------------------------------------------

    def calculate_ceiling(self) -> float:
        ceiling = 0.0
        for c in self.compartments:
            pressure = total_loading(c) - allowable_supersaturation(c.tissue_temperature)
            ceiling = max(ceiling, self._depth_at(pressure))
        return ceiling * self.parameters.conservatism_factor

    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        ambient = self._ambient(depth)
        core = self.parameters.core_temperature
        longest = 0.0
        for c in self.compartments:
            loading = total_loading(c)
            if loading <= ambient:
                continue
            supersaturation = (loading - ambient) / ambient
            off_gassing = c.nitrogen_half_time * math.log(1.0 + supersaturation)
            thermal_lag = abs(c.tissue_temperature - core) / thermal_rate(c)
            longest = max(longest, off_gassing, thermal_lag)
        return min(MAX_STOP_TIME, max(MIN_STOP_TIME, round(longest)))

    def calculate_dcs_risk(self) -> float:
        """Thermodynamic supersaturation times Arrhenius nucleation probability."""
        ambient = self.dive_state.ambient_pressure
        worst = 0.0
        for c in self.compartments:
            t_kelvin = c.tissue_temperature + KELVIN
            supersaturation = max(0.0, (total_loading(c) - ambient) / ambient)
            supersaturation *= REFERENCE_TEMPERATURE_K / t_kelvin
            nucleation = min(1.0, math.exp(-ACTIVATION_ENERGY * supersaturation / (GAS_CONSTANT * t_kelvin)))
            worst = max(worst, supersaturation * nucleation * 100.0)
        risk = worst * self.parameters.conservatism_factor
        return round(min(100.0, risk), 1)

    def get_model_name(self) -> str:
        return f"Thermodynamic (Hills) - CF: {self.parameters.conservatism_factor:.1f}"

    # ------------------------------------------------------------------
    # Parameters and inspection
    # ------------------------------------------------------------------

    def get_thermodynamic_parameters(self) -> ThermodynamicParameters:
        return self.parameters

    def set_thermodynamic_parameters(self, **changes) -> None:
        """Merge changes into the parameters; bounded fields are clamped."""
        known = {f.name for f in fields(ThermodynamicParameters)}
        unknown = set(changes) - known
        if unknown:
            raise InvalidParameterError(f"Unknown thermodynamic parameters: {sorted(unknown)}")
        self.parameters = self._clamped(replace(self.parameters, **changes))

    def get_hills_compartment_data(self, compartment_number: int) -> Dict:
        c = self._compartment(compartment_number)
        ratio = solubility_ratio(c.tissue_temperature, self.parameters.core_temperature)
        return {
            "number": c.number,
            "nitrogen_loading": c.nitrogen_loading,
            "helium_loading": c.helium_loading,
            "total_loading": total_loading(c),
            "tissue_temperature": c.tissue_temperature,
            "thermal_diffusivity": c.thermal_diffusivity,
            "heat_capacity": c.heat_capacity,
            "nitrogen_solubility": c.nitrogen_solubility * ratio,
            "helium_solubility": c.helium_solubility * ratio,
            "dissolution_enthalpy": c.dissolution_enthalpy,
        }
