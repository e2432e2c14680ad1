"""
Value types shared by every decompression model.

Gas mixes, dive state, tissue compartments and decompression stops, plus the
pure helper functions that derive values from them. Pressures are in bar,
depths in meters and times in minutes.
"""

from dataclasses import dataclass

from .errors import InvalidParameterError

SURFACE_PRESSURE = 1.013  # bar
PRESSURE_PER_METER = 0.1  # bar/m of seawater
SURFACE_NITROGEN_FRACTION = 0.79


@dataclass(frozen=True)
class GasMix:
    """Breathing gas as oxygen and helium fractions; nitrogen is the rest."""

    oxygen: float
    helium: float = 0.0

    def __post_init__(self):
        if self.oxygen < 0 or self.helium < 0:
            raise InvalidParameterError(
                f"Gas fractions must be non-negative, got O2={self.oxygen}, He={self.helium}"
            )
        if self.oxygen + self.helium > 1.0 + 1e-9:
            raise InvalidParameterError(
                f"Oxygen + helium must not exceed 1.0, got {self.oxygen + self.helium}"
            )


AIR = GasMix(oxygen=0.21, helium=0.0)


def nitrogen_fraction(mix: GasMix) -> float:
    """Nitrogen fraction of a mix (1 - O2 - He)."""
    return max(0.0, 1.0 - mix.oxygen - mix.helium)


def ambient_pressure(depth: float, surface_pressure: float = SURFACE_PRESSURE) -> float:
    """Absolute pressure in bar at a depth in meters."""
    return surface_pressure + depth * PRESSURE_PER_METER


def depth_from_pressure(pressure: float, surface_pressure: float = SURFACE_PRESSURE) -> float:
    """Depth in meters for an absolute pressure (negative above the surface)."""
    return (pressure - surface_pressure) / PRESSURE_PER_METER


def inspired_pressure(fraction: float, ambient: float) -> float:
    """Inspired partial pressure of a gas fraction at an ambient pressure."""
    return fraction * ambient


@dataclass(frozen=True)
class DiveState:
    """Where the diver is and what they breathe.

    ambient_pressure always follows depth; build new states with
    ``DiveState.at(...)`` or ``dataclasses.replace`` followed by ``at``.
    """

    depth: float = 0.0
    time: float = 0.0
    gas_mix: GasMix = AIR
    ambient_pressure: float = SURFACE_PRESSURE

    @classmethod
    def at(
        cls,
        depth: float,
        time: float = 0.0,
        gas_mix: GasMix = AIR,
        surface_pressure: float = SURFACE_PRESSURE,
    ) -> "DiveState":
        if depth < 0:
            raise InvalidParameterError(f"Depth must be non-negative, got {depth}")
        if time < 0:
            raise InvalidParameterError(f"Time must be non-negative, got {time}")
        return cls(
            depth=depth,
            time=time,
            gas_mix=gas_mix,
            ambient_pressure=ambient_pressure(depth, surface_pressure),
        )


@dataclass
class TissueCompartment:
    """Inert-gas loading of one tissue compartment.

    Variants subclass this with their own fixed parameters and extra
    mutable fields. Loadings are partial-pressure equivalents in bar.
    """

    number: int
    nitrogen_half_time: float
    helium_half_time: float
    nitrogen_loading: float = SURFACE_NITROGEN_FRACTION * SURFACE_PRESSURE
    helium_loading: float = 0.0


def total_loading(compartment: TissueCompartment) -> float:
    """Combined nitrogen + helium loading of a compartment."""
    return compartment.nitrogen_loading + compartment.helium_loading


@dataclass(frozen=True)
class DecompressionStop:
    """One planned stop: hold ``time`` minutes at ``depth`` on ``gas_mix``."""

    depth: float
    time: float
    gas_mix: GasMix = AIR
