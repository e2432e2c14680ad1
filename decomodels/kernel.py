"""
Simulation kernel shared by every decompression model.

DecompressionModel owns the dive state and one list of tissue compartments,
and implements everything that does not depend on a model's physiology:
time stepping, stop generation on the 3 m grid, stop consolidation onto the
5 m grid, time-to-surface, reset and state copy. It also provides the two
generic root-finding procedures used by variants whose tolerance cannot be
inverted in closed form:

- iterative ceiling search (step the test depth up from the surface)
- minimum stop time by binary search on simulated loadings

Both procedures work on numpy copies of the loadings, so the live
compartments are never modified while a hypothetical state is evaluated.
"""

import logging
import math
from abc import ABC, abstractmethod
from copy import copy
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidParameterError
from .state import (
    SURFACE_NITROGEN_FRACTION,
    SURFACE_PRESSURE,
    DecompressionStop,
    DiveState,
    GasMix,
    TissueCompartment,
    ambient_pressure,
    depth_from_pressure,
    inspired_pressure,
    nitrogen_fraction,
)

logger = logging.getLogger(__name__)

LN2 = math.log(2)

STOP_INCREMENT = 3.0  # m
CONSOLIDATED_STOP_INCREMENT = 5.0  # m
DEFAULT_ASCENT_RATE = 9.0  # m/min

CEILING_SEARCH_STEP = 0.3  # m
MAX_CEILING_DEPTH = 200.0  # m
MAX_STOP_TIME = 120.0  # min
STOP_TIME_PRECISION = 0.1  # min

# (depth, n2_loadings, he_loadings) -> margin, or None when not tolerated
ToleranceFn = Callable[[float, np.ndarray, np.ndarray], Optional[float]]


def haldane_loading(
    initial: float, partial_pressure: float, half_time: float, time_step: float
) -> float:
    """Closed-form exponential gas exchange over one time step.

    P(t) = P_insp + (P0 - P_insp) * exp(-k * t), k = ln2 / half_time
    """
    k = LN2 / half_time
    return partial_pressure + (initial - partial_pressure) * math.exp(-k * time_step)


def haldane_vec(
    initial: np.ndarray,
    partial_pressure: float,
    half_times: np.ndarray,
    time_step: float,
) -> np.ndarray:
    """Vectorized Haldane update for all compartments at once."""
    k = LN2 / half_times
    return partial_pressure + (initial - partial_pressure) * np.exp(-k * time_step)


def consolidate_stops(
    stops: Sequence[DecompressionStop],
    increment: float = CONSOLIDATED_STOP_INCREMENT,
) -> List[DecompressionStop]:
    """Merge stops onto a coarser depth grid.

    Each depth is rounded up to the next multiple of ``increment``; stops that
    land on the same depth have their times summed. Result is deepest first.
    """
    times = {}
    gases = {}
    for stop in stops:
        depth = math.ceil(round(stop.depth / increment, 9)) * increment
        times[depth] = times.get(depth, 0.0) + stop.time
        gases.setdefault(depth, stop.gas_mix)

    return [
        DecompressionStop(depth=float(depth), time=times[depth], gas_mix=gases[depth])
        for depth in sorted(times, reverse=True)
    ]


class DecompressionModel(ABC):
    """Common contract and shared algorithms for all decompression models.

    Subclasses provide:
        _create_compartments()          -> fresh list of their compartment type
        _update_compartments(dt)        -> advance loadings (and extra state)
        _calculate_stop_time(d, first)  -> minutes to hold at stop depth d
        calculate_ceiling()
        calculate_dcs_risk()
        get_model_name()

    and optionally _reset_extras(), _refresh_derived_state(),
    _tissue_tolerance() and _simulate_loadings().
    """

    def __init__(self):
        self.surface_pressure = SURFACE_PRESSURE
        self.dive_state = DiveState.at(0.0, surface_pressure=self.surface_pressure)
        self.compartments: List[TissueCompartment] = self._create_compartments()

    # ------------------------------------------------------------------
    # Variant hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _create_compartments(self) -> List[TissueCompartment]:
        ...

    @abstractmethod
    def _update_compartments(self, time_step: float) -> None:
        ...

    @abstractmethod
    def _calculate_stop_time(self, depth: float, first_stop_depth: float) -> float:
        ...

    @abstractmethod
    def calculate_ceiling(self) -> float:
        """Shallowest safe depth in meters; 0 means direct ascent is safe."""

    @abstractmethod
    def calculate_dcs_risk(self) -> float:
        """Heuristic DCS risk as a percentage in [0, 100]."""

    @abstractmethod
    def get_model_name(self) -> str:
        ...

    def _reset_extras(self) -> None:
        """Restore variant-specific mutable fields to their initial values."""

    def _refresh_derived_state(self) -> None:
        """Recompute derived fields after loadings were replaced wholesale."""

    def _tissue_tolerance(
        self, depth: float, n2: np.ndarray, he: np.ndarray
    ) -> Optional[float]:
        """Margin to the variant's limit at ``depth`` for the given loadings.

        Returns None when the loadings are not tolerated at that depth.
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not define a tissue tolerance"
        )

    def _simulate_loadings(
        self, n2: np.ndarray, he: np.ndarray, depth: float, duration: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Loadings after ``duration`` minutes at ``depth`` on the current gas."""
        p_n2, p_he = self._inspired_pressures(depth)
        n2_half, he_half = self._half_time_arrays()
        return (
            haldane_vec(n2, p_n2, n2_half, duration),
            haldane_vec(he, p_he, he_half, duration),
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def update_dive_state(
        self,
        depth: Optional[float] = None,
        time: Optional[float] = None,
        gas_mix: Optional[GasMix] = None,
    ) -> None:
        """Merge the given fields into the dive state.

        Ambient pressure is always recomputed from the resulting depth.
        """
        state = self.dive_state
        self.dive_state = DiveState.at(
            depth=state.depth if depth is None else depth,
            time=state.time if time is None else time,
            gas_mix=state.gas_mix if gas_mix is None else gas_mix,
            surface_pressure=self.surface_pressure,
        )

    def update_tissue_loadings(self, time_step: float) -> None:
        """Advance every compartment by ``time_step`` minutes at the current state."""
        if time_step <= 0:
            raise InvalidParameterError(f"Time step must be positive, got {time_step}")
        self._ensure_compartments()
        self._update_compartments(time_step)

    def get_dive_state(self) -> DiveState:
        return self.dive_state

    def get_tissue_compartments(self) -> List[TissueCompartment]:
        """Copies of the compartments; mutating them does not affect the model."""
        self._ensure_compartments()
        return [copy(c) for c in self.compartments]

    @property
    def num_compartments(self) -> int:
        return len(self.compartments)

    def reset_to_surface(self) -> None:
        """Surface equilibrium on air, dive state back to depth 0 / time 0."""
        self._ensure_compartments()
        surface_n2 = SURFACE_NITROGEN_FRACTION * self.surface_pressure
        for compartment in self.compartments:
            compartment.nitrogen_loading = surface_n2
            compartment.helium_loading = 0.0
        self.dive_state = DiveState.at(0.0, surface_pressure=self.surface_pressure)
        self._reset_extras()

    def copy_tissue_state_from(self, other: "DecompressionModel") -> None:
        """Take over another model's dive state and inert-gas loadings.

        Both models must have the same number of compartments.
        """
        self._ensure_compartments()
        source = other.get_tissue_compartments()
        if len(source) != len(self.compartments):
            raise InvalidParameterError(
                f"Cannot copy tissue state from {len(source)} compartments "
                f"into {len(self.compartments)}"
            )
        self.dive_state = other.get_dive_state()
        for mine, theirs in zip(self.compartments, source):
            mine.nitrogen_loading = theirs.nitrogen_loading
            mine.helium_loading = theirs.helium_loading
        self._refresh_derived_state()

    # ------------------------------------------------------------------
    # Decompression planning
    # ------------------------------------------------------------------

    def calculate_decompression_stops(self) -> List[DecompressionStop]:
        """Stops on the 3 m grid, deepest first; empty when the ceiling is 0."""
        ceiling = self.calculate_ceiling()
        if ceiling <= 0:
            return []

        first_stop_index = math.ceil(round(ceiling / STOP_INCREMENT, 9))
        first_stop = first_stop_index * STOP_INCREMENT
        gas_mix = self.dive_state.gas_mix

        stops = []
        for index in range(first_stop_index, 0, -1):
            depth = index * STOP_INCREMENT
            stop_time = self._calculate_stop_time(depth, first_stop)
            if stop_time > 0:
                stops.append(DecompressionStop(depth=depth, time=stop_time, gas_mix=gas_mix))

        logger.debug(
            f"{self.get_model_name()}: ceiling {ceiling:.1f}m, "
            f"{len(stops)} stops from {first_stop:.0f}m"
        )
        return stops

    def calculate_consolidated_decompression_stops(self) -> List[DecompressionStop]:
        return consolidate_stops(self.calculate_decompression_stops())

    def can_ascend_directly(self) -> bool:
        return self.calculate_ceiling() <= 0

    def calculate_tts(self, ascent_rate: float = DEFAULT_ASCENT_RATE) -> float:
        """Time to surface in minutes using the consolidated stop list.

        Args:
            ascent_rate: Ascent speed in m/min

        Returns:
            Ascent to the first stop + all stop times + ascents between stops
            and from the last stop to the surface.
        """
        if ascent_rate <= 0:
            raise InvalidParameterError(f"Ascent rate must be positive, got {ascent_rate}")

        stops = self.calculate_consolidated_decompression_stops()
        depth = self.dive_state.depth
        if not stops:
            return depth / ascent_rate

        tts = max(0.0, depth - stops[0].depth) / ascent_rate
        for i, stop in enumerate(stops):
            next_depth = stops[i + 1].depth if i + 1 < len(stops) else 0.0
            tts += stop.time + (stop.depth - next_depth) / ascent_rate
        return tts

    # ------------------------------------------------------------------
    # Generic root finding
    # ------------------------------------------------------------------

    def _search_ceiling(
        self,
        tolerance: Optional[ToleranceFn] = None,
        step: float = CEILING_SEARCH_STEP,
        max_depth: float = MAX_CEILING_DEPTH,
    ) -> float:
        """First depth, stepping down from the surface, whose tolerance passes.

        Falls back to min(max_depth, current depth) when nothing up to
        max_depth is tolerated.
        """
        tolerance = tolerance or self._tissue_tolerance
        n2, he = self._loading_arrays()

        for i in range(int(round(max_depth / step)) + 1):
            depth = round(i * step, 6)
            if tolerance(depth, n2, he) is not None:
                return depth

        fallback = min(max_depth, self.dive_state.depth)
        logger.warning(
            f"{self.get_model_name()}: no tolerated depth above {max_depth:.0f}m, "
            f"using {fallback:.1f}m"
        )
        return fallback

    def _minimum_stop_time(
        self,
        stop_depth: float,
        next_depth: float,
        tolerance: Optional[ToleranceFn] = None,
        max_time: float = MAX_STOP_TIME,
        precision: float = STOP_TIME_PRECISION,
    ) -> int:
        """Shortest hold at ``stop_depth`` after which ``next_depth`` is tolerated.

        Binary search over [0, max_time]; every trial simulates on copies of
        the current loadings. Always at least one minute.
        """
        tolerance = tolerance or self._tissue_tolerance
        n2, he = self._loading_arrays()

        low, high = 0.0, max_time
        best = max_time
        while high - low > precision:
            mid = (low + high) / 2.0
            sim_n2, sim_he = self._simulate_loadings(n2.copy(), he.copy(), stop_depth, mid)
            if tolerance(next_depth, sim_n2, sim_he) is not None:
                best = mid
                high = mid
            else:
                low = mid

        return max(1, math.ceil(best))

    # ------------------------------------------------------------------
    # Helpers for variants
    # ------------------------------------------------------------------

    def _ensure_compartments(self) -> None:
        if not self.compartments:
            logger.debug(f"{type(self).__name__}: rebuilding empty compartment list")
            self.compartments = self._create_compartments()

    def _compartment(self, number: int) -> TissueCompartment:
        """1-based compartment lookup with range check."""
        self._ensure_compartments()
        count = len(self.compartments)
        if not 1 <= number <= count:
            raise InvalidParameterError(f"Compartment number must be between 1 and {count}")
        return self.compartments[number - 1]

    def _ambient(self, depth: float) -> float:
        return ambient_pressure(depth, self.surface_pressure)

    def _depth_at(self, pressure: float) -> float:
        return depth_from_pressure(pressure, self.surface_pressure)

    def _inspired_pressures(self, depth: Optional[float] = None) -> Tuple[float, float]:
        """(pN2, pHe) for the current gas at ``depth`` (current depth if None)."""
        state = self.dive_state
        ambient = state.ambient_pressure if depth is None else self._ambient(depth)
        mix = state.gas_mix
        return (
            inspired_pressure(nitrogen_fraction(mix), ambient),
            inspired_pressure(mix.helium, ambient),
        )

    def _half_time_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        return (
            np.array([c.nitrogen_half_time for c in self.compartments]),
            np.array([c.helium_half_time for c in self.compartments]),
        )

    def _loading_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Copies of the current loadings as numpy arrays."""
        self._ensure_compartments()
        return (
            np.array([c.nitrogen_loading for c in self.compartments]),
            np.array([c.helium_loading for c in self.compartments]),
        )

    def _apply_haldane(self, time_step: float) -> None:
        """Exponential nitrogen/helium update at the current dive state."""
        p_n2, p_he = self._inspired_pressures()
        for c in self.compartments:
            c.nitrogen_loading = haldane_loading(
                c.nitrogen_loading, p_n2, c.nitrogen_half_time, time_step
            )
            c.helium_loading = haldane_loading(
                c.helium_loading, p_he, c.helium_half_time, time_step
            )

