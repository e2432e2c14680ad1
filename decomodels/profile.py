"""
Dive profiles and profile-driven simulation.

Generates dive profiles as (time, depth, fO2, fHe) point lists:
- Square profiles (constant depth)
- Multi-level profiles (stepped depths)
- Sawtooth profiles (oscillating depth)

run_profile() drives any DecompressionModel through a profile and records the
depth, ceiling and tissue-loading history as numpy arrays.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from .errors import InvalidParameterError
from .kernel import DecompressionModel
from .state import GasMix

logger = logging.getLogger(__name__)

SURFACE_INTERVAL = 1.0  # minutes recorded at 0 m after each profile


@dataclass
class DiveProfile:
    """A dive profile as a sequence of (time, depth, fO2, fHe) points."""

    points: List[Tuple[float, float, float, float]] = field(default_factory=list)
    name: str = "unnamed"
    max_depth: float = 0.0
    bottom_time: float = 0.0

    def add_point(self, time: float, depth: float, fO2: float = 0.21, fHe: float = 0.0):
        """Add a point to the profile. Depth in meters, time in minutes."""
        self.points.append((time, depth, fO2, fHe))
        if depth > self.max_depth:
            self.max_depth = depth

    @property
    def duration(self) -> float:
        if not self.points:
            return 0.0
        return self.points[-1][0] - self.points[0][0]

    def bottom_portion(self) -> "DiveProfile":
        """Profile truncated at the last point spent at maximum depth.

        Planning a decompression from this point is what the comparator and
        the CLI report on.
        """
        last = 0
        for i, (_, depth, _, _) in enumerate(self.points):
            if depth >= self.max_depth:
                last = i
        bottom = DiveProfile(name=f"{self.name}_bottom", bottom_time=self.bottom_time)
        for point in self.points[: last + 1]:
            bottom.add_point(*point)
        return bottom


class ProfileGenerator:
    """Generate square, multi-level and sawtooth dive profiles."""

    def __init__(
        self,
        descent_rate: float = 18.0,  # m/min
        ascent_rate: float = 9.0,  # m/min
        sampling_interval: float = 1.0,  # minutes
    ):
        if descent_rate <= 0 or ascent_rate <= 0 or sampling_interval <= 0:
            raise InvalidParameterError(
                "Descent rate, ascent rate and sampling interval must be positive"
            )
        self.descent_rate = descent_rate
        self.ascent_rate = ascent_rate
        self.sampling_interval = sampling_interval

    # Each phase appends points and returns the (time, depth) it ends at.

    def _descend(self, profile, time, depth, target, fO2, fHe):
        while depth < target:
            profile.add_point(time, depth, fO2, fHe)
            depth = min(depth + self.descent_rate * self.sampling_interval, target)
            time += self.sampling_interval
        return time, depth

    def _ascend(self, profile, time, depth, target, fO2, fHe):
        while depth > target:
            profile.add_point(time, depth, fO2, fHe)
            depth = max(depth - self.ascent_rate * self.sampling_interval, target)
            time += self.sampling_interval
        return time, depth

    def _hold(self, profile, time, depth, duration, fO2, fHe):
        end = time + duration
        while time < end - 1e-9:
            profile.add_point(time, depth, fO2, fHe)
            time += self.sampling_interval
        return time, depth

    def _finish(self, profile, time, depth, fO2, fHe):
        """Final ascent and a short surface interval."""
        time, depth = self._ascend(profile, time, depth, 0.0, fO2, fHe)
        self._hold(profile, time, 0.0, SURFACE_INTERVAL, fO2, fHe)
        return profile

    def generate_square(
        self, depth: float, bottom_time: float, fO2: float = 0.21, fHe: float = 0.0
    ) -> DiveProfile:
        """
        Generate a square profile.

        Args:
            depth: Bottom depth in meters
            bottom_time: Time at depth in minutes
            fO2: Oxygen fraction
            fHe: Helium fraction
        """
        profile = DiveProfile(name=f"square_{depth:g}m_{bottom_time:g}min")
        profile.bottom_time = bottom_time

        time, current = self._descend(profile, 0.0, 0.0, depth, fO2, fHe)
        time, current = self._hold(profile, time, current, bottom_time, fO2, fHe)
        return self._finish(profile, time, current, fO2, fHe)

    def generate_multilevel(
        self, levels: List[Tuple[float, float]], fO2: float = 0.21, fHe: float = 0.0
    ) -> DiveProfile:
        """
        Generate a multi-level profile.

        Args:
            levels: List of (depth, duration) tuples, deepest first
            fO2: Oxygen fraction
            fHe: Helium fraction
        """
        profile = DiveProfile(name=f"multilevel_{len(levels)}levels")
        profile.bottom_time = sum(duration for _, duration in levels)

        time, current = 0.0, 0.0
        for target, duration in levels:
            if target > current:
                time, current = self._descend(profile, time, current, target, fO2, fHe)
            else:
                time, current = self._ascend(profile, time, current, target, fO2, fHe)
            time, current = self._hold(profile, time, current, duration, fO2, fHe)
        return self._finish(profile, time, current, fO2, fHe)

    def generate_sawtooth(
        self,
        max_depth: float,
        min_depth: float,
        total_time: float,
        oscillations: int = 3,
        fO2: float = 0.21,
        fHe: float = 0.0,
    ) -> DiveProfile:
        """
        Generate a sawtooth (yo-yo) profile.

        Args:
            max_depth: Maximum depth in meters
            min_depth: Shallowest depth during oscillations
            total_time: Total bottom time in minutes
            oscillations: Number of depth oscillations
            fO2: Oxygen fraction
            fHe: Helium fraction
        """
        if min_depth > max_depth:
            raise InvalidParameterError("Sawtooth min_depth cannot exceed max_depth")

        profile = DiveProfile(name=f"sawtooth_{max_depth:g}m_{oscillations}osc")
        profile.bottom_time = total_time

        time, current = self._descend(profile, 0.0, 0.0, max_depth, fO2, fHe)
        leg_time = total_time / max(1, 2 * oscillations)
        for _ in range(oscillations):
            time, current = self._hold(profile, time, current, leg_time / 2, fO2, fHe)
            time, current = self._ascend(profile, time, current, min_depth, fO2, fHe)
            time, current = self._hold(profile, time, current, leg_time / 2, fO2, fHe)
            time, current = self._descend(profile, time, current, max_depth, fO2, fHe)
        time, current = self._hold(profile, time, current, self.sampling_interval, fO2, fHe)
        return self._finish(profile, time, current, fO2, fHe)


@dataclass
class ProfileRun:
    """History of one model driven through one profile."""

    model_name: str
    times: np.ndarray
    depths: np.ndarray
    ceilings: np.ndarray
    nitrogen_loadings: np.ndarray  # [time, compartment]
    helium_loadings: np.ndarray  # [time, compartment]

    @property
    def max_ceiling(self) -> float:
        return float(self.ceilings.max()) if self.ceilings.size else 0.0

    @property
    def final_ceiling(self) -> float:
        return float(self.ceilings[-1]) if self.ceilings.size else 0.0


def run_profile(model: DecompressionModel, profile: DiveProfile) -> ProfileRun:
    """
    Drive a model through every segment of a profile.

    Each segment is simulated at its starting depth and gas for the time to
    the next point. The model is left in the state of the last point.

    Args:
        model: Any decompression model (not reset here)
        profile: Profile with at least one point

    Returns:
        ProfileRun with one history row per profile point
    """
    if not profile.points:
        raise InvalidParameterError(f"Profile {profile.name} has no points")

    times, depths, ceilings, n2_rows, he_rows = [], [], [], [], []

    def record():
        state = model.get_dive_state()
        compartments = model.get_tissue_compartments()
        times.append(state.time)
        depths.append(state.depth)
        ceilings.append(model.calculate_ceiling())
        n2_rows.append([c.nitrogen_loading for c in compartments])
        he_rows.append([c.helium_loading for c in compartments])

    t0, d0, o2, he_fraction = profile.points[0]
    model.update_dive_state(depth=d0, time=t0, gas_mix=GasMix(o2, he_fraction))
    record()

    for (t1, _, _, _), (t2, d2, o2, he_fraction) in zip(profile.points, profile.points[1:]):
        if t2 > t1:
            model.update_tissue_loadings(t2 - t1)
        model.update_dive_state(depth=d2, time=t2, gas_mix=GasMix(o2, he_fraction))
        record()

    logger.debug(
        f"{model.get_model_name()}: ran {profile.name} "
        f"({len(profile.points)} points, max ceiling {max(ceilings):.1f}m)"
    )
    return ProfileRun(
        model_name=model.get_model_name(),
        times=np.array(times),
        depths=np.array(depths),
        ceilings=np.array(ceilings),
        nitrogen_loadings=np.array(n2_rows),
        helium_loadings=np.array(he_rows),
    )
