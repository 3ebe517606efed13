"""Local trajectory planning for the ground robot along a global path."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterator, Sequence

import numpy as np

from botnav.geometry import Pos2D

logger = logging.getLogger(__name__)

SegmentFn = Callable[[Pos2D, Pos2D, Pos2D, Pos2D], list[Pos2D]]


def _sample_times(target_dt: float, duration: float) -> Iterator[float]:
    """Times target_dt, 2*target_dt, ... strictly below duration."""
    t = target_dt
    while t < duration:
        yield t
        t += target_dt


def _cubic_matrix(d: float) -> np.ndarray:
    return np.array(
        [
            [1.0, 0.0, 0.0, 0.0],
            [0.0, 1.0, 0.0, 0.0],
            [-3.0 / d**2, -2.0 / d, 3.0 / d**2, -1.0 / d],
            [2.0 / d**3, 1.0 / d**2, -2.0 / d**3, 1.0 / d**2],
        ]
    )


def _quintic_matrix(d: float) -> np.ndarray:
    return np.array(
        [
            [1.0, 0.0, 0.0, 0.0, 0.0, 0.0],
            [0.0, 1.0, 0.0, 0.0, 0.0, 0.0],
            [0.0, 0.0, 0.5, 0.0, 0.0, 0.0],
            [-10.0 / d**3, -6.0 / d**2, -3.0 / (2.0 * d), 10.0 / d**3, -4.0 / d**2, 1.0 / (2.0 * d)],
            [15.0 / d**4, 8.0 / d**3, 3.0 / (2.0 * d**2), -15.0 / d**4, 7.0 / d**3, -1.0 / d**2],
            [-6.0 / d**5, -3.0 / d**4, -1.0 / (2.0 * d**3), 6.0 / d**5, -3.0 / d**4, 1.0 / (2.0 * d**3)],
        ]
    )


def _poly(coeffs: np.ndarray, t: float) -> float:
    return float(sum(c * t**k for k, c in enumerate(coeffs)))


class LocalPlanner:
    """Samples a path into time-spaced targets using linear or polynomial segments."""

    def __init__(self, target_dt: float, average_speed: float, traj_type: str) -> None:
        self.target_dt = target_dt
        self.average_speed = average_speed
        self.traj_type = traj_type
        self._segment: SegmentFn | None = None

        if traj_type != "Linear":
            if traj_type == "Cubic":
                self._segment = self.cubic
            else:
                self._segment = self.quintic
                self.traj_type = "Quintic"
        logger.info("Local Planner Prepared! Using %s trajectory.", self.traj_type)

    def _duration(self, pos_begin: Pos2D, pos_end: Pos2D) -> float:
        dx = pos_end.x - pos_begin.x
        dy = pos_end.y - pos_begin.y
        return math.sqrt(dx * dx + dy * dy) / self.average_speed

    def linear(self, pos_begin: Pos2D, pos_end: Pos2D) -> list[Pos2D]:
        """Straight segment from pos_begin towards pos_end, excluding pos_end."""
        dx = pos_end.x - pos_begin.x
        dy = pos_end.y - pos_begin.y
        d = self._duration(pos_begin, pos_end)
        segment = [Pos2D(pos_begin.x, pos_begin.y)]
        segment.extend(
            Pos2D(pos_begin.x + dx * t / d, pos_begin.y + dy * t / d)
            for t in _sample_times(self.target_dt, d)
        )
        return segment

    def _polynomial(
        self,
        matrix_for: Callable[[float], np.ndarray],
        in_x: list[float],
        in_y: list[float],
        pos_begin: Pos2D,
        pos_end: Pos2D,
    ) -> list[Pos2D]:
        d = self._duration(pos_begin, pos_end)
        segment = [Pos2D(pos_begin.x, pos_begin.y)]
        if d <= 0:
            return segment
        matrix = matrix_for(d)
        ax = matrix @ np.array(in_x)
        by = matrix @ np.array(in_y)
        segment.extend(Pos2D(_poly(ax, t), _poly(by, t)) for t in _sample_times(self.target_dt, d))
        return segment

    def cubic(self, pos_begin: Pos2D, pos_end: Pos2D, vel_begin: Pos2D, vel_end: Pos2D) -> list[Pos2D]:
        """Cubic segment matching positions and velocities at both ends."""
        return self._polynomial(
            _cubic_matrix,
            [pos_begin.x, vel_begin.x, pos_end.x, vel_end.x],
            [pos_begin.y, vel_begin.y, pos_end.y, vel_end.y],
            pos_begin,
            pos_end,
        )

    def quintic(self, pos_begin: Pos2D, pos_end: Pos2D, vel_begin: Pos2D, vel_end: Pos2D) -> list[Pos2D]:
        """Quintic segment matching positions, velocities and zero accelerations."""
        return self._polynomial(
            _quintic_matrix,
            [pos_begin.x, vel_begin.x, 0.0, pos_end.x, vel_end.x, 0.0],
            [pos_begin.y, vel_begin.y, 0.0, pos_end.y, vel_end.y, 0.0],
            pos_begin,
            pos_end,
        )

    @staticmethod
    def _trivial(path_array: Sequence[Pos2D]) -> list[Pos2D] | None:
        if not path_array:
            logger.warning("Empty path given. Return empty trajectory!")
            return []
        if len(path_array) == 1:
            logger.warning("Path size is 1. Returning trajectory with single target")
            return [path_array[0]]
        return None

    def generate_linear_trajectory(self, path_array: Sequence[Pos2D]) -> list[Pos2D]:
        """Linear trajectory through a path ordered goal first, start last."""
        if self.traj_type != "Linear":
            logger.error(
                "Generate trajectory for Linear is called, but differs from chosen "
                "trajectory. Reverting to linear!"
            )
            self.traj_type = "Linear"
        trivial = self._trivial(path_array)
        if trivial is not None:
            return trivial
        trajectory: list[Pos2D] = []
        for nxt, cur in zip(path_array, path_array[1:]):
            trajectory.extend(self.linear(nxt, cur))
        return trajectory

    def generate_trajectory(
        self, path_array: Sequence[Pos2D], mf_vel: float, robot_heading: float
    ) -> list[Pos2D]:
        """Polynomial trajectory through a path ordered goal first, start last."""
        trivial = self._trivial(path_array)
        if trivial is not None:
            return trivial
        if self._segment is None:
            raise ValueError("a Linear planner cannot generate a higher-order trajectory")

        velocities = [Pos2D(mf_vel * math.cos(robot_heading), mf_vel * math.sin(robot_heading))]
        for before, after in zip(path_array, path_array[2:]):
            direction = after - before
            vel_heading = math.atan2(direction.y, direction.x)
            velocities.append(
                Pos2D(
                    self.average_speed * math.cos(vel_heading),
                    self.average_speed * math.sin(vel_heading),
                )
            )
        velocities.append(Pos2D(0.0, 0.0))

        trajectory: list[Pos2D] = []
        for k in range(1, len(path_array)):
            trajectory.extend(
                self._segment(path_array[k - 1], path_array[k], velocities[k - 1], velocities[k])
            )
        return trajectory