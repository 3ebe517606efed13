"""Spline generation for the drone across the phases of its mission."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterator

import numpy as np

from botnav.geometry import Pos2D, Pos3D
from botnav.mission_states import HectorState
from botnav.spline_data import SplineData3D

logger = logging.getLogger(__name__)

SplineFn = Callable[[Pos3D, Pos3D, Pos3D, Pos3D], list[Pos3D]]

_LAND_FLOOR = 0.18


def _copy(pos: Pos3D) -> Pos3D:
    return Pos3D(pos.x, pos.y, pos.z)


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


class TrajectoryGenerator:
    """Builds drone splines for takeoff, landing, chasing and goal phases."""

    def __init__(
        self,
        target_dt: float,
        average_speed: float,
        primary_traj: str,
        cruise_height: float,
        takeoff_height: float,
        land_height: float,
        verbose: bool = False,
    ) -> None:
        self.target_dt = target_dt
        self.average_speed = average_speed
        self.cruise_height = cruise_height
        self.takeoff_height = takeoff_height
        self.land_height = land_height
        self.verbose = verbose

        if primary_traj == "Quintic":
            self.primary_traj = "Quintic"
            self._spline: SplineFn = self.quintic
        else:
            self.primary_traj = "Cubic"
            self._spline = self.cubic
        logger.info("Trajectory Generator Prepared (%s)", self.primary_traj)

    def _duration(self, pos_begin: Pos3D, pos_end: Pos3D) -> float:
        dx = pos_end.x - pos_begin.x
        dy = pos_end.y - pos_begin.y
        return math.sqrt(dx * dx + dy * dy) / self.average_speed

    def linear_vert_takeoff(self, pos_begin: Pos3D, pos_end: Pos3D) -> list[Pos3D]:
        """Takeoff spline: the single takeoff goal."""
        return [_copy(pos_begin)]

    def linear_vert_land(self, pos_begin: Pos3D, pos_end: Pos3D) -> list[Pos3D]:
        """Landing spline above pos_begin, descending stepwise from pos_end's height."""
        x, y = pos_begin.x, pos_begin.y
        levels = [
            (100, _LAND_FLOOR),
            (100, pos_end.z / 8),
            (60, pos_end.z / 4),
            (60, pos_end.z / 2),
        ]
        segment = [_copy(pos_begin)]
        for count, z in levels:
            segment.extend(Pos3D(x, y, z) for _ in range(count))
        return segment

    def linear_planar(self, pos_begin: Pos3D, pos_end: Pos3D) -> list[Pos3D]:
        """Straight segment at cruise height from pos_begin towards pos_end."""
        dx = pos_end.x - pos_begin.x
        dy = pos_end.y - pos_begin.y
        d = self._duration(pos_begin, pos_end)
        segment = [_copy(pos_begin)]
        segment.extend(
            Pos3D(pos_begin.x + dx * t / d, pos_begin.y + dy * t / d, self.cruise_height)
            for t in _sample_times(self.target_dt, d)
        )
        return segment

    def _polynomial(
        self,
        matrix_for: Callable[[float], np.ndarray],
        in_x: list[float],
        in_y: list[float],
        pos_begin: Pos3D,
        pos_end: Pos3D,
    ) -> list[Pos3D]:
        d = self._duration(pos_begin, pos_end)
        segment = [_copy(pos_begin)]
        if d <= 0:
            return segment
        matrix = matrix_for(d)
        ax = matrix @ np.array(in_x)
        by = matrix @ np.array(in_y)
        segment.extend(
            Pos3D(_poly(ax, t), _poly(by, t), self.cruise_height)
            for t in _sample_times(self.target_dt, d)
        )
        return segment

    def cubic(self, pos_begin: Pos3D, pos_end: Pos3D, vel_begin: Pos3D, vel_end: Pos3D) -> list[Pos3D]:
        """Planar cubic segment at cruise height."""
        return self._polynomial(
            _cubic_matrix,
            [pos_begin.x, vel_begin.x, pos_end.x, vel_end.x],
            [pos_begin.y, vel_begin.y, pos_end.y, vel_end.y],
            pos_begin,
            pos_end,
        )

    def quintic(self, pos_begin: Pos3D, pos_end: Pos3D, vel_begin: Pos3D, vel_end: Pos3D) -> list[Pos3D]:
        """Planar quintic segment at cruise height with zero end accelerations."""
        return self._polynomial(
            _quintic_matrix,
            [pos_begin.x, vel_begin.x, 0.0, pos_end.x, vel_end.x, 0.0],
            [pos_begin.y, vel_begin.y, 0.0, pos_end.y, vel_end.y, 0.0],
            pos_begin,
            pos_end,
        )

    def _approach_velocity(self, heading_angle: float) -> Pos3D:
        speed = math.sqrt(self.average_speed)
        return Pos3D(speed * math.cos(heading_angle), speed * math.sin(heading_angle), 0.0)

    def trajectory_handler(
        self,
        current_goal: Pos3D,
        next_goal: Pos3D,
        h_pos: Pos3D,
        h_vel: Pos3D,
        hspline: SplineData3D,
        h_state: HectorState,
    ) -> None:
        """Replace hspline's targets with a spline suited to h_state.

        Splines run from the goal back to the drone, so the drone's next
        target sits at the end of the list.
        """
        if h_state == HectorState.TAKEOFF:
            spline = self.linear_vert_takeoff(current_goal, h_pos)
        elif h_state == HectorState.LAND:
            spline = self.linear_vert_land(current_goal, h_pos)
        elif h_state == HectorState.TURTLE:
            dir_curr = Pos2D(h_pos.x - current_goal.x, h_pos.y - current_goal.y)
            dir_next = Pos2D(current_goal.x - next_goal.x, current_goal.y - next_goal.y)
            heading_at_turtle = (
                math.atan2(dir_next.y, dir_next.x) + math.atan2(dir_curr.y, dir_curr.x)
            ) / 2.0
            vel_at_turtle = self._approach_velocity(heading_at_turtle)
            spline = self._spline(current_goal, h_pos, vel_at_turtle, h_vel)
        elif h_state == HectorState.GOAL:
            dir_curr = Pos2D(h_pos.x - current_goal.x, h_pos.y - current_goal.y)
            dir_next = Pos2D(current_goal.x - next_goal.x, current_goal.y - next_goal.y)
            dir_next_heading = math.atan2(dir_next.y, dir_next.x)
            heading_at_final = (dir_next_heading + math.atan2(dir_curr.y, dir_curr.x)) / 2.0
            vel_at_final = self._approach_velocity(heading_at_final)
            # Only the x component of the start velocity is set, from the sine.
            vel_at_start = Pos3D(math.sqrt(self.average_speed) * math.sin(dir_next_heading), 0.0, 0.0)
            spline_a = self._spline(current_goal, h_pos, vel_at_final, h_vel)
            spline = self._spline(next_goal, current_goal, vel_at_start, vel_at_final)
            spline.extend(spline_a)
        elif h_state == HectorState.START:
            logger.error("Not supposed to generate trajectory here! Check State Machine")
            return
        elif h_state in (HectorState.FOLLOW, HectorState.HOME):
            direction = Pos2D(h_pos.x - current_goal.x, h_pos.y - current_goal.x)
            vel = self._approach_velocity(math.atan2(direction.y, direction.x))
            spline = self._spline(current_goal, h_pos, vel, h_vel)
        else:
            raise ValueError(f"unknown state: {h_state!r}")

        hspline.spline = spline
        hspline.curr_spline_id += 1
        if self.verbose:
            logger.info("New %s spline with %d targets", HectorState(h_state).name, len(spline))