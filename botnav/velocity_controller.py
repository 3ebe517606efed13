"""PID velocity controller for the drone, producing body-frame commands."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from botnav.geometry import Pos3D, sign

logger = logging.getLogger(__name__)


@dataclass
class ControllerParams:
    kp_lin: float = 1.0
    ki_lin: float = 0.0
    kd_lin: float = 0.0
    kp_z: float = 1.0
    ki_z: float = 0.0
    kd_z: float = 0.0
    yaw_rate: float = 0.5
    max_lin_vel: float = 2.0
    max_z_vel: float = 0.5


def _saturate(value: float, limit: float) -> float:
    return sign(value) * limit if abs(value) > limit else value


class VelocityController:
    """Turns world-frame position errors into robot-frame velocity commands."""

    def __init__(self, params: ControllerParams, verbose: bool = False) -> None:
        self.params = params
        self.verbose = verbose
        self.planar_sat = math.sqrt(params.max_lin_vel)

        self.cmd_vel = (0.0, 0.0, 0.0, 0.0)
        self._prev_error = np.zeros(3)
        self._cum_error = np.zeros(3)

        self.prev_time = 0.0
        self.dt = 0.0

    def prepare(self, timenow: float) -> None:
        self.prev_time = timenow

    def update_dt(self, timenow: float) -> bool:
        """Advance the clock; False when no time has passed."""
        self.dt = timenow - self.prev_time
        if self.dt == 0:
            return False
        self.prev_time += self.dt
        return True

    def generate_velocities(
        self, hector_pos: Pos3D, hector_heading: float, target: Pos3D, rotate: bool
    ) -> tuple[float, float, float, float]:
        """Return (vx, vy, vz, yaw rate) in the robot frame."""
        if self.dt == 0:
            raise RuntimeError("no time step: call update_dt with a new time first")
        p = self.params
        cos_h, sin_h = math.cos(hector_heading), math.sin(hector_heading)
        world_to_robot = np.array([[cos_h, sin_h], [-sin_h, cos_h]])
        planar_world = np.array([target.x - hector_pos.x, target.y - hector_pos.y])
        planar_robot = world_to_robot @ planar_world

        error = np.array([planar_robot[0], planar_robot[1], target.z - hector_pos.z])
        diff = error - self._prev_error
        self._cum_error += error * self.dt

        kp = np.array([p.kp_lin, p.kp_lin, p.kp_z])
        ki = np.array([p.ki_lin, p.ki_lin, p.ki_z])
        kd = np.array([p.kd_lin, p.kd_lin, p.kd_z])
        raw = kp * error + ki * self._cum_error + kd * (diff / self.dt)

        vx = _saturate(float(raw[0]), self.planar_sat)
        vy = _saturate(float(raw[1]), self.planar_sat)
        vz = _saturate(float(raw[2]), p.max_z_vel)
        ang = p.yaw_rate if rotate else 0.0

        self._prev_error = error
        self.cmd_vel = (vx, vy, vz, ang)

        if self.verbose:
            logger.info("VELOCITIES: x=%s y=%s z=%s ang=%s", vx, vy, vz, ang)
            logger.info("CMD LINEAR MAGNITUDE %s", math.hypot(vx, vy))
            logger.info("CMD VERTICAL MAGNITUDE %s", abs(vz))
        return self.cmd_vel