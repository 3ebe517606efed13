"""PID controller for a differential-drive ground robot."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from botnav.geometry import Pos2D, damping_cos, damping_piecewise, dist_euc, limit_angle, sign

logger = logging.getLogger(__name__)

_KILL_LIMIT = math.pi / 3


@dataclass
class PIDParams:
    kp_lin: float = 2.4
    ki_lin: float = 0.0
    kd_lin: float = 0.2
    kp_ang: float = 1.3
    ki_ang: float = 0.0
    kd_ang: float = 0.3
    max_lin_vel: float = 0.18
    max_lin_acc: float = 1.0
    max_ang_vel: float = 2.80
    max_ang_acc: float = 4.0
    damping_limit: float = 15.0  # degrees
    damping_function: str = "PieceWise"
    reverse_limit: float = 90.0  # degrees


def _saturate(value: float, limit: float) -> float:
    return sign(value) * limit if abs(value) > limit else value


def _damping_piecewise(error_value: float) -> float:
    return damping_piecewise(error_value, _KILL_LIMIT)


def _damping_quadratic(error_value: float) -> float:
    return (-1 / (0.25 * math.pi * math.pi)) * (error_value - math.pi / 2) * (error_value + math.pi / 2)


def _damping_exp(error_value: float) -> float:
    exp_arg = abs(error_value) - math.pi / 4.0
    coeff = 1.0 / (1.0 + math.exp(exp_arg) ** 8)
    if coeff > 1 or coeff < 0:
        logger.warning("Exponential Coefficient out of bounds. Reverting to piecewise")
        coeff = _damping_piecewise(error_value)
    return coeff


_DAMPING: dict[str, Callable[[float], float]] = {
    "Cos": damping_cos,
    "Quad": _damping_quadratic,
    "PieceWise": _damping_piecewise,
    "Exp": _damping_exp,
}


def _angular_error(robot_position: Pos2D, robot_heading: float, target: Pos2D) -> float:
    return limit_angle(
        math.atan2(target.y - robot_position.y, target.x - robot_position.x) - robot_heading
    )


class Controller:
    """Couples linear speed to heading error and limits velocity and acceleration."""

    def __init__(self, params: PIDParams) -> None:
        self.params = params
        self.damping_limit = math.radians(params.damping_limit)
        self.reverse_limit = math.radians(params.reverse_limit)

        name = params.damping_function
        if name not in _DAMPING:
            logger.warning("Valid damping function not found. Defaulting to PieceWise")
            name = "PieceWise"
        self.damping_function_name = name
        self._damping = _DAMPING[name]
        logger.info("Using %s function! PID Controller Prepared!", name)

        self.cmd_lin_vel = 0.0
        self.cmd_ang_vel = 0.0
        self.prev_time = 0.0
        self.dt = 0.0
        self.prev_linear_error = 0.0
        self.prev_angular_error = 0.0
        self.cumulative_linear_error = 0.0
        self.cumulative_angular_error = 0.0

    def prepare(
        self, robot_position: Pos2D, robot_heading: float, target_position: Pos2D, time_now: float
    ) -> None:
        """Reset commands and errors for a fresh start at time_now."""
        self.cmd_lin_vel = 0.0
        self.cmd_ang_vel = 0.0
        self.dt = 0.0
        self.prev_time = time_now
        self.prev_linear_error = dist_euc(robot_position, target_position)
        ang = _angular_error(robot_position, robot_heading, target_position)
        if abs(ang) > math.pi / 2:
            ang -= sign(ang) * math.pi
        self.prev_angular_error = ang
        self.cumulative_linear_error = 0.0
        self.cumulative_angular_error = 0.0

    def update_dt(self, time_now: float) -> bool:
        """Advance the clock; False when no time has passed."""
        self.dt = time_now - self.prev_time
        if self.dt == 0.0:
            return False
        self.prev_time += self.dt
        return True

    def generate_cmdvel(
        self, robot_position: Pos2D, robot_heading: float, target_position: Pos2D
    ) -> tuple[float, float]:
        """Return (linear, angular) velocity commands."""
        dt = self.dt
        if dt == 0:
            raise RuntimeError("no time step: call update_dt with a new time first")
        p = self.params

        lin_error = dist_euc(robot_position, target_position)
        self.cumulative_linear_error += lin_error * dt
        raw_lin = (
            p.kp_lin * lin_error
            + p.ki_lin * self.cumulative_linear_error
            + p.kd_lin * (lin_error - self.prev_linear_error) / dt
        )

        ang_error = _angular_error(robot_position, robot_heading, target_position)
        if abs(ang_error) > math.pi / 2:
            raw_lin = -raw_lin
            ang_error -= sign(ang_error) * math.pi
        if abs(ang_error) > math.pi / 2:
            logger.warning("Current angular error has not been constrained properly!")
        self.cumulative_angular_error += ang_error * dt

        coupled_lin = raw_lin * self._damping(ang_error)
        coupled_ang = (
            p.kp_ang * ang_error
            + p.ki_ang * self.cumulative_angular_error
            + p.kd_ang * (ang_error - self.prev_angular_error) / dt
        )

        lin_acc = _saturate((coupled_lin - self.cmd_lin_vel) / dt, p.max_lin_acc)
        lin_vel = _saturate(self.cmd_lin_vel + lin_acc * dt, p.max_lin_vel)
        ang_acc = _saturate((coupled_ang - self.cmd_ang_vel) / dt, p.max_ang_acc)
        ang_vel = _saturate(self.cmd_ang_vel + ang_acc * dt, p.max_ang_vel)

        self.cmd_lin_vel = lin_vel
        self.cmd_ang_vel = ang_vel
        self.prev_linear_error = lin_error
        self.prev_angular_error = ang_error
        return lin_vel, ang_vel