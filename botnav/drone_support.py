"""Parameters, turtle tracking, prediction and motor switching for the drone commander."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from botnav.geometry import Pos2D, Pos3D, dist_euc_xy
from botnav.spline_data import SplineData2D
from botnav.velocity_controller import ControllerParams

logger = logging.getLogger(__name__)

_TIME_EPS = 1e-6


@dataclass
class DroneParams:
    """Settings of the drone commander, its trajectory generator and controller."""

    verbose: bool = False
    rate: float = 30.0
    cruise_height: float = 2.0
    takeoff_height: float = 2.0
    land_height: float = 0.18
    thresh_cruise_height: float = 0.2
    thresh_takeoff_height: float = 0.1
    thresh_land_height: float = 0.05
    thresh_cruise_planar: float = 0.2
    look_ahead: float = 1.0
    enable_prediction: bool = True
    co_op: bool = False
    initial_position: Pos3D = field(default_factory=lambda: Pos3D(0.0, 0.0, 0.178))

    target_dt: float = 0.030
    average_speed: float = 2.0
    primary_traj: str = "Cubic"
    verbose_trajectory: bool = False

    enable_controller: bool = True
    verbose_controller: bool = False
    controller: ControllerParams = field(default_factory=ControllerParams)

    # Solo flight: the waypoints to visit. Co-op: the turtle's goals, of which
    # only the last one is used.
    solo_goals: list[Pos3D] = field(default_factory=list)
    turtle_goals: list[Pos2D] | None = None


class TurtleTracker:
    """Latest pose and spline reported by the ground robot."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self.position = Pos2D(math.nan, math.nan)
        self.heading = math.nan
        self.spline = SplineData2D()

    @property
    def has_pose(self) -> bool:
        return not math.isnan(self.position.x)

    def update_pose(self, position: Pos2D, heading: float) -> None:
        self.position = Pos2D(position.x, position.y)
        self.heading = heading

    def update_spline(
        self,
        spline_id: int,
        average_speed: float,
        target_dt: float,
        points: Iterable[Pos2D],
    ) -> bool:
        """Store a spline if its id is new; True when it was stored."""
        if spline_id == self.spline.curr_spline_id:
            return False
        self.spline = SplineData2D(
            spline=[Pos2D(p.x, p.y) for p in points],
            curr_spline_id=spline_id,
            avg_speed=average_speed,
            target_dt=target_dt,
        )
        if self.verbose:
            logger.info("New Turtle Spline Received!")
        return True


def predict_turtle_pos(
    hector_position: Pos2D | Pos3D,
    hector_speed: float,
    turtle_spline: SplineData2D,
    ts_id: int,
) -> tuple[Pos2D, int]:
    """First spline target the drone can reach no later than the turtle.

    Targets are spaced target_dt apart in time, so the turtle needs
    (n - ts_id) * target_dt to reach target n. When no target qualifies the
    last one is returned.
    """
    if ts_id == -1:
        raise ValueError("turtle position on its spline is unknown")
    points = turtle_spline.spline
    if not points:
        raise ValueError("turtle spline is empty")

    tbot_time = 0.0
    for idx in range(ts_id + 1, len(points)):
        tbot_time += turtle_spline.target_dt
        target = points[idx]
        hector_dist = dist_euc_xy(hector_position.x, hector_position.y, target.x, target.y)
        hector_time = hector_dist / hector_speed if hector_speed != 0 else math.inf
        if tbot_time - hector_time >= _TIME_EPS:
            logger.debug("Found a prediction: %s, ID: %d", target, idx)
            return Pos2D(target.x, target.y), idx

    last = points[-1]
    logger.debug("Prediction returning last target %s", last)
    return Pos2D(last.x, last.y), len(points) - 1


def switch_motors(call: Callable[[bool], bool], enable: bool, max_attempts: int = 5) -> bool:
    """Ask the motor service to enable or disable, retrying up to max_attempts times."""
    action = "Armed" if enable else "Disabled"
    for attempt in range(1, max_attempts + 1):
        if call(enable):
            logger.info("Attempt %d/%d: Motors %s!", attempt, max_attempts, action)
            return True
        logger.warning(
            "Attempt %d/%d: Unable to switch motors! Trying again", attempt, max_attempts
        )
    if enable:
        logger.info("Shutting down avionics!")
    else:
        logger.warning("Danger! Unable to disable motors!")
    return False