"""Mission state machine of the drone: takeoff, chasing the turtle, goals and landing."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from botnav.drone_support import DroneParams, TurtleTracker, predict_turtle_pos
from botnav.geometry import Pos2D, Pos3D, dist_euc_xy
from botnav.mission_states import HectorState
from botnav.spline_data import SplineData3D
from botnav.trajectory_generator import TrajectoryGenerator
from botnav.velocity_controller import VelocityController

logger = logging.getLogger(__name__)

_INITIAL_VEL_MAG = 0.35
_INITIAL_LOOK_AHEAD_TARGETS = 15
_TAKEOFF_HEIGHT_TOLERANCE = 0.05
_GOAL_ID_TAKEOFF = -2
_GOAL_ID_LAND = -1


def _nan3() -> Pos3D:
    return Pos3D(math.nan, math.nan, math.nan)


def _copy(pos: Pos3D) -> Pos3D:
    return Pos3D(pos.x, pos.y, pos.z)


def _planar(a: Pos2D | Pos3D, b: Pos2D | Pos3D) -> float:
    return dist_euc_xy(a.x, a.y, b.x, b.y)


@dataclass
class DroneCommand:
    """Everything the drone commander publishes after one step."""

    state: HectorState
    trajectory: list[Pos3D]
    target: Pos3D
    current_goal: Pos3D
    next_goal: Pos3D
    rotate: bool
    velocity: tuple[float, float, float, float] | None
    goal_id: int | None = None
    error: float | None = None
    error_vec: Pos3D | None = None
    vel_mag: float | None = None


class DroneCommander:
    """Decides where the drone flies next and produces its velocity commands."""

    def __init__(self, params: DroneParams | None = None) -> None:
        self.params = p = params or DroneParams()
        self.trajectory_generator = TrajectoryGenerator(
            p.target_dt,
            p.average_speed,
            p.primary_traj,
            p.cruise_height,
            p.takeoff_height,
            p.land_height,
            p.verbose_trajectory,
        )
        self.velocity_controller = VelocityController(p.controller, p.verbose)

        self.state = HectorState.TAKEOFF

        self.hector_position = _nan3()
        self.hector_heading = math.nan
        self.hector_lin_vel = _nan3()
        self.hector_ang_vel = math.nan
        self.hector_vel_mag = _INITIAL_VEL_MAG
        self.hector_spline = SplineData3D()
        self._vel_mag_report = 0.0

        self.turtle = TurtleTracker(p.verbose)
        self.ts_id = -1

        self.gen_traj_passthrough = True
        self.gen_traj_turtle = False
        self.finished = False

        self.trajs = 0
        self.total_traj_length = 0
        self.avg_traj_length = 0.0

        self.current_target = _nan3()
        self.h_id = -1
        self.look_ahead_targets = _INITIAL_LOOK_AHEAD_TARGETS

        init = p.initial_position
        self.takeoff_goal = Pos3D(init.x, init.y, p.takeoff_height)
        self.land_goal = Pos3D(init.x, init.y, p.land_height)
        self.start_goal = _nan3()
        self.end_goal = _nan3()
        self.home_goal = _nan3()
        self.pred_goal = Pos2D(math.nan, math.nan)
        self.pred_id = -1

        self.current_goal = _copy(self.takeoff_goal)
        self.next_goal = _nan3()

        self.solo_goals: list[Pos3D] = []
        self.solo_goal_id = -1
        self.goal_id = 0
        self.rotate = False

        if p.co_op:
            if p.turtle_goals is None:
                self.finished = True
            else:
                if not p.turtle_goals:
                    raise ValueError("turtle_goals must not be empty")
                last = p.turtle_goals[-1]
                self.end_goal = Pos3D(last.x, last.y, p.cruise_height)
                self.start_goal = Pos3D(init.x, init.y, p.cruise_height)
            logger.info("Drone Commander Prepared! In Co-Op Mode with Turtle!")
        else:
            self.solo_goals = [_copy(g) for g in p.solo_goals]
            if self.solo_goals:
                self.home_goal = Pos3D(init.x, init.y, p.cruise_height)
            self.goal_id = _GOAL_ID_TAKEOFF
            logger.info("Drone Commander Prepared! In Solo-Flight mode!")

    # --- inputs -----------------------------------------------------------

    def on_hector_pose(self, position: Pos3D, heading: float) -> None:
        self.hector_position = _copy(position)
        self.hector_heading = heading

    def on_hector_velocity(self, linear: Pos3D, angular_z: float) -> None:
        self.hector_lin_vel = _copy(linear)
        self.hector_ang_vel = angular_z
        if self.state != HectorState.TAKEOFF:
            self.hector_vel_mag = math.hypot(linear.x, linear.y)
            self._vel_mag_report = self.hector_vel_mag

    def on_turtle_pose(self, position: Pos2D, heading: float) -> None:
        self.turtle.update_pose(position, heading)

    def on_turtle_spline(self, spline_id, average_speed, target_dt, points) -> None:
        if self.turtle.update_spline(spline_id, average_speed, target_dt, points):
            self.gen_traj_turtle = True

    # --- loop -------------------------------------------------------------

    def is_ready(self) -> bool:
        """True once every input the mode needs has arrived."""
        hector = not math.isnan(self.hector_position.x) and not math.isnan(self.hector_lin_vel.x)
        if not self.params.co_op:
            return hector
        return hector and self.turtle.has_pose and self.turtle.spline.curr_spline_id != -1

    def start(self, time_now: float) -> None:
        self.velocity_controller.prepare(time_now)
        logger.info("Taking Off!")

    def _predict(self) -> tuple[Pos2D, int]:
        return predict_turtle_pos(
            self.hector_position, self.hector_vel_mag, self.turtle.spline, self.ts_id
        )

    def _at_cruise(self, goal: Pos2D | Pos3D) -> Pos3D:
        return Pos3D(goal.x, goal.y, self.params.cruise_height)

    def _cruise_reached(self, goal: Pos2D | Pos3D) -> bool:
        p = self.params
        return (
            _planar(self.hector_position, goal) < p.thresh_cruise_planar
            and abs(self.hector_position.z - p.cruise_height) < p.thresh_cruise_height
        )

    def _head_for_turtle(self) -> None:
        if self.params.enable_prediction:
            self.pred_goal, self.pred_id = self._predict()
            self.current_goal = self._at_cruise(self.pred_goal)
        else:
            self.current_goal = self._at_cruise(self.turtle.position)
        self.next_goal = self._at_cruise(self.end_goal)
        self.gen_traj_turtle = True
        self.gen_traj_passthrough = False

    def _state_takeoff(self) -> None:
        p = self.params
        self.rotate = False
        self.gen_traj_turtle = False
        reached_planar = _planar(self.hector_position, self.current_goal) < p.thresh_cruise_planar
        reached_height = abs(self.hector_position.z - p.takeoff_height) < _TAKEOFF_HEIGHT_TOLERANCE
        if not (reached_planar and reached_height):
            return
        if p.co_op:
            self.state = HectorState.TURTLE
            self._head_for_turtle()
        else:
            if not self.solo_goals:
                raise ValueError("solo flight needs at least one goal")
            self.state = HectorState.FOLLOW
            self.solo_goal_id = 0
            self.current_goal = _copy(self.solo_goals[0])
            self.goal_id = 0
            self.gen_traj_turtle = False
            self.gen_traj_passthrough = True

    def _state_turtle(self) -> None:
        p = self.params
        self.rotate = True
        self.gen_traj_passthrough = False

        if self._cruise_reached(self.turtle.position):
            self.state = HectorState.GOAL
            self.current_goal = _copy(self.end_goal)
            self.next_goal = _copy(self.start_goal)
            self.gen_traj_turtle = False
            self.gen_traj_passthrough = True
            return

        if not p.enable_prediction:
            self.current_goal = self._at_cruise(self.turtle.position)
            self.next_goal = _copy(self.end_goal)
            self.gen_traj_turtle = False
            self.gen_traj_passthrough = True
            return

        if self.gen_traj_turtle:
            self.pred_goal, self.pred_id = self._predict()
            self.current_goal = self._at_cruise(self.pred_goal)
            self.next_goal = _copy(self.end_goal)
            self.gen_traj_turtle = True
            self.gen_traj_passthrough = False
            return

        turtle_reached = self.ts_id >= self.pred_id
        hector_reached = _planar(self.hector_position, self.pred_goal) < p.thresh_cruise_planar

        if turtle_reached and not hector_reached:
            self.pred_goal, self.pred_id = self._predict()
            self.current_goal = self._at_cruise(self.pred_goal)
            self.next_goal = _copy(self.end_goal)
            self.gen_traj_turtle = False
            self.gen_traj_passthrough = True
        elif hector_reached and not turtle_reached:
            self.pred_goal = Pos2D(self.turtle.position.x, self.turtle.position.y)
            self.pred_id = -2  # chasing the turtle directly
            self.current_goal = self._at_cruise(self.turtle.position)
            self.next_goal = _copy(self.end_goal)
            self.gen_traj_turtle = False
            self.gen_traj_passthrough = True
        elif not hector_reached and not turtle_reached:
            new_goal, new_id = self._predict()
            if new_id != self.pred_id:
                # Only the goal moves; the stored prediction id is kept.
                self.pred_goal = Pos2D(new_goal.x, new_goal.y)
                self.current_goal = self._at_cruise(self.pred_goal)
                self.next_goal = _copy(self.end_goal)
                self.gen_traj_turtle = False
                self.gen_traj_passthrough = True

    def _state_goal(self) -> None:
        self.rotate = True
        self.gen_traj_passthrough = False
        self.gen_traj_turtle = False
        if self._cruise_reached(self.end_goal):
            self.state = HectorState.START
            self.current_goal = _copy(self.start_goal)
            self.next_goal = self._at_cruise(self.turtle.position)

    def _state_start(self, turtle_running: bool) -> None:
        self.rotate = True
        self.gen_traj_turtle = False
        self.gen_traj_passthrough = False
        if not self._cruise_reached(self.start_goal):
            return
        if not turtle_running:
            self.state = HectorState.LAND
            self.current_goal = _copy(self.land_goal)
            self.next_goal = _nan3()
            self.gen_traj_turtle = False
            self.gen_traj_passthrough = True
        else:
            self.state = HectorState.TURTLE
            self._head_for_turtle()

    def _state_land(self) -> None:
        p = self.params
        self.rotate = False
        self.gen_traj_turtle = False
        self.gen_traj_passthrough = False
        reached_planar = _planar(self.hector_position, self.land_goal) < p.thresh_cruise_planar
        reached_height = abs(self.hector_position.z - p.land_height) < p.thresh_land_height
        if reached_planar and reached_height:
            logger.info("Landed Safely. Shutting down Avionics")
            self.finished = True

    def _state_follow(self) -> None:
        self.rotate = True
        self.gen_traj_turtle = False
        self.gen_traj_passthrough = False
        if not self._cruise_reached(self.current_goal):
            return
        if self.solo_goal_id == len(self.solo_goals) - 1:
            self.state = HectorState.HOME
            self.current_goal = _copy(self.home_goal)
            self.goal_id = len(self.solo_goals)
        else:
            self.solo_goal_id += 1
            self.goal_id = self.solo_goal_id
            self.current_goal = _copy(self.solo_goals[self.solo_goal_id])
        self.gen_traj_passthrough = True

    def _state_home(self) -> None:
        self.rotate = True
        self.gen_traj_turtle = False
        self.gen_traj_passthrough = False
        if self._cruise_reached(self.home_goal):
            self.state = HectorState.LAND
            self.current_goal = _copy(self.land_goal)
            self.goal_id = _GOAL_ID_LAND
            self.gen_traj_turtle = False
            self.gen_traj_passthrough = True

    def _regenerate(self) -> None:
        p = self.params
        self.trajectory_generator.trajectory_handler(
            _copy(self.current_goal),
            _copy(self.next_goal),
            _copy(self.hector_position),
            _copy(self.hector_lin_vel),
            self.hector_spline,
            self.state,
        )
        spline = self.hector_spline.spline
        self.h_id = len(spline) - 1
        self.hector_spline.spline_duration = _planar(self.hector_position, self.current_goal) / p.average_speed
        self.hector_spline.target_dt = p.target_dt

        look_ahead_time = min(p.look_ahead, self.hector_spline.spline_duration)
        self.look_ahead_targets = int(look_ahead_time / p.target_dt)
        if len(spline) > self.look_ahead_targets:
            self.h_id -= self.look_ahead_targets
        else:
            self.h_id = 0

        self.trajs += 1
        self.total_traj_length += len(spline)
        self.avg_traj_length = float(self.total_traj_length // self.trajs)
        self.gen_traj_passthrough = False
        self.gen_traj_turtle = False

    def _height_threshold(self) -> float:
        p = self.params
        if self.state == HectorState.TAKEOFF:
            return p.thresh_takeoff_height
        if self.state == HectorState.LAND:
            return p.thresh_land_height
        return p.thresh_cruise_height

    def step(self, time_now: float, turtle_running: bool = False) -> DroneCommand | None:
        """Run one control cycle.

        Returns None when no time has passed or once the drone has landed
        (see ``finished``). turtle_running tells whether the ground robot is
        still active.
        """
        if self.finished:
            return None
        if not self.velocity_controller.update_dt(time_now):
            return None
        p = self.params

        if p.co_op:
            self.ts_id = self.turtle.spline.find_pos_id(self.turtle.position)

        if self.state == HectorState.TAKEOFF:
            self._state_takeoff()
        elif self.state == HectorState.TURTLE:
            self._state_turtle()
        elif self.state == HectorState.GOAL:
            self._state_goal()
        elif self.state == HectorState.START:
            self._state_start(turtle_running)
        elif self.state == HectorState.LAND:
            self._state_land()
        elif self.state == HectorState.FOLLOW:
            self._state_follow()
        elif self.state == HectorState.HOME:
            self._state_home()

        if self.finished:
            return None

        if self.gen_traj_passthrough or self.gen_traj_turtle:
            self._regenerate()

        spline = self.hector_spline.spline
        self.current_target = _copy(spline[self.h_id])

        reached_planar = _planar(self.hector_position, self.current_target) < p.thresh_cruise_planar
        reached_height = abs(self.hector_position.z - self.current_target.z) < self._height_threshold()
        if reached_planar and reached_height:
            if self.h_id != 0:
                self.h_id = max(self.h_id - self.look_ahead_targets, 0)
            self.current_target = _copy(spline[self.h_id])

        if math.isnan(self.current_target.x) or math.isnan(self.current_target.y):
            logger.error("Warning! Current target is NAN")

        velocity = self.velocity_controller.generate_velocities(
            self.hector_position, self.hector_heading, self.current_target, self.rotate
        )

        command = DroneCommand(
            state=self.state,
            trajectory=[_copy(t) for t in spline],
            target=_copy(self.current_target),
            current_goal=_copy(self.current_goal),
            next_goal=_copy(self.next_goal),
            rotate=self.rotate,
            velocity=velocity if p.enable_controller else None,
        )
        if not p.co_op:
            goal, pos = self.current_goal, self.hector_position
            command.goal_id = self.goal_id
            command.error = _planar(pos, goal)
            command.error_vec = Pos3D(abs(goal.x - pos.x), abs(goal.y - pos.y), abs(goal.z - pos.z))
            command.vel_mag = self._vel_mag_report

        if p.verbose:
            logger.info("H STATE: %s", self.state.name)
            logger.info("CURRENT GOAL: %s", self.current_goal)
            logger.info("NEXT GOAL: %s", self.next_goal)
            logger.info("CURRENT TARGET: %s", self.current_target)
            logger.warning("LINEAR VELOCITY: %s", self.hector_lin_vel)
            logger.warning("PLANAR X-Y VELOCITY MAGNITUDE: %s", self.hector_vel_mag)
            logger.warning("Total Trajs: %d, Average Traj Length: %s", self.trajs, self.avg_traj_length)
        return command