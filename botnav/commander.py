"""Ground-robot commander: follows a planned path while watching the occupancy map."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from botnav.geometry import Index, Pos2D, dist_euc
from botnav.local_planner import LocalPlanner
from botnav.pid_controller import Controller, PIDParams

logger = logging.getLogger(__name__)

_UNSET = -500.0  # a coordinate the robot is very unlikely to report
_LOOK_AHEAD_TARGETS = 15


def _round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _copy(pos: Pos2D) -> Pos2D:
    return Pos2D(pos.x, pos.y)


@dataclass
class MapData:
    """Occupancy grid layout and contents."""

    origin: Pos2D
    pos_min: Pos2D
    pos_max: Pos2D
    map_size: Index
    cell_size: float
    total_cells: int
    lo_thresh: int = 10
    lo_cap: int = 20
    grid_inflation: list[int] = field(default_factory=list)
    grid_logodds: list[int] = field(default_factory=list)

    @classmethod
    def from_bounds(
        cls,
        pos_min: Pos2D = None,
        pos_max: Pos2D = None,
        cell_size: float = 0.05,
        lo_thresh: int = 10,
        lo_cap: int = 20,
    ) -> MapData:
        """Build an empty grid covering pos_min to pos_max."""
        pos_min = _copy(pos_min) if pos_min is not None else Pos2D(-10.0, -10.0)
        pos_max = _copy(pos_max) if pos_max is not None else Pos2D(10.0, 10.0)
        if cell_size <= 0:
            raise ValueError("cell_size must be positive")
        size = Index(
            _round_half_away((pos_max.x - pos_min.x) / cell_size),
            _round_half_away((pos_max.y - pos_min.y) / cell_size),
        )
        total = size.i * size.j
        return cls(
            origin=_copy(pos_min),
            pos_min=pos_min,
            pos_max=pos_max,
            map_size=size,
            cell_size=cell_size,
            total_cells=total,
            lo_thresh=lo_thresh,
            lo_cap=lo_cap,
            grid_inflation=[0] * total,
            grid_logodds=[0] * total,
        )

    def pos2idx(self, pos: Pos2D) -> Index:
        """Grid cell holding a world position."""
        return Index(
            _round_half_away((pos.x - self.origin.x) / self.cell_size),
            _round_half_away((pos.y - self.origin.y) / self.cell_size),
        )

    def out_of_bounds(self, idx: Index) -> bool:
        """True when idx lies outside the usable grid; row 0 counts as outside."""
        return (
            idx.i <= 0
            or idx.i >= self.map_size.i
            or idx.j < 0
            or idx.j >= self.map_size.j
        )

    def flatten(self, idx: Index) -> int:
        return idx.i * self.map_size.j + idx.j

    def check_cell(self, idx: Index) -> bool:
        """True when the cell is inside the map, not inflated and not occupied."""
        if self.out_of_bounds(idx):
            return False
        k = self.flatten(idx)
        if self.grid_inflation[k] > 0:
            return False
        if self.grid_logodds[k] > self.lo_thresh:
            return False
        return True


@dataclass
class CommanderParams:
    rate: float = 25.0
    enable_commander: bool = True
    close_enough: float = 0.05
    danger_close: int = 10
    verbose: bool = False
    target_dt: float = 0.04
    average_speed: float = 0.16
    traj_type: str = "cubic"


@dataclass
class CommandOutput:
    """Everything the commander publishes after one step."""

    trajectory: list[Pos2D]
    target: Pos2D
    linear: float
    angular: float
    replan: bool
    spline: list[Pos2D] | None
    spline_id: int
    average_speed: float
    target_dt: float


class Commander:
    """Turns paths into trajectories and trajectories into velocity commands."""

    def __init__(
        self,
        map_data: MapData,
        params: CommanderParams | None = None,
        pid_params: PIDParams | None = None,
    ) -> None:
        self.map = map_data
        self.params = params or CommanderParams()
        self.pid_params = pid_params or PIDParams()
        self.planner = LocalPlanner(
            self.params.target_dt, self.params.average_speed, self.params.traj_type
        )
        self.controller = Controller(self.pid_params)

        self.robot_position = Pos2D(_UNSET, _UNSET)
        self.robot_heading = _UNSET
        self.robot_speed = 0.0
        self.brake = False

        self.path: list[Pos2D] = []
        self.curr_path_id = -1
        self.trajectory: list[Pos2D] = []
        self.current_target = Pos2D(_UNSET, _UNSET)
        self.t_id = -1

        self.generate_trajectory = False
        self.trigger_replan = False

        self.spline_counter = 0
        self.spline: list[Pos2D] = []
        self.spline_id = -1

        self.cmd_lin_vel = 0.0
        self.cmd_ang_vel = 0.0
        self._published_trajectory: list[Pos2D] = []

    # --- inputs -----------------------------------------------------------

    def on_pose(self, position: Pos2D, heading: float) -> None:
        self.robot_position = _copy(position)
        self.robot_heading = heading

    def on_inflation(self, data: list[int]) -> None:
        self.map.grid_inflation = list(data)

    def on_logodds(self, data: list[int]) -> None:
        self.map.grid_logodds = list(data)

    def on_path(self, path_id: int, path: list[Pos2D]) -> None:
        """Accept a path ordered goal first; repeated ids are ignored."""
        if path_id == self.curr_path_id:
            return
        self.path = [_copy(p) for p in path]
        self.curr_path_id = path_id
        self.generate_trajectory = True
        self.trigger_replan = False
        self.trajectory = []
        if self.params.verbose:
            logger.info("New Path Received!")

    def on_speed(self, speed: float) -> None:
        self.robot_speed = speed

    def set_brake(self, brake: bool) -> bool:
        self.brake = bool(brake)
        return True

    # --- loop -------------------------------------------------------------

    def is_ready(self) -> bool:
        """True once pose, grids and a path have all arrived."""
        return (
            self.robot_position.x != _UNSET
            and bool(self.map.grid_inflation)
            and bool(self.map.grid_logodds)
            and self.curr_path_id != -1
        )

    def start(self, time_now: float) -> None:
        self.current_target = _copy(self.robot_position)
        self.controller.prepare(
            self.robot_position, self.robot_heading, self.current_target, time_now
        )
        logger.info("Starting Commander!")

    def check_dist(self) -> bool:
        return dist_euc(self.robot_position, self.current_target) < self.params.close_enough

    def check_trajectory_safety(self) -> tuple[bool, int]:
        """(safe, index): index of the first bad target, -1 if none, -2 if empty."""
        if not self.trajectory:
            return False, -2
        if len(self.trajectory) == 1:
            return self.map.check_cell(self.map.pos2idx(self.trajectory[0])), -1
        for i in range(self.t_id, -1, -1):
            if not self.map.check_cell(self.map.pos2idx(self.trajectory[i])):
                return False, i
        return True, -1

    def _build_trajectory(self) -> None:
        if self.params.traj_type == "Linear":
            self.trajectory = self.planner.generate_linear_trajectory(self.path)
        else:
            self.trajectory = self.planner.generate_trajectory(
                self.path, self.robot_speed, self.robot_heading
            )
        self.t_id = len(self.trajectory) - 1
        if self.t_id > _LOOK_AHEAD_TARGETS:
            self.t_id -= _LOOK_AHEAD_TARGETS
        self.spline = [_copy(p) for p in reversed(self.trajectory[: self.t_id + 1])]
        self.spline_id = self.spline_counter
        self.spline_counter += 1

    def _advance_target(self) -> bool:
        """Move to the next target when close; True when at the final target."""
        if not self.check_dist():
            return False
        if self.t_id == 0:
            self.current_target = self.trajectory[0]
            return True
        self.t_id -= 1
        self.current_target = self.trajectory[self.t_id]
        return False

    def _command(self) -> None:
        self.cmd_lin_vel, self.cmd_ang_vel = self.controller.generate_cmdvel(
            self.robot_position, self.robot_heading, self.current_target
        )

    def step(self, time_now: float) -> CommandOutput | None:
        """Run one control cycle; None when no time has passed since the last."""
        if not self.controller.update_dt(time_now):
            return None

        if self.generate_trajectory:
            self._build_trajectory()

        safe, bad_idx = self.check_trajectory_safety()
        if self.trajectory:
            self.current_target = self.trajectory[self.t_id]

        if not safe and bad_idx < 0:
            if self.params.verbose:
                if bad_idx == -2:
                    logger.warning("Trajectory is empty!")
                else:
                    logger.warning("Only target in Trajectory is bad!")
            self.current_target = _copy(self.robot_position)
            self.cmd_lin_vel = 0.0
            self.cmd_ang_vel = 0.0
            self.trigger_replan = True
        elif not safe:
            if self.t_id - bad_idx < self.params.danger_close:
                self._advance_target()
                self._command()
                self.trigger_replan = True
            else:
                if self._advance_target():
                    self.trigger_replan = True
                self._command()
        else:
            if self.check_dist():
                self._advance_target()
                self.trigger_replan = False
            self._command()

        if self.generate_trajectory:
            self._published_trajectory = [_copy(p) for p in self.trajectory]
            self.generate_trajectory = False

        factor = 0.0 if self.brake else 1.0
        return CommandOutput(
            trajectory=list(self._published_trajectory),
            target=_copy(self.current_target),
            linear=self.cmd_lin_vel * factor,
            angular=self.cmd_ang_vel * factor,
            replan=self.trigger_replan,
            spline=list(self.spline) if self.spline_id != -1 else None,
            spline_id=self.spline_id,
            average_speed=self.params.average_speed,
            target_dt=self.params.target_dt,
        )