# botnav

Navigation building blocks for two robots:

- a ground robot that follows a planned path;
- a drone that either flies a list of waypoints on its own or chases the ground
  robot.

Every component takes plain values, such as positions, headings and timestamps,
and returns plain values. Your own runtime supplies the sensors, the clock and
the message transport.

## Installation

```
pip install botnav
```

numpy is the only runtime dependency.

## What is inside

- `botnav.geometry`
  - `Pos2D`, `Pos3D` and `Index` value types. `Pos2D` compares with a tolerance
    of `1e-6` and supports `+`, `-`, scalar `*`, `mag()` and `unit_vec()`.
  - Distances: `dist_euc`, `dist_euc_xy`, `dist_oct` and `dist_oct_xy`.
  - Angle helpers:
    - `heading`;
    - `limit_angle`, which wraps an angle into [-pi, pi);
    - `heading_from_quat`.
  - Damping curves: `damping_cos`, `damping_quadratic` and `damping_piecewise`.
  - `sign`.
  - `bresenham_los`, which gives the grid cells on a line of sight with both
    ends included.
  - `TimeLogger`, which times loops in milliseconds and keeps a running
    average.
- `botnav.spline_data`
  - `SplineData2D` and `SplineData3D` hold a list of targets.
  - `find_pos_id` returns the index of the nearest target. It compares in the
    plane only and stops as soon as the distances start to grow.
- `botnav.mission_states`
  - `HectorState` is the drone's mission state: `TAKEOFF`, `LAND`, `TURTLE`,
    `START`, `GOAL`, `FOLLOW` or `HOME`.
  - `unpack_h_state` gives a state's name.
- `botnav.local_planner`
  - `LocalPlanner` samples a path into time-spaced targets.
  - A `"Linear"` planner uses `generate_linear_trajectory`.
  - A `"Cubic"` planner uses `generate_trajectory`. So does a `"Quintic"`
    planner, and any other name also gives a quintic planner.
  - `generate_trajectory` raises `ValueError` on a `"Linear"` planner.
- `botnav.pid_controller`
  - `PIDParams` holds the settings and `Controller` is a coupled linear and
    angular PID.
  - The heading error damps the linear speed. The damping curve is `"Cos"`,
    `"Quad"`, `"PieceWise"` (the default, also used for unknown names) or
    `"Exp"`.
  - When the target lies behind the robot, the robot reverses.
  - Accelerations and velocities are saturated.
- `botnav.commander`
  - `MapData` is the occupancy-grid lookup, built with `MapData.from_bounds`.
  - `Commander` is the ground robot's path-following loop.
  - `CommanderParams` holds its settings and `CommandOutput` is the result of
    one step.
- `botnav.velocity_controller`
  - `ControllerParams` and `VelocityController` make up the drone's planar and
    vertical PID.
  - Its output is `(vx, vy, vz, yaw_rate)` in the robot frame.
- `botnav.trajectory_generator`
  - `TrajectoryGenerator` builds the drone's spline for each mission state and
    writes it into a `SplineData3D`.
- `botnav.drone_support`
  - `DroneParams` holds every setting of the drone commander.
  - `TurtleTracker` keeps the ground robot's latest pose and spline.
  - `predict_turtle_pos` picks an interception point on the ground robot's
    spline.
  - `switch_motors` arms or disarms the motors through a callable you supply,
    with retries.
- `botnav.drone_commander`
  - `DroneCommander` is the drone's mission state machine.
  - `DroneCommand` is what one step of it produces.

## Trajectory order

Paths and trajectories are ordered goal first, start last. The robot's next
target therefore sits near the end of the list, and the robot works towards
index 0.

## Example: planning and control on the ground

```python
from botnav.geometry import Pos2D
from botnav.local_planner import LocalPlanner
from botnav.pid_controller import Controller, PIDParams

planner = LocalPlanner(target_dt=0.04, average_speed=0.16, traj_type="Cubic")
path = [Pos2D(1.0, 1.0), Pos2D(0.5, 0.0), Pos2D(0.0, 0.0)]
trajectory = planner.generate_trajectory(path, 0.0, 0.0)

pid = Controller(PIDParams())
pid.prepare(Pos2D(0.0, 0.0), 0.0, trajectory[-1], time_now=0.0)
if pid.update_dt(0.04):
    linear, angular = pid.generate_cmdvel(Pos2D(0.0, 0.0), 0.0, trajectory[-1])
```

`update_dt` returns `False` when no time has passed. `generate_cmdvel` raises
`RuntimeError` if it is called without a time step.

## Example: the ground commander

```python
from botnav.commander import Commander, CommanderParams, MapData
from botnav.geometry import Pos2D

grid = MapData.from_bounds(Pos2D(-10, -10), Pos2D(10, 10), cell_size=0.05)
commander = Commander(grid, CommanderParams(traj_type="Cubic"))

commander.on_pose(Pos2D(0.0, 0.0), 0.0)
commander.on_inflation([0] * grid.total_cells)
commander.on_logodds([0] * grid.total_cells)
commander.on_path(1, [Pos2D(1.0, 1.0), Pos2D(0.0, 0.0)])

if commander.is_ready():
    commander.start(0.0)
    output = commander.step(0.04)  # a CommandOutput, or None if no time passed
```

On each step the commander does the following:

1. It checks the trajectory against the grid. A target is bad if it lies
   outside the map, in an inflated cell, or in a cell whose log-odds exceed
   `lo_thresh`.
2. It moves to the next target once it is within `close_enough`.
3. It sets `replan` in its output when the trajectory is empty, when it is
   unsafe near the robot, or when the robot has reached its last target.
4. While `set_brake(True)` is in effect, it reports zero velocities.

## Example: the drone

```python
from botnav.drone_commander import DroneCommander
from botnav.drone_support import DroneParams
from botnav.geometry import Pos3D

drone = DroneCommander(DroneParams(solo_goals=[Pos3D(2.0, 0.0, 2.0)]))
drone.on_hector_pose(Pos3D(0.0, 0.0, 0.18), 0.0)
drone.on_hector_velocity(Pos3D(0.0, 0.0, 0.0), 0.0)

if drone.is_ready():
    drone.start(0.0)
    command = drone.step(0.03)  # a DroneCommand, or None
```

Solo flight runs through these states:

1. `TAKEOFF`
2. `FOLLOW`, once for each goal in turn
3. `HOME`
4. `LAND`

In co-op mode (`co_op=True`), the commander also needs the following:

- `turtle_goals`, of which only the last goal is used;
- the ground robot's pose, passed to `on_turtle_pose`;
- the ground robot's spline, passed to `on_turtle_spline`.

The drone then chases the ground robot in `TURTLE`, flies to the ground
robot's last goal in `GOAL`, and returns to its start in `START`. From there it
either chases again or lands, depending on the `turtle_running` argument of
`step`.

`step` returns `None` in two cases:

- when no time has passed;
- once the drone has landed. `drone.finished` is then true.

Only when `enable_controller` is set does the command carry velocities.

## What the package does not do

- There is no command-line program and no message transport. You call the
  classes from your own loop and deliver their outputs yourself.
- There is no state estimation. Poses, headings and velocities must come from
  elsewhere.
- The motors are not driven directly. `switch_motors` only calls the function
  you give it.

## Running the tests

```
pip install "botnav[test]"
pytest
```