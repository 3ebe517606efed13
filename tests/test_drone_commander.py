import math

import pytest

from botnav.drone_commander import DroneCommand, DroneCommander
from botnav.drone_support import DroneParams, predict_turtle_pos
from botnav.geometry import Pos2D, Pos3D
from botnav.mission_states import HectorState
from botnav.velocity_controller import ControllerParams

GOALS = [Pos3D(1.0, 0.0, 2.0), Pos3D(1.0, 1.0, 2.0)]


def solo_params(**kwargs):
    return DroneParams(
        initial_position=Pos3D(0.0, 0.0, 0.178),
        solo_goals=list(GOALS),
        controller=ControllerParams(max_z_vel=0.5),
        **kwargs,
    )


def ready_solo(**kwargs):
    cmd = DroneCommander(solo_params(**kwargs))
    cmd.on_hector_pose(Pos3D(0.0, 0.0, 0.178), 0.0)
    cmd.on_hector_velocity(Pos3D(0.0, 0.0, 0.0), 0.0)
    cmd.start(0.0)
    return cmd


def test_ready_needs_pose_and_velocity():
    cmd = DroneCommander(solo_params())
    assert cmd.is_ready() is False
    cmd.on_hector_pose(Pos3D(0.0, 0.0, 0.178), 0.0)
    assert cmd.is_ready() is False
    cmd.on_hector_velocity(Pos3D(0.0, 0.0, 0.0), 0.0)
    assert cmd.is_ready() is True


def test_coop_without_turtle_goals_is_finished():
    cmd = DroneCommander(DroneParams(co_op=True))
    assert cmd.finished is True
    assert cmd.step(1.0) is None


def test_coop_with_empty_turtle_goals_raises():
    with pytest.raises(ValueError):
        DroneCommander(DroneParams(co_op=True, turtle_goals=[]))


def test_no_time_passed_returns_none():
    cmd = ready_solo()
    assert cmd.step(0.0) is None


def test_takeoff_step_climbs_towards_takeoff_goal():
    cmd = ready_solo()
    out = cmd.step(0.1)
    assert isinstance(out, DroneCommand)
    assert out.state == HectorState.TAKEOFF
    assert out.target == cmd.takeoff_goal
    assert out.goal_id == -2
    assert out.rotate is False
    assert out.velocity == (0.0, 0.0, 0.5, 0.0)


def test_disabled_controller_gives_no_velocity():
    cmd = ready_solo(enable_controller=False)
    out = cmd.step(0.1)
    assert out.velocity is None
    assert out.target == cmd.takeoff_goal


def test_takeoff_reached_switches_to_follow():
    cmd = ready_solo()
    cmd.on_hector_pose(Pos3D(0.0, 0.0, 2.0), 0.0)
    out = cmd.step(0.1)
    assert out.state == HectorState.FOLLOW
    assert out.current_goal == GOALS[0]
    assert out.goal_id == 0
    assert out.rotate is True
    assert out.trajectory[0] == GOALS[0]
    assert all(t.z == cmd.params.cruise_height for t in out.trajectory[1:])


def test_velocity_magnitude_updates_after_takeoff():
    cmd = ready_solo()
    cmd.on_hector_velocity(Pos3D(3.0, 4.0, 0.0), 0.0)
    assert cmd.hector_vel_mag == 0.35
    cmd.on_hector_pose(Pos3D(0.0, 0.0, 2.0), 0.0)
    cmd.step(0.1)
    cmd.on_hector_velocity(Pos3D(3.0, 4.0, 0.0), 0.0)
    assert cmd.hector_vel_mag == pytest.approx(5.0)


def test_full_solo_mission_lands():
    cmd = ready_solo()
    cmd.on_hector_pose(Pos3D(0.0, 0.0, 2.0), 0.0)
    states = []
    t = 0.0
    for _ in range(20):
        t += 0.1
        out = cmd.step(t)
        if out is None:
            break
        states.append(out.state)
        if out.state == HectorState.HOME:
            assert out.goal_id == len(GOALS)
        if out.state == HectorState.LAND:
            assert out.goal_id == -1
        goal = out.current_goal
        height = goal.z if out.state == HectorState.LAND else cmd.params.cruise_height
        cmd.on_hector_pose(Pos3D(goal.x, goal.y, height), 0.0)
    assert cmd.finished is True
    assert HectorState.HOME in states
    assert states[-1] == HectorState.LAND
    assert cmd.step(t + 1.0) is None


def coop_commander():
    params = DroneParams(
        co_op=True,
        turtle_goals=[Pos2D(0.5, 0.5), Pos2D(3.0, 0.0)],
        initial_position=Pos3D(0.0, 0.0, 0.178),
    )
    cmd = DroneCommander(params)
    cmd.on_hector_pose(Pos3D(0.0, 0.0, 2.0), 0.0)
    cmd.on_hector_velocity(Pos3D(0.0, 0.0, 0.0), 0.0)
    cmd.on_turtle_pose(Pos2D(1.0, 0.0), 0.0)
    points = [Pos2D(1.0 + 0.1 * k, 0.0) for k in range(20)]
    cmd.on_turtle_spline(0, 0.2, 0.5, points)
    cmd.start(0.0)
    return cmd, points


def test_coop_goals_come_from_last_turtle_goal():
    cmd, _ = coop_commander()
    assert cmd.end_goal == Pos3D(3.0, 0.0, cmd.params.cruise_height)
    assert cmd.start_goal == Pos3D(0.0, 0.0, cmd.params.cruise_height)
    assert cmd.is_ready() is True


def test_coop_takeoff_heads_for_predicted_turtle_position():
    cmd, points = coop_commander()
    out = cmd.step(0.1)
    assert out.state == HectorState.TURTLE
    expected, expected_id = predict_turtle_pos(
        Pos3D(0.0, 0.0, 2.0), 0.35, cmd.turtle.spline, 0
    )
    assert cmd.pred_id == expected_id
    assert out.current_goal == Pos3D(expected.x, expected.y, cmd.params.cruise_height)
    assert out.next_goal == cmd.end_goal
    assert out.goal_id is None


def test_coop_mission_through_goal_start_and_land():
    cmd, _ = coop_commander()
    cmd.step(0.1)
    cmd.on_hector_pose(Pos3D(1.0, 0.0, 2.0), 0.0)
    out = cmd.step(0.2)
    assert out.state == HectorState.GOAL
    assert out.current_goal == cmd.end_goal
    assert out.next_goal == cmd.start_goal

    cmd.on_hector_pose(Pos3D(3.0, 0.0, 2.0), 0.0)
    out = cmd.step(0.3)
    assert out.state == HectorState.START
    assert out.current_goal == cmd.start_goal

    cmd.on_hector_pose(Pos3D(0.0, 0.0, 2.0), 0.0)
    out = cmd.step(0.4, turtle_running=False)
    assert out.state == HectorState.LAND
    assert out.current_goal == cmd.land_goal
    assert math.isnan(out.next_goal.x)


def test_coop_start_returns_to_turtle_when_it_still_runs():
    cmd, _ = coop_commander()
    cmd.step(0.1)
    cmd.on_hector_pose(Pos3D(1.0, 0.0, 2.0), 0.0)
    cmd.step(0.2)
    cmd.on_hector_pose(Pos3D(3.0, 0.0, 2.0), 0.0)
    cmd.step(0.3)
    cmd.on_hector_pose(Pos3D(0.0, 0.0, 2.0), 0.0)
    out = cmd.step(0.4, turtle_running=True)
    assert out.state == HectorState.TURTLE
    assert out.next_goal == cmd.end_goal