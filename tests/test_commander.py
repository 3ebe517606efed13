import pytest

from botnav.commander import Commander, CommanderParams, MapData
from botnav.geometry import Index, Pos2D
from botnav.pid_controller import PIDParams


def small_map():
    return MapData.from_bounds(Pos2D(0.0, 0.0), Pos2D(1.0, 1.0), 0.1, 10, 20)


def big_map():
    return MapData.from_bounds(Pos2D(-10.0, -10.0), Pos2D(10.0, 10.0), 0.5, 10, 20)


def make_commander(traj_type="Linear"):
    return Commander(big_map(), CommanderParams(traj_type=traj_type), PIDParams())


def ready_commander(path, traj_type="Linear"):
    cmd = make_commander(traj_type)
    cmd.on_pose(Pos2D(0.0, 0.0), 0.0)
    cmd.on_path(1, path)
    cmd.start(0.0)
    return cmd


def test_from_bounds_grid_sizes_agree():
    m = small_map()
    assert m.total_cells == m.map_size.i * m.map_size.j
    assert len(m.grid_inflation) == m.total_cells
    assert len(m.grid_logodds) == m.total_cells
    assert m.origin == m.pos_min


def test_from_bounds_rejects_bad_cell_size():
    with pytest.raises(ValueError):
        MapData.from_bounds(Pos2D(0.0, 0.0), Pos2D(1.0, 1.0), 0.0, 10, 20)


def test_pos2idx_pinned():
    m = small_map()
    assert m.pos2idx(Pos2D(0.5, 0.3)) == Index(5, 3)


def test_flatten_pinned_and_roundtrip():
    m = small_map()
    assert m.flatten(Index(2, 3)) == 23
    for idx in (Index(1, 0), Index(4, 7), Index(9, 9)):
        k = m.flatten(idx)
        assert divmod(k, m.map_size.j) == (idx.i, idx.j)


def test_out_of_bounds_edges():
    m = small_map()
    assert m.out_of_bounds(Index(0, 5))
    assert m.out_of_bounds(Index(m.map_size.i, 5))
    assert m.out_of_bounds(Index(5, -1))
    assert m.out_of_bounds(Index(5, m.map_size.j))
    assert not m.out_of_bounds(Index(5, 5))


def test_check_cell_inflation_and_logodds():
    m = small_map()
    idx = Index(4, 4)
    assert m.check_cell(idx) is True
    m.grid_inflation[m.flatten(idx)] = 1
    assert m.check_cell(idx) is False
    m.grid_inflation[m.flatten(idx)] = 0
    m.grid_logodds[m.flatten(idx)] = m.lo_thresh
    assert m.check_cell(idx) is True
    m.grid_logodds[m.flatten(idx)] = m.lo_thresh + 1
    assert m.check_cell(idx) is False
    assert m.check_cell(Index(0, 4)) is False


def test_is_ready_requires_pose_and_path():
    cmd = make_commander()
    assert cmd.is_ready() is False
    cmd.on_pose(Pos2D(0.0, 0.0), 0.0)
    assert cmd.is_ready() is False
    cmd.on_path(3, [Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)])
    assert cmd.is_ready() is True
    cmd.on_inflation([])
    assert cmd.is_ready() is False


def test_repeated_path_id_is_ignored():
    cmd = make_commander()
    cmd.on_path(1, [Pos2D(1.0, 0.0)])
    cmd.on_path(1, [Pos2D(2.0, 0.0), Pos2D(0.0, 0.0)])
    assert cmd.path == [Pos2D(1.0, 0.0)]
    cmd.on_path(2, [Pos2D(2.0, 0.0), Pos2D(0.0, 0.0)])
    assert cmd.path == [Pos2D(2.0, 0.0), Pos2D(0.0, 0.0)]


def test_step_without_time_passing_returns_none():
    cmd = ready_commander([Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)])
    assert cmd.step(0.0) is None


def test_safe_linear_step():
    cmd = ready_commander([Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)])
    out = cmd.step(0.1)
    assert out is not None
    assert out.spline_id == 0
    assert out.trajectory[0] == Pos2D(1.0, 0.0)
    assert out.spline[-1] == Pos2D(1.0, 0.0)
    assert out.spline[0] == out.trajectory[cmd.t_id]
    assert len(out.spline) == cmd.t_id + 1
    assert out.target == out.trajectory[cmd.t_id]
    assert 0.0 < out.target.x < 1.0
    assert out.replan is False
    assert 0.0 < out.linear <= cmd.pid_params.max_lin_vel
    assert out.angular == pytest.approx(0.0)


def test_trajectory_is_published_on_later_steps():
    cmd = ready_commander([Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)])
    first = cmd.step(0.1)
    second = cmd.step(0.2)
    assert second.trajectory == first.trajectory
    assert second.spline_id == first.spline_id


def test_new_path_increments_spline_id():
    cmd = ready_commander([Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)])
    cmd.step(0.1)
    cmd.on_path(2, [Pos2D(0.0, 1.0), Pos2D(0.0, 0.0)])
    out = cmd.step(0.2)
    assert out.spline_id == 1
    assert out.spline[-1] == Pos2D(0.0, 1.0)


def test_brake_zeroes_velocities():
    cmd = ready_commander([Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)])
    assert cmd.set_brake(True) is True
    out = cmd.step(0.1)
    assert out.linear == 0.0
    assert out.angular == 0.0
    assert cmd.cmd_lin_vel > 0.0


def test_unsafe_trajectory_triggers_replan():
    cmd = ready_commander([Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)])
    cmd.on_inflation([1] * cmd.map.total_cells)
    out = cmd.step(0.1)
    safe, bad = cmd.check_trajectory_safety()
    assert safe is False
    assert bad == cmd.t_id
    assert out.replan is True


def test_single_target_safe_and_unsafe():
    cmd = ready_commander([Pos2D(1.0, 0.0)])
    out = cmd.step(0.1)
    assert cmd.check_trajectory_safety() == (True, -1)
    assert out.target == Pos2D(1.0, 0.0)
    assert out.replan is False

    cmd.on_inflation([1] * cmd.map.total_cells)
    out = cmd.step(0.2)
    assert cmd.check_trajectory_safety() == (False, -1)
    assert out.replan is True
    assert out.linear == 0.0
    assert out.target == Pos2D(0.0, 0.0)


def test_empty_path_holds_position():
    cmd = ready_commander([])
    out = cmd.step(0.1)
    assert cmd.check_trajectory_safety() == (False, -2)
    assert out.target == Pos2D(0.0, 0.0)
    assert out.linear == 0.0
    assert out.replan is True
    assert out.spline == []


def test_polynomial_trajectory_ends_at_goal():
    cmd = ready_commander([Pos2D(1.0, 1.0), Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)], "Cubic")
    cmd.on_speed(0.1)
    out = cmd.step(0.1)
    assert out.trajectory[0] == Pos2D(1.0, 1.0)
    assert out.spline[-1] == Pos2D(1.0, 1.0)
    assert out.trajectory[-1] != Pos2D(1.0, 1.0)


def test_check_dist_uses_close_enough():
    cmd = make_commander()
    cmd.on_pose(Pos2D(0.0, 0.0), 0.0)
    cmd.current_target = Pos2D(0.01, 0.0)
    assert cmd.check_dist() is True
    cmd.current_target = Pos2D(1.0, 0.0)
    assert cmd.check_dist() is False


def test_reaching_target_moves_to_next():
    cmd = ready_commander([Pos2D(1.0, 0.0), Pos2D(0.0, 0.0)])
    cmd.step(0.1)
    before = cmd.t_id
    cmd.on_pose(cmd.current_target, 0.0)
    out = cmd.step(0.2)
    assert cmd.t_id == before - 1
    assert out.target == cmd.trajectory[before - 1]