import math

import pytest

from botnav.geometry import Pos2D
from botnav.pid_controller import Controller, PIDParams


def _ready(params=None, target=Pos2D(1.0, 0.0)):
    ctrl = Controller(params or PIDParams())
    ctrl.prepare(Pos2D(0.0, 0.0), 0.0, target, 0.0)
    assert ctrl.update_dt(0.1)
    return ctrl


def test_unknown_damping_defaults_to_piecewise():
    ctrl = Controller(PIDParams(damping_function="nope"))
    assert ctrl.damping_function_name == "PieceWise"


def test_limits_converted_to_radians():
    ctrl = Controller(PIDParams(damping_limit=180.0, reverse_limit=90.0))
    assert ctrl.damping_limit == pytest.approx(math.pi)
    assert ctrl.reverse_limit == pytest.approx(math.pi / 2)


def test_update_dt_rejects_same_time():
    ctrl = Controller(PIDParams())
    ctrl.prepare(Pos2D(), 0.0, Pos2D(1.0, 0.0), 5.0)
    assert ctrl.update_dt(5.0) is False
    assert ctrl.update_dt(5.5) is True
    assert ctrl.dt == pytest.approx(0.5)
    assert ctrl.prev_time == pytest.approx(5.5)


def test_generate_without_time_step_raises():
    ctrl = Controller(PIDParams())
    ctrl.prepare(Pos2D(), 0.0, Pos2D(1.0, 0.0), 0.0)
    with pytest.raises(RuntimeError):
        ctrl.generate_cmdvel(Pos2D(), 0.0, Pos2D(1.0, 0.0))


def test_target_ahead_moves_forward_within_limits():
    params = PIDParams()
    ctrl = _ready(params)
    lin, ang = ctrl.generate_cmdvel(Pos2D(0.0, 0.0), 0.0, Pos2D(1.0, 0.0))
    assert lin > 0
    assert lin <= params.max_lin_acc * 0.1 + 1e-12
    assert lin <= params.max_lin_vel
    assert ang == pytest.approx(0.0)


def test_target_behind_reverses():
    ctrl = _ready(target=Pos2D(-1.0, 0.0))
    lin, ang = ctrl.generate_cmdvel(Pos2D(0.0, 0.0), 0.0, Pos2D(-1.0, 0.0))
    assert lin < 0
    assert abs(ang) < 1e-9


def test_target_to_left_turns_positive():
    target = Pos2D(1.0, 0.5)
    ctrl = Controller(PIDParams())
    ctrl.prepare(Pos2D(0.0, 0.0), 0.0, Pos2D(1.0, 0.0), 0.0)
    ctrl.update_dt(0.1)
    _, ang = ctrl.generate_cmdvel(Pos2D(0.0, 0.0), 0.0, target)
    assert ang > 0


def test_velocity_saturates_over_many_steps():
    params = PIDParams()
    ctrl = _ready(params, target=Pos2D(10.0, 0.0))
    t = 0.1
    for _ in range(50):
        lin, _ = ctrl.generate_cmdvel(Pos2D(0.0, 0.0), 0.0, Pos2D(10.0, 0.0))
        assert abs(lin) <= params.max_lin_vel
        t += 0.1
        ctrl.update_dt(t)
    assert lin == pytest.approx(params.max_lin_vel)


def test_piecewise_kills_linear_beyond_limit_but_cos_does_not():
    target = Pos2D(math.cos(math.radians(80)), math.sin(math.radians(80)))
    piece = _ready(PIDParams(damping_function="PieceWise"), target)
    cos = _ready(PIDParams(damping_function="Cos"), target)
    lin_piece, _ = piece.generate_cmdvel(Pos2D(0.0, 0.0), 0.0, target)
    lin_cos, _ = cos.generate_cmdvel(Pos2D(0.0, 0.0), 0.0, target)
    assert lin_piece == 0.0
    assert lin_cos > 0


@pytest.mark.parametrize("name", ["Cos", "Quad", "PieceWise", "Exp"])
def test_all_damping_functions_drive_forward(name):
    ctrl = _ready(PIDParams(damping_function=name))
    assert ctrl.damping_function_name == name
    lin, _ = ctrl.generate_cmdvel(Pos2D(0.0, 0.0), 0.0, Pos2D(1.0, 0.0))
    assert lin > 0