"""Planar and spatial geometry helpers shared by the planners and controllers."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Union

logger = logging.getLogger(__name__)


@dataclass
class Index:
    """A grid cell index."""

    i: int = 0
    j: int = 0


@dataclass(eq=False)
class Pos2D:
    """A planar position or vector, compared with a small tolerance."""

    x: float = 0.0
    y: float = 0.0
    eps: float = field(default=1e-6, repr=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pos2D):
            return NotImplemented
        return abs(self.x - other.x) < self.eps and abs(self.y - other.y) < self.eps

    __hash__ = None  # type: ignore[assignment]

    def __add__(self, other: Pos2D) -> Pos2D:
        return Pos2D(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Pos2D) -> Pos2D:
        return Pos2D(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> Pos2D:
        return Pos2D(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def mag(self) -> float:
        """Length of the vector."""
        return math.sqrt(self.x * self.x + self.y * self.y)

    def unit_vec(self) -> Pos2D:
        """The vector scaled to unit length."""
        length = self.mag()
        return Pos2D(self.x / length, self.y / length)

    def __str__(self) -> str:
        return f"({self.x},{self.y})"


@dataclass
class Pos3D:
    """A position or vector in space."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __str__(self) -> str:
        return f"({self.x},{self.y},{self.z})"


Point = Union[Index, Pos2D, Pos3D]


def _planar(point: Point) -> tuple[float, float]:
    if isinstance(point, Index):
        return point.i, point.j
    return point.x, point.y


class TimeLogger:
    """Measures loop durations in milliseconds and keeps a running average."""

    def __init__(self) -> None:
        self.count = 0
        self.total_ms = 0.0
        self._start: float | None = None

    def start(self) -> None:
        self._start = time.perf_counter()
        self.count += 1

    def stop(self) -> float:
        """Finish the current measurement and return its duration in ms."""
        if self._start is None:
            raise RuntimeError("stop() called before start()")
        elapsed_ms = (time.perf_counter() - self._start) * 1000.0
        self.total_ms += elapsed_ms
        logger.info("Time taken this loop: %sms", elapsed_ms)
        logger.info("Average loop time: %sms", self.average_ms)
        return elapsed_ms

    @property
    def average_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


def sign(value: float) -> float:
    """Return 1, -1 or 0 according to the sign of value."""
    if value > 0:
        return 1.0
    if value < 0:
        return -1.0
    return 0.0


def dist_oct_xy(src_x: float, src_y: float, tgt_x: float, tgt_y: float) -> float:
    """Octile distance between two planar coordinates."""
    abs_dx = abs(tgt_x - src_x)
    abs_dy = abs(tgt_y - src_y)
    ordinals = min(abs_dx, abs_dy)
    cardinals = max(abs_dx, abs_dy) - ordinals
    return ordinals * math.sqrt(2) + cardinals


def dist_oct(src: Point, tgt: Point) -> float:
    """Octile distance between two indices or positions."""
    return dist_oct_xy(*_planar(src), *_planar(tgt))


def dist_euc_xy(src_x: float, src_y: float, tgt_x: float, tgt_y: float) -> float:
    """Euclidean distance between two planar coordinates."""
    dx = tgt_x - src_x
    dy = tgt_y - src_y
    return math.sqrt(dx * dx + dy * dy)


def dist_euc(src: Point, tgt: Point) -> float:
    """Planar Euclidean distance between two indices or positions."""
    return dist_euc_xy(*_planar(src), *_planar(tgt))


def heading(src: Pos2D, tgt: Pos2D) -> float:
    """Angle of the vector from src to tgt."""
    return math.atan2(tgt.y - src.y, tgt.x - src.x)


def limit_angle(angle: float) -> float:
    """Wrap an angle into [-pi, pi)."""
    result = math.fmod(angle + math.pi, 2 * math.pi)
    return result - math.pi if result >= 0 else result + math.pi


def heading_from_quat(x: float, y: float, z: float, w: float) -> float:
    """Yaw angle of a quaternion."""
    siny_cosp = 2 * (w * z + x * y)
    cosy_cosp = 1 - 2 * (y * y + z * z)
    return math.atan2(siny_cosp, cosy_cosp)


def damping_cos(error_value: float) -> float:
    return math.cos(error_value)


def damping_quadratic(error_value: float) -> float:
    return (-1 / (0.25 * math.pi * math.pi)) * (error_value - math.pi) * (error_value + math.pi)


def damping_piecewise(error_value: float, kill_limit: float) -> float:
    """Cosine damping inside |kill_limit|, zero outside it."""
    if abs(error_value) > kill_limit:
        return 0.0
    coeff = math.cos(error_value)
    if coeff <= 0:
        logger.warning("Warning, Something wrong with the damping coeff")
    return coeff


def bresenham_los(src: Index, tgt: Index) -> list[Index]:
    """Cells on the line of sight from src to tgt, both ends included."""
    di = tgt.i - src.i
    dj = tgt.j - src.j
    ray = [Index(src.i, src.j)]

    if abs(di) > abs(dj):
        d_long, d_short = di, dj
        long_, short = src.i, src.j
        long_end, short_end = tgt.i, tgt.j

        def to_index(l: int, s: int) -> Index:
            return Index(l, s)
    else:
        d_long, d_short = dj, di
        long_, short = src.j, src.i
        long_end, short_end = tgt.j, tgt.i

        def to_index(l: int, s: int) -> Index:
            return Index(s, l)

    step_short = int(sign(d_short))
    step_long = int(sign(d_long))
    abs_d_long = abs(d_long)
    error_step = abs_d_long * step_short
    error = 0

    while long_ != long_end or short != short_end:
        long_ += step_long
        error += d_short
        if 2 * abs(error) >= abs_d_long:
            error -= error_step
            short += step_short
        ray.append(to_index(long_, short))
    return ray