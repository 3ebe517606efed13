"""Containers for spline target sequences with nearest-target lookup."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from botnav.geometry import Pos2D, Pos3D, dist_euc_xy

_FAR = 1e6


def _nearest_id(points, x: float, y: float) -> int:
    """Index of the nearest point, stopping once distances start to grow."""
    best_dist = _FAR
    best_id = -1
    for idx, point in enumerate(points):
        dist = dist_euc_xy(x, y, point.x, point.y)
        if dist < best_dist:
            best_dist = dist
            best_id = idx
        if dist > best_dist:
            break
    return best_id


@dataclass
class SplineData2D:
    """A planar spline of targets."""

    spline: list[Pos2D] = field(default_factory=list)
    curr_spline_id: int = -1
    avg_speed: float = math.nan
    target_dt: float = math.nan

    def __len__(self) -> int:
        return len(self.spline)

    def find_pos_id(self, pos: Pos2D) -> int:
        """Index of the target nearest to pos, or -1 if none is found."""
        return _nearest_id(self.spline, pos.x, pos.y)


@dataclass
class SplineData3D:
    """A spatial spline of targets, all assumed to share one height."""

    spline: list[Pos3D] = field(default_factory=list)
    curr_spline_id: int = -1
    avg_speed: float = math.nan
    target_dt: float = math.nan
    spline_duration: float = math.nan

    def __len__(self) -> int:
        return len(self.spline)

    def find_pos_id(self, pos: Pos3D) -> int:
        """Index of the target nearest to pos in the plane, or -1."""
        return _nearest_id(self.spline, pos.x, pos.y)