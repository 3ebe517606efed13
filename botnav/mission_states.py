"""States of the drone mission state machine."""

from __future__ import annotations

from enum import IntEnum


class HectorState(IntEnum):
    TAKEOFF = 0
    LAND = 1
    TURTLE = 2
    START = 3
    GOAL = 4
    FOLLOW = 5  # FOLLOW, TAKEOFF, LAND and HOME apply to solo flights
    HOME = 6


def unpack_h_state(state: HectorState | int) -> str:
    """Name of a state; raises ValueError for an unknown value."""
    return HectorState(state).name