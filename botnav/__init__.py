"""Geometry, trajectory planning, PID control and mission state machines for a ground robot and a drone."""

__version__ = "0.1.0"