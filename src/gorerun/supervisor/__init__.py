"""Lifetime management for the supervised program."""

from gorerun.supervisor.process import RELAUNCH, STOP, ProcessSupervisor

__all__ = [
    "ProcessSupervisor",
    "RELAUNCH",
    "STOP",
]
