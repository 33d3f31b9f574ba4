"""Gatekeeping services: launch/terminate gates and the idle purge engine."""

from .gates import EnvironmentGate
from .purge import (
    PURGE_INTERVAL,
    PURGE_MINIMUM_DURATION,
    IdlePurgeEngine,
    parse_duration,
    parse_exclude_tags,
)
from .results import STATUS_OK, GateResult

__all__ = [
    "EnvironmentGate",
    "GateResult",
    "IdlePurgeEngine",
    "PURGE_INTERVAL",
    "PURGE_MINIMUM_DURATION",
    "STATUS_OK",
    "parse_duration",
    "parse_exclude_tags",
]
