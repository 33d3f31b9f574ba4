"""Response schemas for the envgate REST API."""

from __future__ import annotations

from pydantic import BaseModel

from envgate.core.parameters import ParameterSpec


class LauncherResponse(BaseModel):
    """What a launch form needs to render."""
    default_task_definitions: list[str] = []
    parameters: list[ParameterSpec] = []


class HealthResponse(BaseModel):
    status: str
    purge_running: bool
    uptime_seconds: float
