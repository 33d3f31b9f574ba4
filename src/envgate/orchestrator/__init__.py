"""Orchestrator collaborator: the platform that runs environments."""

from .base_orchestrator import STATUS_RUNNING, BaseOrchestrator, EnvironmentInfo
from .http_client import HttpOrchestrator

__all__ = [
    "STATUS_RUNNING",
    "BaseOrchestrator",
    "EnvironmentInfo",
    "HttpOrchestrator",
]
