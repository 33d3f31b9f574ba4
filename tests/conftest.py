"""Shared fakes for the orchestrator and access counter."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from envgate.access import BaseAccessCounter
from envgate.exceptions import AccessCounterError, OrchestratorError
from envgate.orchestrator import STATUS_RUNNING, BaseOrchestrator, EnvironmentInfo


class FakeOrchestrator(BaseOrchestrator):
    """Records every call; errors can be injected per operation."""

    def __init__(self, infos: Optional[list[EnvironmentInfo]] = None):
        self.infos = list(infos or [])
        self.calls: list[tuple] = []
        self.fail: dict[str, str] = {}
        self.log_lines: list[str] = []

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail:
            raise OrchestratorError(self.fail[op])

    async def list_environments(self, status: str = STATUS_RUNNING) -> list[EnvironmentInfo]:
        self.calls.append(("list", status))
        self._maybe_fail("list")
        return list(self.infos)

    async def launch(self, subdomain, parameters, *task_definitions) -> None:
        self.calls.append(("launch", subdomain, dict(parameters), task_definitions))
        self._maybe_fail("launch")

    async def terminate(self, task_id: str) -> None:
        self.calls.append(("terminate", task_id))
        self._maybe_fail("terminate")

    async def terminate_by_subdomain(self, subdomain: str) -> None:
        self.calls.append(("terminate_by_subdomain", subdomain))
        self._maybe_fail("terminate_by_subdomain")
        if subdomain in self.fail:
            raise OrchestratorError(self.fail[subdomain])

    async def logs(self, subdomain, since=None, tail=0) -> list[str]:
        self.calls.append(("logs", subdomain, since, tail))
        self._maybe_fail("logs")
        return list(self.log_lines)

    def calls_named(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeAccessCounter(BaseAccessCounter):
    """Fixed hit counts per subdomain; listed subdomains raise instead."""

    def __init__(self, hits: Optional[dict[str, int]] = None, failing: tuple[str, ...] = ()):
        self.hits = dict(hits or {})
        self.failing = set(failing)
        self.calls: list[tuple[str, timedelta]] = []

    async def count(self, subdomain: str, window: timedelta) -> int:
        self.calls.append((subdomain, window))
        if subdomain in self.failing:
            raise AccessCounterError(f"counter unavailable for {subdomain}")
        return self.hits.get(subdomain, 0)


def make_info(
    subdomain: str,
    age: timedelta = timedelta(minutes=10),
    tags: Optional[dict[str, str]] = None,
    task_id: str = "",
) -> EnvironmentInfo:
    return EnvironmentInfo(
        id=task_id or f"task-{subdomain}",
        subdomain=subdomain,
        task_definition="app:1",
        created=datetime.now(timezone.utc) - age,
        tags=tags or {},
    )


@pytest.fixture
def orchestrator() -> FakeOrchestrator:
    return FakeOrchestrator()


@pytest.fixture
def access_counter() -> FakeAccessCounter:
    return FakeAccessCounter()
