"""Launch and termination gates.

Every operation here returns a ``GateResult``; collaborator and validation
errors are logged and converted, never raised to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

from envgate.access import BaseAccessCounter
from envgate.core.parameters import ParameterLookup, ParameterSpec, bind_parameters
from envgate.core.subdomain import validate_subdomain
from envgate.exceptions import (
    AccessCounterError,
    EnvGateError,
    MissingInput,
    OrchestratorError,
    ValidationError,
)
from envgate.orchestrator import STATUS_RUNNING, BaseOrchestrator

from .results import STATUS_OK, GateResult

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_DURATION = 86400  # seconds


def _parse_since(since: str) -> Optional[datetime]:
    if not since:
        return None
    try:
        parsed = datetime.fromisoformat(since)
    except ValueError as exc:
        raise ValidationError(f"cannot parse since: {exc}") from exc
    # RFC 3339: date, time and offset are all mandatory
    if "T" not in since.upper() or parsed.tzinfo is None:
        raise ValidationError(f"cannot parse since: {since!r} is not an RFC 3339 timestamp")
    return parsed


def _parse_tail(tail: str) -> int:
    if not tail or tail == "all":
        return 0
    try:
        return int(tail)
    except ValueError as exc:
        raise ValidationError(f"cannot parse tail: {exc}") from exc


class EnvironmentGate:
    """Admission and routing for environment launch, termination and queries."""

    def __init__(
        self,
        orchestrator: BaseOrchestrator,
        access_counter: BaseAccessCounter,
        parameters: Sequence[ParameterSpec] = (),
        default_task_definitions: Sequence[str] = (),
    ):
        self._orchestrator = orchestrator
        self._access_counter = access_counter
        self._parameters = list(parameters)
        self._default_task_definitions = list(default_task_definitions)

    # ── Launch ───────────────────────────────────────────────────────────

    async def launch(
        self,
        subdomain: str,
        task_definitions: Sequence[str],
        lookup: ParameterLookup,
    ) -> GateResult:
        """Validate a launch request and forward it to the orchestrator."""
        try:
            subdomain = validate_subdomain(subdomain)
            parameters = bind_parameters(self._parameters, lookup)
        except EnvGateError as exc:
            logger.info("Launch rejected for %r: %s", subdomain, exc)
            return GateResult.failure(exc)

        task_definitions = [t for t in task_definitions if t]
        if not subdomain or not task_definitions:
            return GateResult.failure(MissingInput(
                f"parameter required: subdomain={subdomain}, taskdef={task_definitions}"
            ))

        try:
            await self._orchestrator.launch(subdomain, parameters, *task_definitions)
        except OrchestratorError as exc:
            logger.error("launch failed: %s", exc)
            return GateResult.failure(exc)

        return GateResult()

    # ── Terminate ────────────────────────────────────────────────────────

    async def terminate(
        self,
        task_id: Optional[str] = None,
        subdomain: Optional[str] = None,
    ) -> GateResult:
        """Terminate by task id, or by subdomain when no id is given."""
        try:
            if task_id:
                await self._orchestrator.terminate(task_id)
            elif subdomain:
                await self._orchestrator.terminate_by_subdomain(subdomain)
            else:
                return GateResult.failure(MissingInput("parameter required: id"))
        except OrchestratorError as exc:
            logger.error("terminate failed id=%s subdomain=%s: %s", task_id, subdomain, exc)
            return GateResult.failure(exc)

        return GateResult()

    # ── Queries ──────────────────────────────────────────────────────────

    async def list_environments(self) -> GateResult:
        try:
            infos = await self._orchestrator.list_environments(STATUS_RUNNING)
        except OrchestratorError as exc:
            logger.error("list failed: %s", exc)
            return GateResult.failure(exc)
        return GateResult(result=infos)

    async def logs(self, subdomain: str, since: str = "", tail: str = "") -> GateResult:
        if not subdomain:
            return GateResult.failure(MissingInput("parameter required: subdomain"))
        try:
            lines = await self._orchestrator.logs(
                subdomain, _parse_since(since), _parse_tail(tail),
            )
        except EnvGateError as exc:
            return GateResult.failure(exc)
        return GateResult(result=lines)

    async def access_count(self, subdomain: str, duration: str = "") -> GateResult:
        """Sum of hits for ``subdomain`` over ``duration`` seconds (default one day)."""
        try:
            seconds = int(duration)
        except (TypeError, ValueError):
            seconds = 0
        if seconds == 0:
            seconds = DEFAULT_ACCESS_DURATION

        try:
            window = timedelta(seconds=seconds)
        except OverflowError as exc:
            return GateResult.failure(ValidationError(f"invalid duration {duration}: {exc}"))

        try:
            total = await self._access_counter.count(subdomain, window)
        except AccessCounterError as exc:
            logger.error("access counter failed: %s", exc)
            return GateResult.failure(exc)

        return GateResult(status=STATUS_OK, extra={"duration": seconds, "sum": total})

    def launcher(self) -> dict:
        """Form metadata for launch clients."""
        return {
            "default_task_definitions": list(self._default_task_definitions),
            "parameters": [p.model_dump() for p in self._parameters],
        }
