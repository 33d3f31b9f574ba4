"""HTTP client for the orchestrator agent.

The orchestrator agent fronts the container platform and exposes::

    GET    /v1/tasks?status=RUNNING              -> {"tasks": [...]}
    POST   /v1/tasks                             <- {"subdomain", "parameters", "task_definitions"}
    DELETE /v1/tasks/{task_id}
    DELETE /v1/subdomains/{subdomain}
    GET    /v1/subdomains/{subdomain}/logs       -> {"lines": [...]}

Failed calls carry ``{"error": "..."}`` bodies; that text is what callers see.

Usage::

    orchestrator = HttpOrchestrator(base_url="http://orchestrator:8080")
    infos = await orchestrator.list_environments()
    await orchestrator.close()
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from envgate.exceptions import OrchestratorError
from envgate.resilience import ORCHESTRATOR_READ_POLICY, retry_async

from .base_orchestrator import STATUS_RUNNING, BaseOrchestrator, EnvironmentInfo

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    """Escape ``value`` as a single path segment, dots included."""
    return quote(value, safe="").replace(".", "%2E")


def _error_text(response: httpx.Response) -> str:
    """Pull the orchestrator's error message out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    text = response.text.strip()
    return text or f"orchestrator returned HTTP {response.status_code}"


class HttpOrchestrator(BaseOrchestrator):
    """Async httpx client for the orchestrator agent."""

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        auth_token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers: dict[str, str] = {}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout, connect=5.0),
            headers=headers,
            transport=transport,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
        logger.info("Orchestrator client -> %s", base_url)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        resp = await self._client.request(method, path, **kwargs)
        if resp.is_error:
            raise OrchestratorError(
                _error_text(resp),
                details={"status_code": resp.status_code, "path": path},
            )
        return resp

    async def _call(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._send(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise OrchestratorError(str(exc) or type(exc).__name__) from exc

    @retry_async(ORCHESTRATOR_READ_POLICY)
    async def _read(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        resp = await self._send("GET", path, params=params)
        try:
            body = resp.json()
        except ValueError as exc:
            raise OrchestratorError(f"invalid response from orchestrator: {exc}") from exc
        if not isinstance(body, dict):
            raise OrchestratorError("invalid response from orchestrator: expected an object")
        return body

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self._read(path, params)
        except httpx.TransportError as exc:
            raise OrchestratorError(str(exc) or type(exc).__name__) from exc

    # ── Environments ─────────────────────────────────────────────────────

    async def list_environments(self, status: str = STATUS_RUNNING) -> list[EnvironmentInfo]:
        body = await self._get_json("/v1/tasks", {"status": status})
        try:
            return [EnvironmentInfo.model_validate(t) for t in body.get("tasks") or []]
        except ValidationError as exc:
            raise OrchestratorError(f"invalid task in orchestrator response: {exc}") from exc

    async def launch(
        self,
        subdomain: str,
        parameters: dict[str, str],
        *task_definitions: str,
    ) -> None:
        await self._call("POST", "/v1/tasks", json={
            "subdomain": subdomain,
            "parameters": parameters,
            "task_definitions": list(task_definitions),
        })
        logger.info("Launched %s (%s)", subdomain, ", ".join(task_definitions))

    async def terminate(self, task_id: str) -> None:
        await self._call("DELETE", f"/v1/tasks/{_segment(task_id)}")
        logger.info("Terminated task %s", task_id)

    async def terminate_by_subdomain(self, subdomain: str) -> None:
        await self._call("DELETE", f"/v1/subdomains/{_segment(subdomain)}")
        logger.info("Terminated subdomain %s", subdomain)

    async def logs(
        self,
        subdomain: str,
        since: Optional[datetime] = None,
        tail: int = 0,
    ) -> list[str]:
        params: dict[str, Any] = {"tail": tail}
        if since is not None:
            params["since"] = since.isoformat()
        body = await self._get_json(f"/v1/subdomains/{_segment(subdomain)}/logs", params)
        return [str(line) for line in body.get("lines") or []]

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()
