"""REST endpoints for envgate.

All endpoints live under ``/api/``. Inputs are read from the query string
and, for POST, from the form body; repeated keys (``taskdef``,
``excludes``, ``exclude_tags``) carry lists. Every reply is
``{"result": ...}`` with an HTTP status derived from the error kind.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.datastructures import MultiDict

from envgate.services import EnvironmentGate, GateResult, IdlePurgeEngine

from .schemas import HealthResponse, LauncherResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["envgate"])


# ── Helpers ──────────────────────────────────────────────────────────────────

async def _params(request: Request) -> MultiDict:
    """Merge query-string and form values, keeping repeated keys."""
    items = list(request.query_params.multi_items())
    if request.method == "POST":
        form = await request.form()
        items.extend((k, v) for k, v in form.multi_items() if isinstance(v, str))
    return MultiDict(items)


def _render(result: GateResult) -> JSONResponse:
    return JSONResponse(
        content=jsonable_encoder(result.to_dict()),
        status_code=result.status_code,
    )


def _gate(request: Request) -> EnvironmentGate:
    return request.app.state.gate


def _purge_engine(request: Request) -> IdlePurgeEngine:
    return request.app.state.purge_engine


# ── Environments ─────────────────────────────────────────────────────────────

@router.get("/api/list")
async def list_environments(request: Request):
    """Running environments."""
    return _render(await _gate(request).list_environments())


@router.get("/api/launcher", response_model=LauncherResponse)
async def launcher(request: Request):
    """Default task definitions and configured launch parameters."""
    return _gate(request).launcher()


@router.post("/api/launch")
async def launch(request: Request):
    params = await _params(request)
    result = await _gate(request).launch(
        params.get("subdomain", ""),
        params.getlist("taskdef"),
        params.get,
    )
    return _render(result)


@router.get("/api/logs")
async def logs(request: Request):
    params = await _params(request)
    result = await _gate(request).logs(
        params.get("subdomain", ""),
        since=params.get("since", ""),
        tail=params.get("tail", ""),
    )
    return _render(result)


@router.post("/api/terminate")
async def terminate(request: Request):
    params = await _params(request)
    result = await _gate(request).terminate(
        task_id=params.get("id", ""),
        subdomain=params.get("subdomain", ""),
    )
    return _render(result)


@router.get("/api/access")
async def access(request: Request):
    """Access count for a subdomain over ``duration`` seconds."""
    params = await _params(request)
    result = await _gate(request).access_count(
        params.get("subdomain", ""),
        params.get("duration", ""),
    )
    return _render(result)


# ── Purge ────────────────────────────────────────────────────────────────────

@router.post("/api/purge")
async def purge(request: Request):
    """Accept a purge; idle environments are terminated in the background."""
    params = await _params(request)
    result = await _purge_engine(request).request_purge(
        excludes=params.getlist("excludes"),
        exclude_tags=params.getlist("exclude_tags"),
        duration=params.get("duration", ""),
    )
    return _render(result)


# ── Health ───────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Liveness probe."""
    return HealthResponse(
        status="healthy",
        purge_running=_purge_engine(request).running,
        uptime_seconds=round(time.monotonic() - request.app.state.start_time, 1),
    )
