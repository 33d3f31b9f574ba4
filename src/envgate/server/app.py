"""FastAPI application for envgate.

Usage::

    uvicorn envgate.server.app:app --host 0.0.0.0 --port 8000 --workers 1

NOTE: Must run with ``--workers 1`` because the purge lock is in-process
asyncio state.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from envgate.access import RedisAccessCounter
from envgate.configs.settings import settings
from envgate.logger import setup_logging
from envgate.observability import configure_opentelemetry, shutdown_opentelemetry
from envgate.orchestrator import HttpOrchestrator
from envgate.services import EnvironmentGate, IdlePurgeEngine

from .routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire collaborators on boot, release them on shutdown."""
    setup_logging(level=settings.log_level)
    if settings.otel_enabled:
        configure_opentelemetry(
            service_name="envgate",
            otlp_trace_endpoint=settings.otlp_trace_endpoint or None,
            otlp_metric_endpoint=settings.otlp_metric_endpoint or None,
        )

    orchestrator = HttpOrchestrator(
        base_url=settings.orchestrator_url,
        auth_token=settings.orchestrator_token,
        timeout=settings.orchestrator_timeout,
    )
    access_counter = RedisAccessCounter(
        redis_url=settings.redis_url,
        key_prefix=settings.access_key_prefix,
        retention=settings.access_retention,
    )
    await access_counter.connect()

    app.state.gate = EnvironmentGate(
        orchestrator,
        access_counter,
        parameters=settings.parameters,
        default_task_definitions=settings.default_task_definitions,
    )
    app.state.purge_engine = IdlePurgeEngine(orchestrator, access_counter)
    app.state.start_time = time.monotonic()

    logger.info(
        "envgate ready  orchestrator=%s  parameters=%d",
        settings.orchestrator_url,
        len(settings.parameters),
    )

    yield

    await app.state.purge_engine.stop()
    await orchestrator.close()
    await access_counter.disconnect()
    shutdown_opentelemetry()
    logger.info("envgate stopped")


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    application = FastAPI(
        title="envgate",
        version="0.1.0",
        description=(
            "Launch gate and idle reaper for subdomain-addressed "
            "container environments."
        ),
        lifespan=lifespan,
    )
    application.state.start_time = time.monotonic()
    application.include_router(router)
    return application


app = create_app()
