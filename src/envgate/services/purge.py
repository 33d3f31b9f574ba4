"""Idle environment reaper.

A purge request is answered synchronously up to candidate selection;
termination happens in a detached background task::

    request ──► parse duration / exclusions ──► list running environments
                                                   │ drop excluded subdomains
                                                   │ drop excluded tag values
                                                   │ drop created after cutoff
                                                   ▼
                                          candidate subdomains
                                                   │ asyncio.create_task
                                                   ▼
    reap (single-flight lock) ─► for each candidate, one at a time:
        fresh access count ─► zero? terminate ─► sleep PURGE_INTERVAL

Only one reap holds the lock at a time. A reap that finds the lock taken
is dropped, not queued.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Mapping, Optional, Sequence

from envgate.access import BaseAccessCounter
from envgate.exceptions import (
    AccessCounterError,
    ConcurrencyRejected,
    EnvGateError,
    OrchestratorError,
    PurgeRejected,
)
from envgate.observability import global_metrics, global_tracer
from envgate.orchestrator import STATUS_RUNNING, BaseOrchestrator, EnvironmentInfo

from .results import GateResult

logger = logging.getLogger(__name__)

PURGE_MINIMUM_DURATION = timedelta(minutes=5)
PURGE_INTERVAL = 3.0  # seconds between terminations


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(duration: str | int, minimum: timedelta = PURGE_MINIMUM_DURATION) -> timedelta:
    """Parse a lookback window in whole seconds, enforcing ``minimum``."""
    floor = int(minimum.total_seconds())
    try:
        seconds = int(duration)
    except (TypeError, ValueError) as exc:
        raise PurgeRejected(f"invalid duration {duration} (at least {floor}): {exc}") from exc
    if seconds < floor:
        raise PurgeRejected(f"invalid duration {duration} (at least {floor})")
    try:
        return timedelta(seconds=seconds)
    except OverflowError as exc:
        raise PurgeRejected(f"invalid duration {duration} (at least {floor}): {exc}") from exc


def parse_exclude_tags(exclude_tags: Iterable[str]) -> dict[str, str]:
    """Turn ``key:value`` strings into a tag map."""
    tags: dict[str, str] = {}
    for item in exclude_tags:
        key, sep, value = item.partition(":")
        if not sep:
            raise PurgeRejected(f"invalid exclude_tags format {item}")
        tags[key] = value
    return tags


def _excluded_tag(info: EnvironmentInfo, exclude_tags: Mapping[str, str]) -> Optional[str]:
    for key, value in info.tags.items():
        if key in exclude_tags and exclude_tags[key] == value:
            return key
    return None


class IdlePurgeEngine:
    """Selects idle environments and terminates them in a paced background pass."""

    def __init__(
        self,
        orchestrator: BaseOrchestrator,
        access_counter: BaseAccessCounter,
        *,
        minimum_duration: timedelta = PURGE_MINIMUM_DURATION,
        interval: float = PURGE_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._orchestrator = orchestrator
        self._access_counter = access_counter
        self.minimum_duration = minimum_duration
        self.interval = interval
        self._clock = clock
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        """True while a reap pass holds the purge lock."""
        return self._lock.locked()

    # ── Request ──────────────────────────────────────────────────────────

    async def request_purge(
        self,
        excludes: Iterable[str] = (),
        exclude_tags: Iterable[str] = (),
        duration: str | int = "",
    ) -> GateResult:
        """Select candidates now and hand them to a background reap."""
        try:
            window = parse_duration(duration, self.minimum_duration)
            tags = parse_exclude_tags(exclude_tags)
            candidates = await self.select_candidates(set(excludes), tags, window)
        except EnvGateError as exc:
            logger.error("purge rejected: %s", exc)
            return GateResult.failure(exc)

        if candidates:
            self._spawn(candidates, window)
        return GateResult()

    async def select_candidates(
        self,
        excludes: set[str],
        exclude_tags: Mapping[str, str],
        duration: timedelta,
    ) -> list[str]:
        """Running subdomains old enough and not protected by an exclusion."""
        try:
            cutoff = self._clock() - duration
        except OverflowError as exc:
            raise PurgeRejected(
                f"invalid duration {int(duration.total_seconds())}: {exc}"
            ) from exc
        infos = await self._orchestrator.list_environments(STATUS_RUNNING)

        candidates: dict[str, None] = {}
        for info in infos:
            if info.subdomain in excludes:
                logger.info("skip exclude subdomain: %s", info.subdomain)
                continue
            key = _excluded_tag(info, exclude_tags)
            if key is not None:
                logger.info(
                    "skip exclude tag: %s=%s subdomain: %s",
                    key, info.tags[key], info.subdomain,
                )
                continue
            if info.created > cutoff:
                logger.info(
                    "skip recent created: %s subdomain: %s",
                    info.created.isoformat(), info.subdomain,
                )
                continue
            candidates.setdefault(info.subdomain)
        return list(candidates)

    # ── Background reap ──────────────────────────────────────────────────

    def _spawn(self, subdomains: Sequence[str], duration: timedelta) -> None:
        task = asyncio.create_task(
            self._run_reap(list(subdomains), duration), name="idle-purge",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_reap(self, subdomains: list[str], duration: timedelta) -> None:
        try:
            await self.reap(subdomains, duration)
        except ConcurrencyRejected as exc:
            logger.info("skip purge subdomains, %s", exc)
        except Exception as exc:
            logger.error("purge failed: %s", exc, exc_info=True)

    async def reap(self, subdomains: Sequence[str], duration: timedelta) -> int:
        """Terminate each subdomain that had no access during ``duration``.

        Returns the number of subdomains terminated. Raises
        ConcurrencyRejected when another reap holds the lock.
        """
        if self._lock.locked():
            raise ConcurrencyRejected("another purge is running")

        async with self._lock:
            logger.info("start purge subdomains %d", len(subdomains))
            with global_tracer.start_span(
                "envgate.purge.reap", {"purge.candidates": len(subdomains)},
            ) as span:
                purged = 0
                for subdomain in subdomains:
                    if await self._reap_one(subdomain, duration):
                        purged += 1
                span.set_attribute("purge.terminated", purged)
            logger.info("purge %d/%d subdomains completed", purged, len(subdomains))
            return purged

    async def _reap_one(self, subdomain: str, duration: timedelta) -> bool:
        try:
            hits = await self._access_counter.count(subdomain, duration)
        except AccessCounterError as exc:
            logger.warning("access count failed: %s %s", subdomain, exc)
            global_metrics.increment_counter("envgate.purge.skipped", tags={"reason": "count_failed"})
            return False
        if hits > 0:
            logger.info("skip purge %s %d access", subdomain, hits)
            global_metrics.increment_counter("envgate.purge.skipped", tags={"reason": "active"})
            return False

        try:
            await self._orchestrator.terminate_by_subdomain(subdomain)
        except OrchestratorError as exc:
            logger.warning("terminate failed %s %s", subdomain, exc)
            terminated = False
        else:
            logger.info("purged %s", subdomain)
            global_metrics.increment_counter("envgate.purge.terminated")
            terminated = True

        await asyncio.sleep(self.interval)
        return terminated

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def wait_idle(self) -> None:
        """Wait for every spawned reap task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel in-flight reap tasks at shutdown."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Cancelled %d purge task(s)", len(tasks))
