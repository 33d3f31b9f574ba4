"""Idle purge engine.

Invariants:
    - Durations below the five minute floor are rejected before any orchestrator call
    - Excluded subdomains, excluded tag values and young environments never become candidates
    - Only one reap runs at a time; a concurrent one makes no terminate calls
    - A candidate with fresh access is never terminated
    - Terminations are paced by the configured interval
"""

import asyncio
import time
from datetime import timedelta

import pytest

from envgate.exceptions import ConcurrencyRejected, OrchestratorError, PurgeRejected
from envgate.services import IdlePurgeEngine, parse_duration, parse_exclude_tags

from conftest import FakeAccessCounter, FakeOrchestrator, make_info


def make_engine(orchestrator, counter, interval=0.0):
    return IdlePurgeEngine(orchestrator, counter, interval=interval)


# ── parsing ─────────────────────────────────────────────────────────────────

def test_parse_duration_accepts_floor():
    assert parse_duration("300") == timedelta(seconds=300)
    assert parse_duration(3600) == timedelta(hours=1)


@pytest.mark.parametrize("value", ["60", "299", "", "abc", "1.5"])
def test_parse_duration_rejects_short_or_garbage(value):
    with pytest.raises(PurgeRejected) as exc_info:
        parse_duration(value)
    assert str(exc_info.value).startswith(f"invalid duration {value} (at least 300)")


def test_parse_duration_rejects_out_of_range():
    with pytest.raises(PurgeRejected) as exc_info:
        parse_duration("99999999999999")
    assert str(exc_info.value).startswith("invalid duration 99999999999999 (at least 300): ")


@pytest.mark.parametrize("value", ["100000000000", "99999999999999"])
async def test_request_purge_with_huge_duration_is_rejected(value):
    orchestrator = FakeOrchestrator([make_info("a")])
    engine = make_engine(orchestrator, FakeAccessCounter())

    result = await engine.request_purge(duration=value)

    assert isinstance(result.error, PurgeRejected)
    assert result.status.startswith(f"invalid duration {value}")
    assert result.status_code == 400
    assert orchestrator.calls == []
    assert not engine._tasks


def test_parse_exclude_tags():
    assert parse_exclude_tags(["env:keep", "team:a:b"]) == {"env": "keep", "team": "a:b"}


def test_parse_exclude_tags_requires_separator():
    with pytest.raises(PurgeRejected) as exc_info:
        parse_exclude_tags(["env"])
    assert str(exc_info.value) == "invalid exclude_tags format env"


# ── request ─────────────────────────────────────────────────────────────────

async def test_short_duration_rejected_before_listing():
    orchestrator = FakeOrchestrator([make_info("a")])
    engine = make_engine(orchestrator, FakeAccessCounter())

    result = await engine.request_purge(duration="60")

    assert isinstance(result.error, PurgeRejected)
    assert result.status_code == 400
    assert orchestrator.calls == []


async def test_candidate_selection_filters_tags_and_age():
    orchestrator = FakeOrchestrator([
        make_info("a", age=timedelta(minutes=10), tags={"env": "keep"}),
        make_info("b", age=timedelta(minutes=10)),
        make_info("c", age=timedelta(seconds=10)),
    ])
    engine = make_engine(orchestrator, FakeAccessCounter())

    candidates = await engine.select_candidates(set(), {"env": "keep"}, timedelta(seconds=300))

    assert candidates == ["b"]


async def test_tag_with_other_value_is_not_excluded():
    orchestrator = FakeOrchestrator([make_info("a", tags={"env": "dev"})])
    engine = make_engine(orchestrator, FakeAccessCounter())

    candidates = await engine.select_candidates(set(), {"env": "keep"}, timedelta(minutes=5))

    assert candidates == ["a"]


async def test_candidate_selection_skips_excluded_and_dedupes():
    orchestrator = FakeOrchestrator([
        make_info("a", task_id="t1"),
        make_info("b", task_id="t2"),
        make_info("b", task_id="t3"),
    ])
    engine = make_engine(orchestrator, FakeAccessCounter())

    candidates = await engine.select_candidates({"a"}, {}, timedelta(minutes=5))

    assert candidates == ["b"]


async def test_request_purge_returns_before_reaping():
    orchestrator = FakeOrchestrator([make_info("a"), make_info("b")])
    engine = make_engine(orchestrator, FakeAccessCounter(), interval=0.05)

    result = await engine.request_purge(duration="300")

    assert result.ok
    assert result.to_dict() == {"result": "ok"}
    assert orchestrator.calls_named("terminate_by_subdomain") == []

    await engine.wait_idle()
    assert orchestrator.calls_named("terminate_by_subdomain") == [
        ("terminate_by_subdomain", "a"),
        ("terminate_by_subdomain", "b"),
    ]


async def test_request_purge_reports_list_failure():
    orchestrator = FakeOrchestrator()
    orchestrator.fail["list"] = "ListTasks: access denied"
    engine = make_engine(orchestrator, FakeAccessCounter())

    result = await engine.request_purge(duration="600")

    assert isinstance(result.error, OrchestratorError)
    assert result.status == "ListTasks: access denied"


async def test_request_purge_with_no_candidates_spawns_nothing():
    orchestrator = FakeOrchestrator([make_info("a", age=timedelta(seconds=5))])
    engine = make_engine(orchestrator, FakeAccessCounter())

    result = await engine.request_purge(excludes=["b"], exclude_tags=["env:keep"], duration="300")

    assert result.ok
    assert not engine._tasks


# ── reap ────────────────────────────────────────────────────────────────────

async def test_reap_skips_active_and_uncertain_subdomains():
    orchestrator = FakeOrchestrator()
    counter = FakeAccessCounter(hits={"busy": 3}, failing=("flaky",))
    engine = make_engine(orchestrator, counter)

    purged = await engine.reap(["busy", "flaky", "idle"], timedelta(minutes=5))

    assert purged == 1
    assert orchestrator.calls == [("terminate_by_subdomain", "idle")]
    assert [c[0] for c in counter.calls] == ["busy", "flaky", "idle"]
    assert all(window == timedelta(minutes=5) for _, window in counter.calls)


async def test_reap_continues_after_terminate_failure():
    orchestrator = FakeOrchestrator()
    orchestrator.fail["a"] = "StopTask: not found"
    engine = make_engine(orchestrator, FakeAccessCounter())

    purged = await engine.reap(["a", "b"], timedelta(minutes=5))

    assert purged == 1
    assert orchestrator.calls_named("terminate_by_subdomain") == [
        ("terminate_by_subdomain", "a"),
        ("terminate_by_subdomain", "b"),
    ]
    assert not engine.running


async def test_concurrent_reap_is_rejected():
    orchestrator = FakeOrchestrator()
    engine = make_engine(orchestrator, FakeAccessCounter(), interval=0.05)

    first = asyncio.create_task(engine.reap(["a", "b"], timedelta(minutes=5)))
    await asyncio.sleep(0)
    assert engine.running

    with pytest.raises(ConcurrencyRejected):
        await engine.reap(["c"], timedelta(minutes=5))

    assert await first == 2
    assert ("terminate_by_subdomain", "c") not in orchestrator.calls
    assert not engine.running


async def test_concurrent_purge_requests_run_one_reap():
    orchestrator = FakeOrchestrator([make_info("a"), make_info("b")])
    counter = FakeAccessCounter()
    engine = make_engine(orchestrator, counter, interval=0.05)

    results = await asyncio.gather(
        engine.request_purge(duration="300"),
        engine.request_purge(duration="300"),
    )
    await engine.wait_idle()

    assert all(r.ok for r in results)
    assert orchestrator.calls_named("terminate_by_subdomain") == [
        ("terminate_by_subdomain", "a"),
        ("terminate_by_subdomain", "b"),
    ]
    assert len(counter.calls) == 2


async def test_lock_released_after_unexpected_error():
    class BrokenCounter(FakeAccessCounter):
        async def count(self, subdomain, window):
            raise RuntimeError("boom")

    engine = make_engine(FakeOrchestrator(), BrokenCounter())

    with pytest.raises(RuntimeError):
        await engine.reap(["a"], timedelta(minutes=5))

    assert not engine.running


async def test_terminations_are_paced():
    orchestrator = FakeOrchestrator()
    engine = make_engine(orchestrator, FakeAccessCounter(), interval=0.05)

    started = time.monotonic()
    purged = await engine.reap(["a", "b", "c"], timedelta(minutes=5))
    elapsed = time.monotonic() - started

    assert purged == 3
    assert elapsed >= 2 * 0.05


async def test_stop_cancels_running_reap():
    orchestrator = FakeOrchestrator([make_info("a"), make_info("b")])
    engine = make_engine(orchestrator, FakeAccessCounter(), interval=10.0)

    await engine.request_purge(duration="300")
    await asyncio.sleep(0.01)
    await engine.stop()

    assert orchestrator.calls_named("terminate_by_subdomain") == [
        ("terminate_by_subdomain", "a"),
    ]
    assert not engine.running
