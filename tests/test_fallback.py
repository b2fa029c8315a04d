"""
Tests for retry and fallback orchestration.
"""

import asyncio

import pytest

from multicloud.core.exceptions import FallbackExhausted, UnknownBackend, ValidationError
from multicloud.core.interfaces.storage import ErrorKind, OperationResult
from multicloud.services.fallback import FallbackOrchestrator, FallbackPolicy

from conftest import SleepRecorder, StubAdapter, build_registry


def orchestrator_for(*adapters, chains, max_retries=2, enabled=True, sleeper=None):
    registry = build_registry(*adapters)
    policy = FallbackPolicy(
        enabled=enabled,
        chains=chains,
        max_retries=max_retries,
        retry_delay=0.5,
    )
    return FallbackOrchestrator(registry, policy, sleep=sleeper or SleepRecorder())


async def upload(orchestrator, provider="a"):
    return await orchestrator.execute(
        "upload",
        lambda adapter: adapter.upload("docs/a.txt", b"hello"),
        provider,
    )


@pytest.mark.asyncio
async def test_retries_then_falls_back_in_order(call_log):
    """A, A, B, B, C: each backend gets max_retries tries before the next."""
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_always=True),
        StubAdapter("b", log=call_log, fail_always=True),
        StubAdapter("c", log=call_log),
        chains={"a": ("b", "c")},
    )

    result = await upload(orchestrator)

    assert call_log == ["a", "a", "b", "b", "c"]
    assert result.ok
    assert result.served_by == "c"
    assert result.requested == "a"
    assert result.attempts == 5


@pytest.mark.asyncio
async def test_primary_recovers_on_retry(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_times=1),
        StubAdapter("b", log=call_log),
        chains={"a": ("b",)},
        max_retries=3,
    )

    result = await upload(orchestrator)

    assert call_log == ["a", "a"]
    assert result.served_by == "a"
    assert result.attempts == 2


@pytest.mark.asyncio
async def test_exhausted_chain_reports_every_backend(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_always=True),
        StubAdapter("b", log=call_log, fail_always=True),
        StubAdapter("c", log=call_log, fail_always=True),
        chains={"a": ("b", "c")},
        max_retries=3,
    )

    with pytest.raises(FallbackExhausted) as exc_info:
        await upload(orchestrator)

    exc = exc_info.value
    assert exc.tried == ["a", "b", "c"]
    assert [f.attempts for f in exc.failures] == [3, 3, 3]
    assert exc.failures[0].last_error == "upload failed on a"
    assert exc.to_dict()["error_kind"] == "fallback_exhausted"
    assert len(call_log) == 9


@pytest.mark.asyncio
async def test_backoff_grows_linearly_per_backend():
    sleeper = SleepRecorder()
    orchestrator = orchestrator_for(
        StubAdapter("a", fail_always=True),
        StubAdapter("b", fail_always=True),
        chains={"a": ("b",)},
        max_retries=3,
        sleeper=sleeper,
    )

    with pytest.raises(FallbackExhausted):
        await upload(orchestrator)

    # No wait after the last try on a backend
    assert sleeper.delays == [0.5, 1.0, 0.5, 1.0]


@pytest.mark.asyncio
async def test_no_chain_returns_error_result(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_always=True),
        chains={},
    )

    result = await upload(orchestrator)

    assert not result.ok
    assert result.error_kind is ErrorKind.PROVIDER
    assert result.attempts == 2
    assert call_log == ["a", "a"]
    assert result.failures == [
        {"backend": "a", "attempts": 2, "errors": ["upload failed on a", "upload failed on a"]},
    ]


@pytest.mark.asyncio
async def test_disabled_policy_is_a_single_attempt(call_log):
    sleeper = SleepRecorder()
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_always=True),
        StubAdapter("b", log=call_log),
        chains={"a": ("b",)},
        enabled=False,
        sleeper=sleeper,
    )

    result = await upload(orchestrator)

    assert not result.ok
    assert call_log == ["a"]
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_repeated_chain_entries_are_tried_once(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_always=True),
        StubAdapter("b", log=call_log, fail_always=True),
        StubAdapter("c", log=call_log),
        chains={"a": ("b", "b", "c")},
    )

    result = await upload(orchestrator)

    assert call_log == ["a", "a", "b", "b", "c"]
    assert result.served_by == "c"


@pytest.mark.asyncio
async def test_unavailable_fallback_is_skipped(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_always=True),
        StubAdapter("b", log=call_log, connect_ok=False),
        StubAdapter("c", log=call_log),
        chains={"a": ("missing", "b", "c")},
    )

    result = await upload(orchestrator)

    assert result.served_by == "c"
    assert call_log == ["a", "a", "c"]


@pytest.mark.asyncio
async def test_unknown_primary_raises_before_any_attempt(call_log):
    orchestrator = orchestrator_for(StubAdapter("a", log=call_log), chains={})

    with pytest.raises(UnknownBackend):
        await upload(orchestrator, provider="zzz")

    assert call_log == []


@pytest.mark.asyncio
async def test_validation_error_is_not_retried(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, raise_error=ValidationError("bad options")),
        StubAdapter("b", log=call_log),
        chains={"a": ("b",)},
    )

    with pytest.raises(ValidationError):
        await upload(orchestrator)

    assert call_log == ["a"]


@pytest.mark.asyncio
async def test_non_provider_error_result_is_returned_as_is(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log),
        StubAdapter("b", log=call_log),
        chains={"a": ("b",)},
    )

    async def call(adapter):
        adapter.log.append(adapter.name)
        return OperationResult.failure(adapter.name, "quota exceeded", ErrorKind.VALIDATION)

    result = await orchestrator.execute("upload", call, "a")

    assert result.error_kind is ErrorKind.VALIDATION
    assert call_log == ["a"]
    assert result.to_dict()["tried"] == ["a"]


@pytest.mark.asyncio
async def test_unreachable_fallback_result_moves_to_next_backend(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_always=True),
        StubAdapter("b", log=call_log),
        StubAdapter("c", log=call_log),
        chains={"a": ("b", "c")},
    )

    async def call(adapter):
        if adapter.name == "b":
            adapter.log.append(adapter.name)
            return OperationResult.failure("b", "auth expired", ErrorKind.CONNECTION)
        return await adapter.upload("docs/a.txt", b"hello")

    result = await orchestrator.execute("upload", call, "a")

    assert call_log == ["a", "a", "b", "c"]
    assert result.served_by == "c"
    assert result.attempts == 4


@pytest.mark.asyncio
async def test_fallback_error_result_keeps_earlier_failures(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, fail_always=True),
        StubAdapter("b", log=call_log),
        StubAdapter("c", log=call_log),
        chains={"a": ("b", "c")},
    )

    async def call(adapter):
        if adapter.name == "b":
            adapter.log.append(adapter.name)
            return OperationResult.failure("b", "quota exceeded", ErrorKind.VALIDATION)
        return await adapter.upload("docs/a.txt", b"hello")

    result = await orchestrator.execute("upload", call, "a")
    body = result.to_dict()

    assert call_log == ["a", "a", "b"]
    assert body["provider"] == "b"
    assert body["requested"] == "a"
    assert body["attempts"] == 3
    assert body["tried"] == ["a", "b"]
    assert body["failures"][0] == {
        "backend": "a",
        "attempts": 2,
        "errors": ["upload failed on a", "upload failed on a"],
    }
    assert body["failures"][1]["errors"] == ["quota exceeded"]


@pytest.mark.asyncio
async def test_adapter_exception_counts_as_provider_failure(call_log):
    orchestrator = orchestrator_for(
        StubAdapter("a", log=call_log, raise_error=RuntimeError("socket closed")),
        StubAdapter("b", log=call_log),
        chains={"a": ("b",)},
    )

    result = await upload(orchestrator)

    assert result.served_by == "b"
    assert call_log == ["a", "a", "b"]


@pytest.mark.asyncio
async def test_cancellation_stops_the_walk(call_log):
    started = asyncio.Event()

    class HangingAdapter(StubAdapter):
        async def upload(self, path, content, options=None):
            self.log.append(self.name)
            started.set()
            await asyncio.Event().wait()

    orchestrator = orchestrator_for(
        HangingAdapter("a", log=call_log),
        StubAdapter("b", log=call_log),
        chains={"a": ("b",)},
    )

    task = asyncio.create_task(upload(orchestrator))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert call_log == ["a"]


def test_policy_rejects_self_fallback():
    with pytest.raises(ValueError):
        FallbackPolicy(chains={"aws": ("azure", "aws")})


def test_policy_rejects_zero_retries():
    with pytest.raises(ValueError):
        FallbackPolicy(max_retries=0)


def test_policy_chains_are_read_only():
    policy = FallbackPolicy(chains={"aws": ["azure"]})

    assert policy.chain_for("aws") == ("azure",)
    assert policy.chain_for("gcp") == ()
    with pytest.raises(TypeError):
        policy.chains["gcp"] = ("aws",)
