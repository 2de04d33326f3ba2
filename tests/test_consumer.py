from __future__ import annotations

import asyncio
import json

import pytest

from datasense_mcp.exceptions import JobDecodeError
from datasense_mcp.generation import GenerationOrchestrator, GenerationRequest, SqlGenerator
from datasense_mcp.interpretation import (
    InterpretationOrchestrator,
    InterpretationRequest,
    ResultInterpreter,
)
from datasense_mcp.jobs import (
    ClaimedJob,
    GenerateJob,
    InMemoryJobChannel,
    InterpretJob,
    JobConsumer,
    JobKind,
)
from datasense_mcp.jobs.models import decode_job
from datasense_mcp.safety import SqlSafetyValidator
from datasense_mcp.services.config_service import ConfigService, ConsumerConfig
from datasense_mcp.services.schema_cache import SchemaCache
from datasense_mcp.services.service_registry import ServiceRegistry

INTERPRETATION = json.dumps(
    {"analysis": "One user row.", "answer": "There is 1 user.", "summary": "A single user."}
)


def _consumer(channel, llm, **kwargs) -> JobConsumer:
    generation = GenerationOrchestrator(SqlGenerator(llm), SqlSafetyValidator("tsql"))
    interpretation = InterpretationOrchestrator(ResultInterpreter(llm), llm)
    kwargs.setdefault("poll_timeout", 0.05)
    kwargs.setdefault("retry_delay", 0.01)
    return JobConsumer(channel, generation, interpretation, **kwargs)


def _generate_job(users_snapshot, correlation_id: str = "job-1") -> GenerateJob:
    return GenerateJob(
        correlation_id=correlation_id,
        payload=GenerationRequest(
            natural_language_text="list all users", schema_snapshot=users_snapshot
        ),
    )


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


@pytest.mark.asyncio
async def test_generate_job_success_is_published_and_acked(make_llm, users_snapshot) -> None:
    channel = InMemoryJobChannel()
    consumer = _consumer(channel, make_llm(["SELECT * FROM dbo.users;"]))
    await channel.enqueue(_generate_job(users_snapshot))

    consumer.start()
    outcome = await channel.next_outcome()
    await consumer.shutdown(grace=1.0)

    assert outcome.correlation_id == "job-1"
    assert outcome.kind is JobKind.GENERATE
    assert outcome.status == "ok"
    assert outcome.sql == "SELECT * FROM dbo.users"
    assert channel.unacked_count == 0
    assert consumer.running is False


@pytest.mark.asyncio
async def test_failed_job_is_acked_and_loop_continues(make_llm, users_snapshot) -> None:
    channel = InMemoryJobChannel()
    llm = make_llm(["DROP TABLE users", "SELECT COUNT(*) FROM dbo.users"])
    consumer = _consumer(channel, llm)
    await channel.enqueue(_generate_job(users_snapshot, "bad"))
    await channel.enqueue(_generate_job(users_snapshot, "good"))

    consumer.start()
    first = await channel.next_outcome()
    second = await channel.next_outcome()
    await consumer.shutdown(grace=1.0)

    assert first.correlation_id == "bad"
    assert first.status == "error"
    assert first.error_type == "UnsafeGeneratedQueryError"
    assert second.correlation_id == "good"
    assert second.status == "ok"
    assert channel.unacked_count == 0


@pytest.mark.asyncio
async def test_interpret_job_uses_extended_path(make_llm) -> None:
    channel = InMemoryJobChannel()
    llm = make_llm([INTERPRETATION, "not parseable"])
    consumer = _consumer(channel, llm)
    await channel.enqueue(
        InterpretJob(
            correlation_id="interp",
            payload=InterpretationRequest(
                original_question="how many users?",
                sql_text="SELECT COUNT(*) FROM users",
                result_rows=[{"count": 1}],
                additional_context="users are customers",
            ),
        )
    )

    consumer.start()
    outcome = await channel.next_outcome()
    await consumer.shutdown(grace=1.0)

    assert outcome.kind is JobKind.INTERPRET
    assert outcome.status == "ok"
    assert outcome.interpretation is not None
    assert outcome.interpretation.answer == "There is 1 user."
    assert len(llm.prompts) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("raw", "correlation_id"),
    [
        ("not json at all", "unknown"),
        (json.dumps({"correlation_id": "abc", "kind": "bogus", "payload": {}}), "abc"),
        (json.dumps({"correlation_id": "gen", "kind": "generate", "payload": {}}), "gen"),
    ],
)
async def test_undecodable_job_is_reported_and_acked(make_llm, raw, correlation_id) -> None:
    channel = InMemoryJobChannel()
    llm = make_llm()
    consumer = _consumer(channel, llm)
    await channel.enqueue_raw(raw)

    consumer.start()
    outcome = await channel.next_outcome()
    await consumer.shutdown(grace=1.0)

    assert outcome.status == "error"
    assert outcome.error_type == "JobDecodeError"
    assert outcome.correlation_id == correlation_id
    assert outcome.kind is None
    assert channel.unacked_count == 0
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_job_timeout_produces_timeout_outcome(make_llm, users_snapshot) -> None:
    channel = InMemoryJobChannel()
    consumer = _consumer(channel, make_llm(["SELECT 1"], delay=1.0), job_timeout=0.05)
    await channel.enqueue(_generate_job(users_snapshot))

    consumer.start()
    outcome = await channel.next_outcome()
    await consumer.shutdown(grace=1.0)

    assert outcome.status == "error"
    assert outcome.error_type == "OperationTimeoutError"


@pytest.mark.asyncio
async def test_shutdown_drains_in_flight_job(make_llm, users_snapshot) -> None:
    channel = InMemoryJobChannel()
    consumer = _consumer(channel, make_llm(["SELECT 1"], delay=0.2))
    await channel.enqueue(_generate_job(users_snapshot))

    consumer.start()
    await _wait_for(lambda: channel.unacked_count == 1)
    await consumer.shutdown(grace=2.0)

    assert [o.status for o in channel.outcomes] == ["ok"]
    assert channel.unacked_count == 0


@pytest.mark.asyncio
async def test_shutdown_past_grace_leaves_job_for_redelivery(make_llm, users_snapshot) -> None:
    channel = InMemoryJobChannel()
    consumer = _consumer(channel, make_llm(["SELECT 1"], delay=5.0))
    await channel.enqueue(_generate_job(users_snapshot))

    consumer.start()
    await _wait_for(lambda: channel.unacked_count == 1)
    await consumer.shutdown(grace=0.05)

    assert channel.outcomes == []
    assert await channel.requeue_unacked() == 1
    assert channel.pending_count == 1


class _FlakyChannel(InMemoryJobChannel):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    async def receive(self, timeout: float) -> ClaimedJob | None:
        if self.failures:
            self.failures -= 1
            msg = "broker unavailable"
            raise ConnectionError(msg)
        return await super().receive(timeout)


@pytest.mark.asyncio
async def test_channel_errors_are_retried(make_llm, users_snapshot) -> None:
    channel = _FlakyChannel(failures=2)
    consumer = _consumer(channel, make_llm(["SELECT 1"]))
    await channel.enqueue(_generate_job(users_snapshot))

    consumer.start()
    outcome = await channel.next_outcome()
    await consumer.shutdown(grace=1.0)

    assert outcome.status == "ok"
    assert channel.failures == 0


@pytest.mark.asyncio
async def test_concurrent_workers_process_every_job(make_llm, users_snapshot) -> None:
    channel = InMemoryJobChannel()
    consumer = _consumer(channel, make_llm(default="SELECT 1", delay=0.05), concurrency=3)
    for i in range(6):
        await channel.enqueue(_generate_job(users_snapshot, f"job-{i}"))

    consumer.start()
    await _wait_for(lambda: len(channel.outcomes) == 6)
    await consumer.shutdown(grace=1.0)

    assert {o.correlation_id for o in channel.outcomes} == {f"job-{i}" for i in range(6)}
    assert all(o.status == "ok" for o in channel.outcomes)


def test_job_roundtrips_through_json(users_snapshot) -> None:
    job = _generate_job(users_snapshot)
    decoded = decode_job(job.model_dump_json())
    assert isinstance(decoded, GenerateJob)
    assert decoded == job


def test_decode_rejects_unknown_kind() -> None:
    with pytest.raises(JobDecodeError):
        decode_job('{"kind": "execute", "payload": {}}')


@pytest.mark.asyncio
async def test_job_without_dialect_uses_configured_database_dialect(
    monkeypatch: pytest.MonkeyPatch, make_llm, users_snapshot
) -> None:
    monkeypatch.delenv("DATASENSE_DEFAULT_DIALECT", raising=False)
    monkeypatch.setenv("DATASENSE_DATABASE_URL", "postgresql://u:p@localhost/shop")
    channel = InMemoryJobChannel()
    llm = make_llm(["SELECT name FROM dbo.users LIMIT 5"])
    registry = ServiceRegistry(
        llm,
        SchemaCache(None),
        default_dialect=ConfigService.default_dialect(),
        channel=channel,
        consumer_config=ConsumerConfig(
            redis_url=None,
            queue_key="q",
            results_key="r",
            concurrency=1,
            job_timeout=5.0,
            poll_timeout=0.05,
            retry_delay=0.01,
            recover_on_start=False,
        ),
    )
    raw = json.dumps(
        {
            "correlation_id": "pg",
            "kind": "generate",
            "payload": {
                "natural_language_text": "five user names",
                "schema_snapshot": users_snapshot.model_dump(mode="json"),
            },
        }
    )
    assert decode_job(raw).payload.dialect is None
    await channel.enqueue_raw(raw)

    await registry.start_consumer()
    outcome = await channel.next_outcome()
    await registry.aclose(grace=1.0)

    assert outcome.status == "ok"
    assert outcome.sql == "SELECT name FROM dbo.users LIMIT 5"
    assert "PostgreSQL" in llm.prompts[0]
    assert "T-SQL" not in llm.prompts[0]
