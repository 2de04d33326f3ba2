"""Long-running consumer that drives the orchestrators from a job channel.

Each worker loops: receive, decode, run the matching orchestrator under the
per-job budget, publish the outcome, acknowledge. A failing job produces an
error outcome and never stops the loop. Channel errors are logged and retried
after a fixed delay. A job interrupted by shutdown is not acknowledged, so
the channel may deliver it again.
"""

from __future__ import annotations

import asyncio
import json
from typing import assert_never

from fastmcp.utilities.logging import get_logger

from datasense_mcp.exceptions import DataSenseError, JobDecodeError, OperationTimeoutError
from datasense_mcp.generation.orchestrator import GenerationOrchestrator
from datasense_mcp.interpretation.orchestrator import InterpretationOrchestrator

from .channel import ClaimedJob, JobChannel
from .models import GenerateJob, InterpretJob, JobKind, JobOutcome, decode_job

_logger = get_logger(__name__)

_UNKNOWN_CORRELATION_ID = "unknown"


def _peek_correlation_id(raw: str) -> str:
    try:
        data = json.loads(raw)
    except ValueError:
        return _UNKNOWN_CORRELATION_ID
    if isinstance(data, dict) and isinstance(data.get("correlation_id"), str):
        return data["correlation_id"]
    return _UNKNOWN_CORRELATION_ID


class JobConsumer:
    """Pull jobs from a channel and publish one outcome per job."""

    def __init__(
        self,
        channel: JobChannel,
        generation: GenerationOrchestrator,
        interpretation: InterpretationOrchestrator,
        *,
        concurrency: int = 1,
        job_timeout: float | None = None,
        poll_timeout: float = 5.0,
        retry_delay: float = 5.0,
    ) -> None:
        self._channel = channel
        self._generation = generation
        self._interpretation = interpretation
        self._concurrency = max(1, concurrency)
        self._job_timeout = job_timeout
        self._poll_timeout = poll_timeout
        self._retry_delay = retry_delay
        self._stopping = asyncio.Event()
        self._workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    def start(self) -> None:
        """Spawn the worker tasks on the running loop."""
        if self.running:
            return
        self._stopping.clear()
        self._workers = [
            asyncio.create_task(self.run(), name=f"datasense-job-worker-{i}")
            for i in range(self._concurrency)
        ]
        _logger.info("Job consumer started with %d worker(s)", self._concurrency)

    async def run(self) -> None:
        """Worker loop; returns once shutdown has been requested."""
        while not self._stopping.is_set():
            try:
                claim = await self._channel.receive(self._poll_timeout)
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                _logger.exception(
                    "Job channel receive failed; retrying in %.1fs", self._retry_delay
                )
                await self._pause(self._retry_delay)
                continue
            if claim is None:
                continue
            await self._handle(claim)

    async def shutdown(self, grace: float | None = None) -> None:
        """Stop pulling new jobs and let in-flight jobs finish.

        Workers still busy after `grace` seconds are cancelled; their jobs
        stay unacknowledged.
        """
        self._stopping.set()
        if not self._workers:
            return
        _done, pending = await asyncio.wait(self._workers, timeout=grace)
        for task in pending:
            task.cancel()
        if pending:
            _logger.warning("Cancelled %d job worker(s) after the grace period", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        self._workers = []
        _logger.info("Job consumer stopped")

    async def process(self, raw: str) -> JobOutcome:
        """Decode and execute one message; failures become error outcomes."""
        try:
            job = decode_job(raw)
        except JobDecodeError as exc:
            _logger.warning("Discarding undecodable job: %s", exc)
            return JobOutcome.failure(_peek_correlation_id(raw), None, exc)

        kind = JobKind(job.kind)
        _logger.info("Processing %s job %s", kind, job.correlation_id)
        try:
            return await asyncio.wait_for(self._execute(job), self._job_timeout)
        except TimeoutError:
            msg = f"Job exceeded its {self._job_timeout}s budget"
            return JobOutcome.failure(job.correlation_id, kind, OperationTimeoutError(msg))
        except DataSenseError as exc:
            _logger.warning("Job %s failed: %s", job.correlation_id, exc)
            return JobOutcome.failure(job.correlation_id, kind, exc)
        except Exception as exc:  # noqa: BLE001
            _logger.exception("Job %s failed unexpectedly", job.correlation_id)
            return JobOutcome.failure(job.correlation_id, kind, exc)

    async def _execute(self, job: GenerateJob | InterpretJob) -> JobOutcome:
        match job:
            case GenerateJob():
                sql = await self._generation.generate_sql(job.payload)
                return JobOutcome(
                    correlation_id=job.correlation_id,
                    kind=JobKind.GENERATE,
                    status="ok",
                    sql=sql,
                )
            case InterpretJob():
                interpretation = await self._interpretation.interpret_results_extended(
                    job.payload
                )
                return JobOutcome(
                    correlation_id=job.correlation_id,
                    kind=JobKind.INTERPRET,
                    status="ok",
                    interpretation=interpretation,
                )
            case _:
                assert_never(job)

    async def _handle(self, claim: ClaimedJob) -> None:
        outcome = await self.process(claim.raw)
        try:
            await self._channel.publish_outcome(outcome)
        except Exception:  # noqa: BLE001
            _logger.exception("Failed to publish outcome for job %s", outcome.correlation_id)
        try:
            await self._channel.ack(claim)
        except Exception:  # noqa: BLE001
            _logger.exception("Failed to acknowledge job %s", outcome.correlation_id)

    async def _pause(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), delay)
        except TimeoutError:
            return
