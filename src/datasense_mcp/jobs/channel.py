"""Job channel abstraction and the in-process implementation.

Delivery is at-least-once: a received message stays claimed until it is
acknowledged, and an unacknowledged claim may be delivered again.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

from .models import GenerateJob, InterpretJob, JobOutcome, encode_job


@dataclass(frozen=True, slots=True)
class ClaimedJob:
    """A message taken from the channel but not yet acknowledged."""

    raw: str
    receipt: object


class JobChannel(Protocol):
    async def enqueue(self, job: GenerateJob | InterpretJob) -> None: ...

    async def receive(self, timeout: float) -> ClaimedJob | None:
        """Wait up to `timeout` seconds for a message; None when nothing arrived."""
        ...

    async def ack(self, claim: ClaimedJob) -> None: ...

    async def publish_outcome(self, outcome: JobOutcome) -> None: ...

    async def close(self) -> None: ...


class InMemoryJobChannel:
    """Queue-backed channel for a single process and for tests."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._results: asyncio.Queue[JobOutcome] = asyncio.Queue()
        self._unacked: dict[object, str] = {}
        self._next_receipt = 0
        self.outcomes: list[JobOutcome] = []

    async def enqueue(self, job: GenerateJob | InterpretJob) -> None:
        await self.enqueue_raw(encode_job(job))

    async def enqueue_raw(self, raw: str) -> None:
        await self._queue.put(raw)

    async def receive(self, timeout: float) -> ClaimedJob | None:
        try:
            raw = await asyncio.wait_for(self._queue.get(), timeout)
        except TimeoutError:
            return None
        self._next_receipt += 1
        self._unacked[self._next_receipt] = raw
        return ClaimedJob(raw=raw, receipt=self._next_receipt)

    async def ack(self, claim: ClaimedJob) -> None:
        self._unacked.pop(claim.receipt, None)

    async def requeue_unacked(self) -> int:
        """Redeliver every claimed-but-unacknowledged message."""
        pending = list(self._unacked.values())
        self._unacked.clear()
        for raw in pending:
            await self._queue.put(raw)
        return len(pending)

    @property
    def unacked_count(self) -> int:
        return len(self._unacked)

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    async def publish_outcome(self, outcome: JobOutcome) -> None:
        self.outcomes.append(outcome)
        await self._results.put(outcome)

    async def next_outcome(self, timeout: float = 5.0) -> JobOutcome:
        """Wait for the next published outcome."""
        return await asyncio.wait_for(self._results.get(), timeout)

    async def close(self) -> None:
        return None
