"""Redis-backed job channel.

Producers push encoded jobs onto a list. A consumer claims a message by
atomically moving it onto a per-queue processing list (``BLMOVE``) and
acknowledges it by removing it from there (``LREM``). Messages left on the
processing list by a crashed consumer can be pushed back with
`recover_unacked`. Outcomes are appended to a results list and announced on
a pub/sub channel of the same name.
"""

from __future__ import annotations

from fastmcp.utilities.logging import get_logger
import redis.asyncio as redis

from .channel import ClaimedJob
from .models import GenerateJob, InterpretJob, JobOutcome, encode_job

_logger = get_logger(__name__)


class RedisJobChannel:
    def __init__(
        self,
        client: redis.Redis,
        *,
        queue_key: str,
        results_key: str,
        processing_key: str | None = None,
    ) -> None:
        self._client = client
        self.queue_key = queue_key
        self.results_key = results_key
        self.processing_key = processing_key or f"{queue_key}:processing"

    @classmethod
    def from_url(cls, url: str, *, queue_key: str, results_key: str) -> RedisJobChannel:
        client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, queue_key=queue_key, results_key=results_key)

    async def enqueue(self, job: GenerateJob | InterpretJob) -> None:
        await self._client.lpush(self.queue_key, encode_job(job))

    async def receive(self, timeout: float) -> ClaimedJob | None:
        # LPUSH + BLMOVE from the right keeps FIFO order
        raw = await self._client.blmove(
            self.queue_key, self.processing_key, timeout, "RIGHT", "LEFT"
        )
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return ClaimedJob(raw=raw, receipt=raw)

    async def ack(self, claim: ClaimedJob) -> None:
        removed = await self._client.lrem(self.processing_key, 1, claim.raw)
        if not removed:
            _logger.warning("Acknowledged job was not on %s", self.processing_key)

    async def recover_unacked(self) -> int:
        """Move every message on the processing list back onto the queue."""
        moved = 0
        while await self._client.lmove(self.processing_key, self.queue_key, "LEFT", "RIGHT"):
            moved += 1
        if moved:
            _logger.info("Requeued %d unacknowledged job(s) from %s", moved, self.processing_key)
        return moved

    async def publish_outcome(self, outcome: JobOutcome) -> None:
        data = outcome.model_dump_json()
        async with self._client.pipeline(transaction=False) as pipe:
            pipe.rpush(self.results_key, data)
            pipe.publish(self.results_key, data)
            await pipe.execute()

    async def close(self) -> None:
        await self._client.aclose()
