"""Asynchronous job processing.

Exports the job models, the channel implementations and the consumer that
drives the orchestrators from queued work.
"""

from __future__ import annotations

from .channel import ClaimedJob, InMemoryJobChannel, JobChannel
from .consumer import JobConsumer
from .models import AsyncJob, GenerateJob, InterpretJob, JobKind, JobOutcome, decode_job
from .redis_channel import RedisJobChannel

__all__ = [
    "AsyncJob",
    "ClaimedJob",
    "GenerateJob",
    "InMemoryJobChannel",
    "InterpretJob",
    "JobChannel",
    "JobConsumer",
    "JobKind",
    "JobOutcome",
    "RedisJobChannel",
    "decode_job",
]
