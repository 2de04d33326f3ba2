"""Queued job and outcome models.

`AsyncJob` is a tagged union over the closed set of job kinds; the ``kind``
field is the discriminator, so decoding a message yields the concrete job
type and dispatch can match on it exhaustively.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from datasense_mcp.exceptions import JobDecodeError
from datasense_mcp.generation.models import GenerationRequest
from datasense_mcp.interpretation.models import InterpretationRequest, InterpretationResult


class JobKind(StrEnum):
    GENERATE = "generate"
    INTERPRET = "interpret"


def _new_correlation_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _JobBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    correlation_id: str = Field(
        default_factory=_new_correlation_id, description="Ties the job to its outcome"
    )
    enqueued_at: datetime = Field(default_factory=_utcnow, description="Producer timestamp")


class GenerateJob(_JobBase):
    """Queued SQL generation."""

    kind: Literal["generate"] = "generate"
    payload: GenerationRequest


class InterpretJob(_JobBase):
    """Queued result interpretation (extended when context is present)."""

    kind: Literal["interpret"] = "interpret"
    payload: InterpretationRequest


AsyncJob = Annotated[GenerateJob | InterpretJob, Field(discriminator="kind")]

_ASYNC_JOB_ADAPTER: TypeAdapter[GenerateJob | InterpretJob] = TypeAdapter(AsyncJob)


def encode_job(job: GenerateJob | InterpretJob) -> str:
    return job.model_dump_json()


def decode_job(raw: str | bytes) -> GenerateJob | InterpretJob:
    """Decode a channel message into its concrete job type.

    Raises:
        JobDecodeError: The message is not valid JSON or does not match a job kind
    """
    try:
        return _ASYNC_JOB_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        msg = f"Invalid job payload: {exc.error_count()} validation error(s)"
        raise JobDecodeError(msg) from exc


class JobOutcome(BaseModel):
    """Per-job result published to the results channel."""

    correlation_id: str = Field(description="Correlation id of the job")
    kind: JobKind | None = Field(default=None, description="Job kind; None if undecodable")
    status: Literal["ok", "error"] = Field(description="Overall status of the job")
    sql: str | None = Field(default=None, description="Generated SQL for generate jobs")
    interpretation: InterpretationResult | None = Field(
        default=None, description="Interpretation for interpret jobs"
    )
    error_type: str | None = Field(default=None, description="Error class name on failure")
    error_message: str | None = Field(default=None, description="Failure reason")
    completed_at: datetime = Field(default_factory=_utcnow, description="Completion time (UTC)")

    @classmethod
    def failure(
        cls, correlation_id: str, kind: JobKind | None, exc: BaseException
    ) -> JobOutcome:
        return cls(
            correlation_id=correlation_id,
            kind=kind,
            status="error",
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
