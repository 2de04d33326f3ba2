"""Process-wide wiring of the datasense-mcp components.

`ServiceRegistry` builds the language-model client, the safety validator,
both orchestrators, the intent detector and (optionally) the async job
consumer from `ConfigService`, once per process. Tools and the server
lifespan resolve everything through it.
"""

from __future__ import annotations

import threading
from typing import ClassVar

from fastmcp.utilities.logging import get_logger

from datasense_mcp.generation.detection import QueryIntentDetector
from datasense_mcp.generation.generator import SqlGenerator
from datasense_mcp.generation.orchestrator import GenerationOrchestrator
from datasense_mcp.interpretation.interpreter import ResultInterpreter
from datasense_mcp.interpretation.orchestrator import InterpretationOrchestrator
from datasense_mcp.jobs.channel import JobChannel
from datasense_mcp.jobs.consumer import JobConsumer
from datasense_mcp.jobs.redis_channel import RedisJobChannel
from datasense_mcp.llm import create_llm_client
from datasense_mcp.llm.base import LanguageModelClient
from datasense_mcp.safety.models import Dialect
from datasense_mcp.safety.validator import SqlSafetyValidator
from datasense_mcp.services.config_service import ConfigService, ConsumerConfig
from datasense_mcp.services.schema_cache import SchemaCache

_logger = get_logger(__name__)


class ServiceRegistry:
    """Holds one instance of every long-lived component."""

    _instance: ClassVar[ServiceRegistry | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        client: LanguageModelClient,
        schema_cache: SchemaCache,
        *,
        default_dialect: Dialect = "tsql",
        apply_enhancement: bool = True,
        channel: JobChannel | None = None,
        consumer_config: ConsumerConfig | None = None,
    ) -> None:
        self.client = client
        self.schema_cache = schema_cache
        self.default_dialect = default_dialect
        self.validator = SqlSafetyValidator(default_dialect=default_dialect)
        self.generation = GenerationOrchestrator(
            SqlGenerator(client), self.validator, schema_cache, default_dialect=default_dialect
        )
        self.interpretation = InterpretationOrchestrator(
            ResultInterpreter(client, budget=ConfigService.result_budget()),
            client,
            apply_enhancement=apply_enhancement,
        )
        self.detector = QueryIntentDetector(client)
        self.channel = channel
        self.consumer: JobConsumer | None = None
        self._recover_on_start = bool(consumer_config and consumer_config.recover_on_start)
        if channel is not None:
            consumer_config = consumer_config or ConfigService.get_consumer_config()
            self.consumer = JobConsumer(
                channel,
                self.generation,
                self.interpretation,
                concurrency=consumer_config.concurrency,
                job_timeout=consumer_config.job_timeout,
                poll_timeout=consumer_config.poll_timeout,
                retry_delay=consumer_config.retry_delay,
            )

    @classmethod
    def get_instance(cls) -> ServiceRegistry:
        """Get the singleton registry, built from configuration on first use."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls._from_config()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (primarily for testing)."""
        with cls._lock:
            cls._instance = None

    @classmethod
    def _from_config(cls) -> ServiceRegistry:
        llm_config = ConfigService.get_llm_config()
        consumer_config = ConfigService.get_consumer_config()
        channel: JobChannel | None = None
        if consumer_config.redis_url:
            channel = RedisJobChannel.from_url(
                consumer_config.redis_url,
                queue_key=consumer_config.queue_key,
                results_key=consumer_config.results_key,
            )
        else:
            _logger.info("DATASENSE_REDIS_URL not set; async job consumer disabled")
        _logger.info("Using %s language model %s", llm_config.provider, llm_config.model)
        return cls(
            create_llm_client(llm_config),
            SchemaCache.get_instance(),
            default_dialect=ConfigService.default_dialect(),
            apply_enhancement=ConfigService.apply_enhancement(),
            channel=channel,
            consumer_config=consumer_config,
        )

    async def start_consumer(self) -> None:
        """Start the job consumer when a channel is configured."""
        if self.consumer is None:
            return
        if self._recover_on_start and isinstance(self.channel, RedisJobChannel):
            await self.channel.recover_unacked()
        self.consumer.start()

    async def aclose(self, grace: float | None = None) -> None:
        """Drain the consumer, then release the channel and the model client."""
        if self.consumer is not None:
            await self.consumer.shutdown(grace)
        if self.channel is not None:
            await self.channel.close()
        await self.client.aclose()
