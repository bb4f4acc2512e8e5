"""Kafka transport for approval notifications (production path).

Publishes to topic: fraud.ticket.approvals.v1 (configurable)

Features:
- One shared AIOKafkaProducer per run (acks=all)
- Scoped per-operation publisher handles
- Confirmed sends with a bounded attempt budget
- JSON payloads with ObjectId/datetime rendered as strings
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from bson import ObjectId

from fraud_reconciler.core.config import KafkaConfig
from fraud_reconciler.core.errors import TransportFailureError, TransportUnavailableError

logger = logging.getLogger(__name__)


def _encode_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_message(payload: dict[str, Any]) -> bytes:
    """Serialize a notification payload to JSON bytes."""
    return json.dumps(payload, default=_encode_value).encode("utf-8")


class Publisher:
    """Per-operation publish handle.

    Obtained from KafkaTransport.publisher(); refuses sends once closed.
    """

    def __init__(
        self,
        producer: AIOKafkaProducer,
        confirm: bool,
        max_attempts: int,
        retry_backoff_ms: int = 0,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self._producer = producer
        self.confirm = confirm
        self.max_attempts = max_attempts
        self.retry_backoff_ms = retry_backoff_ms
        self.closed = False

    async def send(self, destination: str, payload: dict[str, Any], key: str | None = None) -> None:
        """Send a payload, retrying KafkaError failures up to max_attempts.

        With confirm=True the call returns only after the broker acknowledged
        the record.

        Raises:
            TransportFailureError: when every attempt failed
        """
        if self.closed:
            raise TransportFailureError("Publisher is closed", details={"destination": destination})

        value = serialize_message(payload)
        encoded_key = key.encode("utf-8") if key is not None else None
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                if self.confirm:
                    await self._producer.send_and_wait(destination, value=value, key=encoded_key)
                else:
                    await self._producer.send(destination, value=value, key=encoded_key)
                logger.info(
                    f"Message sent to {destination}",
                    extra={"destination": destination, "attempt": attempt},
                )
                return
            except KafkaError as e:
                last_error = e
                if not e.retriable:
                    logger.error(
                        "Publish failed with non-retriable error",
                        extra={"destination": destination, "attempt": attempt, "error": str(e)},
                    )
                    raise TransportFailureError(
                        f"Failed to publish to {destination}: {e}",
                        details={"destination": destination, "error": str(e)},
                    ) from e
                logger.warning(
                    "Publish attempt failed",
                    extra={
                        "destination": destination,
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "error": str(e),
                    },
                )
                if attempt < self.max_attempts and self.retry_backoff_ms:
                    await asyncio.sleep(self.retry_backoff_ms / 1000)

        raise TransportFailureError(
            f"Failed to publish to {destination} after {self.max_attempts} attempts",
            details={"destination": destination, "error": str(last_error)},
        )

    async def close(self) -> None:
        """Release the handle, flushing anything sent without confirmation."""
        if self.closed:
            return
        self.closed = True
        if not self.confirm:
            await self._producer.flush()


class KafkaTransport:
    """Run-scoped Kafka connection shared by all reconciliations."""

    def __init__(self, config: KafkaConfig, producer: AIOKafkaProducer | None = None):
        self.config = config
        self._producer = producer
        self._started = False

    def _build_producer(self) -> AIOKafkaProducer:
        options: dict[str, Any] = {
            "bootstrap_servers": self.config.bootstrap_servers,
            "client_id": self.config.client_id,
            "acks": "all",
            "request_timeout_ms": self.config.request_timeout_ms,
            "security_protocol": self.config.security_protocol,
        }
        if self.config.sasl_mechanism:
            options["sasl_mechanism"] = self.config.sasl_mechanism
            options["sasl_plain_username"] = self.config.sasl_username
            options["sasl_plain_password"] = self.config.sasl_password.get_secret_value()
        return AIOKafkaProducer(**options)

    async def start(self) -> None:
        """Connect the producer.

        Raises:
            TransportUnavailableError: if the brokers cannot be reached
        """
        if self._started:
            logger.warning("Kafka transport already started")
            return
        if self._producer is None:
            self._producer = self._build_producer()
        try:
            await self._producer.start()
        except KafkaError as e:
            raise TransportUnavailableError(
                "Kafka brokers not available",
                details={"bootstrap_servers": self.config.bootstrap_servers, "error": str(e)},
            ) from e
        self._started = True
        logger.info(
            "Kafka transport started",
            extra={"bootstrap_servers": self.config.bootstrap_servers},
        )

    async def stop(self) -> None:
        """Flush and disconnect the producer."""
        if not self._started or self._producer is None:
            return
        await self._producer.stop()
        self._started = False
        logger.info("Kafka transport stopped")

    @asynccontextmanager
    async def publisher(self, confirm: bool = True, max_attempts: int | None = None) -> AsyncIterator[Publisher]:
        """Open a publisher immediately before sending and close it right after."""
        if not self._started or self._producer is None:
            raise TransportFailureError("Kafka transport is not started")
        pub = Publisher(
            self._producer,
            confirm=confirm,
            max_attempts=max_attempts or self.config.max_attempts,
            retry_backoff_ms=self.config.retry_backoff_ms,
        )
        try:
            yield pub
        finally:
            await pub.close()
