"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]

# Add project root to path for imports
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fraud_reconciler.core.config import KafkaConfig, ReconciliationConfig
from fraud_reconciler.messaging.kafka_publisher import KafkaTransport
from fraud_reconciler.services.progress import ProgressReporter
from fraud_reconciler.services.reconciliation_service import RecordReconciler
from tests.utils.fakes import (
    ACTION,
    DESTINATION,
    SYSTEM_ACTOR,
    InMemoryTicketRepository,
    make_producer,
)


@pytest.fixture
def repository() -> InMemoryTicketRepository:
    """Empty in-memory ticket repository."""
    return InMemoryTicketRepository()


@pytest.fixture
def producer():
    """Mock Kafka producer."""
    return make_producer()


@pytest.fixture
def kafka_config() -> KafkaConfig:
    """Kafka config with fast retries."""
    return KafkaConfig(
        bootstrap_servers="localhost:9092",
        topic_notifications=DESTINATION,
        max_attempts=3,
        retry_backoff_ms=0,
    )


@pytest_asyncio.fixture
async def transport(kafka_config, producer) -> KafkaTransport:
    """Started transport backed by the mock producer."""
    transport = KafkaTransport(kafka_config, producer=producer)
    await transport.start()
    return transport


@pytest.fixture
def reconciliation_config() -> ReconciliationConfig:
    return ReconciliationConfig(
        group_size=100,
        action=ACTION,
        system_actor_id=SYSTEM_ACTOR,
        processor_sentinel="ticketProcessor",
    )


@pytest.fixture
def progress() -> ProgressReporter:
    return ProgressReporter()


@pytest.fixture
def reconciler(repository, transport, reconciliation_config, progress) -> RecordReconciler:
    """Reconciler wired to the in-memory store and mock transport."""
    return RecordReconciler(
        repository=repository,
        transport=transport,
        config=reconciliation_config,
        destination=DESTINATION,
        progress=progress,
    )
