"""Fraud Ticket Reconciliation Job.

Reconciles fraud tickets for a list of cards against MongoDB and publishes
an approval notification per ticket to Kafka.
"""

import argparse
import asyncio
import sys
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass

from motor.motor_asyncio import AsyncIOMotorDatabase

from fraud_reconciler.core.config import Settings, get_settings
from fraud_reconciler.core.database import close_mongo_client, connect_database, create_mongo_client
from fraud_reconciler.core.errors import ReconciliationError
from fraud_reconciler.core.logging import get_logger, setup_logging
from fraud_reconciler.ingestion.card_source import load_cards
from fraud_reconciler.messaging.kafka_publisher import KafkaTransport
from fraud_reconciler.persistence.ticket_repository import TicketRepository
from fraud_reconciler.schemas.reconciliation import RunSummary
from fraud_reconciler.services.dispatch_service import DispatchController
from fraud_reconciler.services.progress import ProgressReporter, log_progress
from fraud_reconciler.services.reconciliation_service import RecordReconciler

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1


@dataclass
class Clients:
    """Run-scoped connection handles."""

    database: AsyncIOMotorDatabase
    transport: KafkaTransport


@asynccontextmanager
async def open_clients(settings: Settings) -> AsyncIterator[Clients]:
    """Connect store and transport for one run; always release both."""
    client = create_mongo_client(settings.mongo)
    transport = KafkaTransport(settings.kafka)
    try:
        database = await connect_database(client, settings.mongo)
        await transport.start()
        yield Clients(database=database, transport=transport)
    finally:
        try:
            await transport.stop()
        finally:
            close_mongo_client(client)
            logger.info("connections_closed")


async def reconcile_cards(
    cards: Sequence[str],
    settings: Settings,
    group_size: int | None = None,
    progress: ProgressReporter | None = None,
) -> RunSummary:
    """Open the clients and dispatch every card through the reconciler."""
    async with open_clients(settings) as clients:
        reconciler = RecordReconciler(
            repository=TicketRepository(clients.database, settings.mongo),
            transport=clients.transport,
            config=settings.reconciliation,
            destination=settings.kafka.topic_notifications,
            progress=progress,
        )
        controller = DispatchController(reconciler)
        return await controller.run(cards, group_size or settings.reconciliation.group_size)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile fraud tickets and publish approval notifications")
    parser.add_argument(
        "--cards-file",
        default=None,
        help="Card identifier list (.json array or one per line); defaults to RECONCILIATION_CARDS_FILE",
    )
    parser.add_argument(
        "--group-size",
        type=int,
        default=None,
        help="Cards reconciled concurrently per group; defaults to RECONCILIATION_GROUP_SIZE",
    )
    args = parser.parse_args(argv)
    if args.group_size is not None and args.group_size <= 0:
        parser.error("--group-size must be positive")
    return args


def main(argv: Sequence[str] | None = None) -> int:
    """Run the job and return the process exit status."""
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings)

    logger.info(
        "reconciliation_job_starting",
        app=settings.app.name,
        env=settings.app.env.value,
        version=settings.app.version,
    )

    progress = ProgressReporter()
    progress.subscribe(log_progress)

    try:
        cards = load_cards(args.cards_file or settings.reconciliation.cards_file)
        summary = asyncio.run(reconcile_cards(cards, settings, args.group_size, progress))
    except ReconciliationError as e:
        logger.error("reconciliation_aborted", error=e.message, details=e.details)
        return EXIT_ABORTED

    logger.info("run_summary", total=summary.total, **summary.model_dump(exclude={"failed_cards"}))
    if summary.failed_cards:
        logger.warning("cards_need_follow_up", cards=summary.failed_cards)
    return EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
