"""Group-sequential, intra-group concurrent dispatch of card reconciliations."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from fraud_reconciler.core.errors import UNCLASSIFIED_FAILURE
from fraud_reconciler.schemas.reconciliation import ReconcileOutcome, RunSummary
from fraud_reconciler.services.batching import chunk
from fraud_reconciler.services.reconciliation_service import RecordReconciler

logger = logging.getLogger(__name__)


class DispatchController:
    """Drives card groups through the reconciler.

    Cards in a group run concurrently; the next group starts only after every
    card in the current one has settled, so at most `group_size` reconciliations
    are in flight.
    """

    def __init__(self, reconciler: RecordReconciler):
        self.reconciler = reconciler

    async def run(self, cards: Sequence[Any], group_size: int) -> RunSummary:
        """Reconcile every card and return the outcome counts."""
        groups = chunk(cards, group_size)
        summary = RunSummary()

        logger.info(
            f"Starting reconciliation of {len(cards)} cards in {len(groups)} groups",
            extra={"cards": len(cards), "groups": len(groups), "group_size": group_size},
        )

        for index, group in enumerate(groups, start=1):
            logger.info(
                f"Processing group {index}/{len(groups)} of {len(group)} cards",
                extra={"group": index, "group_cards": len(group)},
            )
            for outcome in await self._run_group(group):
                summary.record(outcome)
            summary.groups += 1

        logger.info(
            "Reconciliation finished",
            extra={
                "processed": summary.processed,
                "skipped_not_found": summary.skipped_not_found,
                "failed": summary.failed,
                "total": summary.total,
            },
        )
        return summary

    async def _run_group(self, group: list[Any]) -> list[ReconcileOutcome]:
        results = await asyncio.gather(
            *(self.reconciler.reconcile(card) for card in group),
            return_exceptions=True,
        )
        outcomes = []
        for card, result in zip(group, results):
            if isinstance(result, BaseException):
                # reconcile() converts its own errors; this only catches escapes
                logger.error(
                    f"Unhandled error reconciling card {card}: {result}",
                    extra={"card": str(card), "error": str(result)},
                )
                result = ReconcileOutcome.failed(str(card), UNCLASSIFIED_FAILURE, str(result))
            outcomes.append(result)
        return outcomes
