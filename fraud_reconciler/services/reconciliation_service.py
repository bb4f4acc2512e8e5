"""Per-card fraud ticket reconciliation.

For one card: fetch the ticket, confirm its state, resolve who approved the
last change, classify the transition and publish an approval notification.
"""

import logging
from typing import Any

from bson import ObjectId

from fraud_reconciler.core.config import ReconciliationConfig
from fraud_reconciler.core.errors import (
    INTEGRITY_FAULT,
    TRANSPORT_FAILURE,
    IntegrityFaultError,
    TicketNotFoundError,
    get_reason_code,
)
from fraud_reconciler.messaging.kafka_publisher import KafkaTransport
from fraud_reconciler.persistence.ticket_repository import TicketRepository
from fraud_reconciler.schemas.reconciliation import ReconcileOutcome
from fraud_reconciler.schemas.ticket import (
    ApprovalNotification,
    FraudHistoryEntry,
    FraudTicket,
)
from fraud_reconciler.services.approval_classifier import is_automatic_approval
from fraud_reconciler.services.progress import ProgressReporter

logger = logging.getLogger(__name__)


class RecordReconciler:
    """Reconciles one card at a time; never raises for per-card errors."""

    def __init__(
        self,
        repository: TicketRepository,
        transport: KafkaTransport,
        config: ReconciliationConfig,
        destination: str,
        progress: ProgressReporter | None = None,
        max_attempts: int | None = None,
    ):
        self.repository = repository
        self.transport = transport
        self.config = config
        self.destination = destination
        self.progress = progress or ProgressReporter()
        self.max_attempts = max_attempts
        self.system_actor_id = ObjectId(config.system_actor_id)

    async def reconcile(self, card: Any) -> ReconcileOutcome:
        """Run the full read-update-classify-publish sequence for a card."""
        card_id = str(card)
        logger.info(f"Processing card {card_id}", extra={"card": card_id})

        try:
            notification = await self._build_notification(card_id)
            await self._publish(notification)
        except TicketNotFoundError:
            logger.warning(f"Ticket not found for card {card_id}", extra={"card": card_id})
            return ReconcileOutcome.skipped_not_found(card_id)
        except Exception as e:
            reason_code = get_reason_code(e)
            logger.error(
                f"Failed to process card {card_id}: {e}",
                extra={"card": card_id, "reason_code": reason_code, "error": str(e)},
                exc_info=reason_code not in (INTEGRITY_FAULT, TRANSPORT_FAILURE),
            )
            return ReconcileOutcome.failed(card_id, reason_code, str(e))

        self.progress.emit(f"Card {card_id} processed successfully")
        return ReconcileOutcome.processed(card_id, notification.is_automatic_approval)

    async def _build_notification(self, card_id: str) -> ApprovalNotification:
        found = await self.repository.find_by_card(card_id)
        if found is None:
            raise TicketNotFoundError("No fraud ticket for card", details={"card": card_id})
        ticket = FraudTicket.from_document(found)

        # Authoritative pre-mutation snapshot for the classifier
        previous_doc = await self.repository.get_by_id(ticket.id)
        if previous_doc is None:
            raise IntegrityFaultError(
                "Ticket disappeared after card lookup",
                details={"card": card_id, "ticket_id": str(ticket.id)},
            )
        previous = FraudTicket.from_document(previous_doc)

        updated_doc = await self.repository.confirm_state(ticket.id, self.build_patch(ticket))
        if updated_doc is None:
            raise IntegrityFaultError(
                "Ticket deleted before update",
                details={"card": card_id, "ticket_id": str(ticket.id)},
            )
        updated = FraudTicket.from_document(updated_doc)
        logger.debug("Ticket updated", extra={"card": card_id, "ticket_card": updated.card})

        entry_doc = await self.repository.latest_history_entry(ticket.id)
        if entry_doc is None:
            raise IntegrityFaultError(
                "Ticket has no history entry",
                details={"card": card_id, "ticket_id": str(ticket.id)},
            )
        entry = FraudHistoryEntry.model_validate(entry_doc)
        logger.debug("Responsible resolved", extra={"card": card_id, "responsible": entry.responsible})

        return ApprovalNotification(
            ticket=updated,
            is_automatic_approval=is_automatic_approval(previous, updated),
            approved_by=self.resolve_approver(entry.responsible),
        )

    @staticmethod
    def build_patch(ticket: FraudTicket) -> dict[str, Any]:
        """Confirmation write: same state, deactivated once resolved."""
        patch: dict[str, Any] = {"currentState": ticket.current_state}
        if ticket.is_resolved:
            patch["isActive"] = False
        return patch

    def resolve_approver(self, responsible: Any) -> Any:
        """Map the processor sentinel to the system actor; pass anything else through."""
        if responsible == self.config.processor_sentinel:
            return self.system_actor_id
        return responsible

    async def _publish(self, notification: ApprovalNotification) -> None:
        message = notification.to_message(self.config.action)
        async with self.transport.publisher(confirm=True, max_attempts=self.max_attempts) as pub:
            await pub.send(self.destination, message, key=str(notification.ticket.id))
