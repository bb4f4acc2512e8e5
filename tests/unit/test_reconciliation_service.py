"""Unit tests for RecordReconciler."""

from unittest.mock import AsyncMock

import pytest
from aiokafka.errors import KafkaConnectionError, KafkaTimeoutError
from bson import ObjectId

from fraud_reconciler.schemas.reconciliation import OutcomeStatus
from fraud_reconciler.schemas.ticket import FraudTicket
from fraud_reconciler.services.reconciliation_service import RecordReconciler
from tests.utils.fakes import (
    ACTION,
    ANALYST_ID,
    DESTINATION,
    SYSTEM_ACTOR,
    make_history,
    make_ticket,
    sent_messages,
)


def _seed(repository, card: str, state: str, responsible="ticketProcessor", **ticket_fields):
    ticket = make_ticket(card, state, **ticket_fields)
    repository.tickets[ticket["_id"]] = ticket
    repository.history.append(make_history(ticket["_id"], responsible))
    return ticket


class TestReconcileProcessed:
    """Test the successful reconciliation path."""

    @pytest.mark.asyncio
    async def test_quarantine_ticket_approved_by_processor(self, reconciler, repository, producer):
        """Test the documented example: quarantine -> under_discussion by the processor."""
        ticket = _seed(repository, "C1", "under_discussion", is_active=True)
        repository.previous_overrides[ticket["_id"]] = {**ticket, "currentState": "quarantine"}

        outcome = await reconciler.reconcile("C1")

        assert outcome.status == OutcomeStatus.PROCESSED
        assert outcome.is_automatic_approval is True
        [message] = sent_messages(producer)
        assert message["action"] == ACTION
        assert message["_id"] == str(ticket["_id"])
        assert message["currentState"] == "under_discussion"
        assert message["isActive"] is True
        assert message["isAutomaticApproval"] is True
        assert message["approvedBy"] == SYSTEM_ACTOR
        assert message["statusChanged"] is False

    @pytest.mark.asyncio
    async def test_publishes_to_configured_destination_with_ticket_key(self, reconciler, repository, producer):
        """Test destination and message key."""
        ticket = _seed(repository, "C2", "new")

        await reconciler.reconcile("C2")

        call = producer.send_and_wait.call_args
        assert call.args[0] == DESTINATION
        assert call.kwargs["key"] == str(ticket["_id"]).encode("utf-8")

    @pytest.mark.asyncio
    async def test_other_ticket_fields_carried_through(self, reconciler, repository, producer):
        """Test fields outside the model reach the consumer unchanged."""
        _seed(repository, "C3", "new", amount=120, merchant="ACME")

        await reconciler.reconcile("C3")

        [message] = sent_messages(producer)
        assert message["amount"] == 120
        assert message["merchant"] == "ACME"
        assert message["card"] == {"id": "C3", "last4": "C3"}

    @pytest.mark.asyncio
    async def test_responsible_actor_passes_through(self, reconciler, repository, producer):
        """Test a non-sentinel responsible value is used as approvedBy unchanged."""
        _seed(repository, "C4", "under_discussion", responsible=ANALYST_ID)

        await reconciler.reconcile("C4")

        [message] = sent_messages(producer)
        assert message["approvedBy"] == str(ANALYST_ID)

    @pytest.mark.asyncio
    async def test_most_recent_history_entry_wins(self, reconciler, repository, producer):
        """Test only the latest history entry by date is used."""
        ticket = _seed(repository, "C5", "under_discussion", responsible=ANALYST_ID)
        repository.history.append(make_history(ticket["_id"], "ticketProcessor", minutes=30))
        repository.history.append(make_history(ticket["_id"], str(ObjectId()), minutes=-30))

        await reconciler.reconcile("C5")

        [message] = sent_messages(producer)
        assert message["approvedBy"] == SYSTEM_ACTOR

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prior_active", [True, False])
    async def test_resolved_ticket_deactivated(self, reconciler, repository, producer, prior_active):
        """Test resolved tickets publish isActive=false whatever the prior value."""
        ticket = _seed(repository, "C6", "resolved", is_active=prior_active)

        outcome = await reconciler.reconcile("C6")

        assert outcome.status == OutcomeStatus.PROCESSED
        assert repository.patches == [(ticket["_id"], {"currentState": "resolved", "isActive": False})]
        [message] = sent_messages(producer)
        assert message["isActive"] is False
        assert message["isAutomaticApproval"] is False

    @pytest.mark.asyncio
    async def test_unresolved_ticket_keeps_active_flag(self, reconciler, repository, producer):
        """Test the confirmation write leaves isActive alone for open tickets."""
        ticket = _seed(repository, "C7", "quarantine", is_active=False)

        await reconciler.reconcile("C7")

        assert repository.patches == [(ticket["_id"], {"currentState": "quarantine"})]
        [message] = sent_messages(producer)
        assert message["isActive"] is False

    @pytest.mark.asyncio
    async def test_progress_notified_on_success(self, reconciler, repository, progress):
        """Test a completion message is emitted per processed card."""
        received: list[str] = []
        progress.subscribe(received.append)
        _seed(repository, "C8", "new")

        await reconciler.reconcile("C8")

        assert received == ["Card C8 processed successfully"]

    @pytest.mark.asyncio
    async def test_failing_progress_subscriber_does_not_fail_card(self, reconciler, repository, progress):
        """Test progress errors never affect the outcome."""

        def broken(message: str) -> None:
            raise RuntimeError("sink down")

        progress.subscribe(broken)
        _seed(repository, "C9", "new")

        outcome = await reconciler.reconcile("C9")

        assert outcome.status == OutcomeStatus.PROCESSED

    @pytest.mark.asyncio
    async def test_numeric_card_identifier(self, reconciler, repository):
        """Test card identifiers are looked up by their string form."""
        _seed(repository, "4242", "new")

        outcome = await reconciler.reconcile(4242)

        assert outcome.status == OutcomeStatus.PROCESSED
        assert outcome.card == "4242"


    @pytest.mark.asyncio
    async def test_unparseable_history_date_ignored(self, reconciler, repository, producer):
        """Test a history date the model cannot parse does not fail the card."""
        ticket = make_ticket("C10", "under_discussion")
        repository.tickets[ticket["_id"]] = ticket
        repository.history.append(
            {"_id": ObjectId(), "ticketId": ticket["_id"], "responsible": ANALYST_ID, "date": "23/10/2024 12:00"}
        )

        outcome = await reconciler.reconcile("C10")

        assert outcome.status == OutcomeStatus.PROCESSED
        [message] = sent_messages(producer)
        assert message["approvedBy"] == str(ANALYST_ID)

    @pytest.mark.asyncio
    async def test_stored_fields_published_verbatim(self, reconciler, repository, producer):
        """Test absent and loosely typed fields are published as stored."""
        ticket = make_ticket("C11", "new")
        del ticket["isActive"]
        ticket["flagged"] = 1
        repository.tickets[ticket["_id"]] = ticket
        repository.history.append(make_history(ticket["_id"], "ticketProcessor"))

        await reconciler.reconcile("C11")

        [message] = sent_messages(producer)
        assert "isActive" not in message
        assert message["flagged"] == 1


class TestReconcileSkipped:
    """Test cards without tickets."""

    @pytest.mark.asyncio
    async def test_missing_ticket_skipped_without_publish(self, reconciler, producer, caplog):
        """Test a card absent from the store is skipped and nothing is sent."""
        with caplog.at_level("WARNING"):
            outcome = await reconciler.reconcile("UNKNOWN")

        assert outcome.status == OutcomeStatus.SKIPPED_NOT_FOUND
        assert outcome.card == "UNKNOWN"
        producer.send_and_wait.assert_not_called()
        assert "UNKNOWN" in caplog.text


class TestReconcileFailed:
    """Test per-card failure conversion."""

    @pytest.mark.asyncio
    async def test_no_history_entry_is_integrity_fault(self, reconciler, repository, producer):
        """Test a ticket with zero history entries fails and publishes nothing."""
        ticket = make_ticket("F1", "new")
        repository.tickets[ticket["_id"]] = ticket

        outcome = await reconciler.reconcile("F1")

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason_code == "INTEGRITY_FAULT"
        producer.send_and_wait.assert_not_called()

    @pytest.mark.asyncio
    async def test_ticket_deleted_before_update(self, reconciler, repository, producer):
        """Test a ticket vanishing at update time fails."""
        ticket = _seed(repository, "F2", "new")
        repository.delete_before_update.add(ticket["_id"])

        outcome = await reconciler.reconcile("F2")

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason_code == "INTEGRITY_FAULT"
        producer.send_and_wait.assert_not_called()

    @pytest.mark.asyncio
    async def test_transport_exhaustion(self, reconciler, repository, producer):
        """Test a publish failing every attempt yields TRANSPORT_FAILURE."""
        _seed(repository, "F3", "new")
        producer.send_and_wait.side_effect = KafkaTimeoutError()

        outcome = await reconciler.reconcile("F3")

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason_code == "TRANSPORT_FAILURE"
        assert producer.send_and_wait.await_count == 3

    @pytest.mark.asyncio
    async def test_transport_recovers_within_budget(self, reconciler, repository, producer):
        """Test a transient publish error is retried."""
        _seed(repository, "F4", "new")
        producer.send_and_wait.side_effect = [KafkaConnectionError(), None]

        outcome = await reconciler.reconcile("F4")

        assert outcome.status == OutcomeStatus.PROCESSED
        assert producer.send_and_wait.await_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_store_error(self, reconciler, repository, producer):
        """Test any other exception is caught and classified as unclassified."""
        repository.find_by_card = AsyncMock(side_effect=RuntimeError("cursor died"))

        outcome = await reconciler.reconcile("F5")

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason_code == "UNCLASSIFIED_FAILURE"
        assert "cursor died" in outcome.message

    @pytest.mark.asyncio
    async def test_failure_logged_with_card(self, reconciler, repository, caplog):
        """Test failures are logged with the card identifier."""
        ticket = make_ticket("F6", "new")
        repository.tickets[ticket["_id"]] = ticket

        with caplog.at_level("ERROR"):
            await reconciler.reconcile("F6")

        assert "F6" in caplog.text

    @pytest.mark.asyncio
    async def test_no_progress_on_failure(self, reconciler, repository, progress):
        """Test failed cards emit no completion message."""
        received: list[str] = []
        progress.subscribe(received.append)
        ticket = make_ticket("F7", "new")
        repository.tickets[ticket["_id"]] = ticket

        await reconciler.reconcile("F7")

        assert received == []


class TestReconcilerHelpers:
    """Test patch building and approver resolution."""

    def test_build_patch_resolved(self):
        """Test resolved tickets get deactivated."""
        ticket = FraudTicket.model_validate({"_id": 1, "currentState": "resolved", "isActive": True})
        assert RecordReconciler.build_patch(ticket) == {"currentState": "resolved", "isActive": False}

    def test_build_patch_open(self):
        """Test open tickets only confirm their state."""
        ticket = FraudTicket.model_validate({"_id": 1, "currentState": "new", "isActive": True})
        assert RecordReconciler.build_patch(ticket) == {"currentState": "new"}

    @pytest.mark.asyncio
    async def test_resolve_approver(self, reconciler):
        """Test sentinel mapping and pass-through."""
        assert reconciler.resolve_approver("ticketProcessor") == ObjectId(SYSTEM_ACTOR)
        assert reconciler.resolve_approver(ANALYST_ID) is ANALYST_ID
        assert reconciler.resolve_approver("analyst-7") == "analyst-7"
