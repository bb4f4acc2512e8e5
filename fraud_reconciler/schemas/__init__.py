"""Pydantic schemas for tickets, notifications and run outcomes."""

from fraud_reconciler.schemas.reconciliation import (
    OutcomeStatus,
    ReconcileOutcome,
    RunSummary,
)
from fraud_reconciler.schemas.ticket import (
    ApprovalNotification,
    FraudHistoryEntry,
    FraudTicket,
    TicketState,
)

__all__ = [
    "ApprovalNotification",
    "FraudHistoryEntry",
    "FraudTicket",
    "OutcomeStatus",
    "ReconcileOutcome",
    "RunSummary",
    "TicketState",
]
