"""
Domain-specific exceptions for the reconciliation job.

Per-card errors are converted into failed outcomes by the reconciler;
connection-level errors abort the whole run.
"""

from typing import Any


class ReconciliationError(Exception):
    """Base exception for all reconciliation errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class TicketNotFoundError(ReconciliationError):
    """
    Raised when no fraud ticket references a card.

    The card is skipped and never retried.
    """

    pass


class IntegrityFaultError(ReconciliationError):
    """
    Raised when stored data breaks an expected invariant.

    Examples:
    - Ticket has no history entry
    - Ticket vanished between the read and the update
    """

    pass


class TransportFailureError(ReconciliationError):
    """Raised when a publish exhausts its attempt budget."""

    pass


class StoreUnavailableError(ReconciliationError):
    """Raised when the document store cannot be reached at startup."""

    pass


class TransportUnavailableError(ReconciliationError):
    """Raised when the message transport cannot be started."""

    pass


class CardSourceError(ReconciliationError):
    """Raised when the card identifier list cannot be loaded."""

    pass


NOT_FOUND = "NOT_FOUND"
INTEGRITY_FAULT = "INTEGRITY_FAULT"
TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
UNCLASSIFIED_FAILURE = "UNCLASSIFIED_FAILURE"

ERROR_REASON_MAP = {
    TicketNotFoundError: NOT_FOUND,
    IntegrityFaultError: INTEGRITY_FAULT,
    TransportFailureError: TRANSPORT_FAILURE,
}


def get_reason_code(error: Exception) -> str:
    """
    Get the outcome reason code for a given exception.

    Args:
        error: The exception instance

    Returns:
        Reason code (defaults to UNCLASSIFIED_FAILURE for unknown errors)
    """
    return ERROR_REASON_MAP.get(type(error), UNCLASSIFIED_FAILURE)
