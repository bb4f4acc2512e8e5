"""Automatic approval decision rule."""

from fraud_reconciler.schemas.ticket import FraudTicket, TicketState

# States from which a move to under_discussion needs no human sign-off
AUTO_APPROVAL_SOURCE_STATES = (TicketState.NEW, TicketState.QUARANTINE)


def is_automatic_approval(previous: FraudTicket, updated: FraudTicket) -> bool:
    """Return True iff the ticket moved from new/quarantine to under_discussion."""
    return (
        previous.current_state in AUTO_APPROVAL_SOURCE_STATES
        and updated.current_state == TicketState.UNDER_DISCUSSION
    )
