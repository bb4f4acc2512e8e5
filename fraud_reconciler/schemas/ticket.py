"""Fraud ticket document schemas.

Documents come straight from the store, so every model keeps unknown
fields; the notification carries them through to the consumer.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class TicketState(str, Enum):
    """Known fraud ticket states. Stored values outside this set are kept as-is."""

    NEW = "new"
    QUARANTINE = "quarantine"
    UNDER_DISCUSSION = "under_discussion"
    RESOLVED = "resolved"


class FraudTicket(BaseModel):
    """Fraud ticket document (`ticketFraud` collection)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Any = Field(..., alias="_id")
    card: Any = None
    current_state: str = Field(..., alias="currentState")
    is_active: bool | None = Field(None, alias="isActive")

    _document: dict[str, Any] | None = PrivateAttr(default=None)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "FraudTicket":
        """Parse a stored document, keeping it verbatim for republishing."""
        ticket = cls.model_validate(document)
        ticket._document = dict(document)
        return ticket

    @property
    def is_resolved(self) -> bool:
        return self.current_state == TicketState.RESOLVED

    def to_document(self) -> dict[str, Any]:
        """Return the stored fields as read, or the fields that were set."""
        if self._document is not None:
            return dict(self._document)
        return self.model_dump(by_alias=True, exclude_unset=True)


class FraudHistoryEntry(BaseModel):
    """Ticket history entry (`fraudHistory` collection)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Any = Field(None, alias="_id")
    ticket_id: Any = Field(None, alias="ticketId")
    responsible: Any
    # Ordering is done by the store; stored values are not parsed
    date: Any = None


class ApprovalNotification(BaseModel):
    """Outbound notification built from an updated ticket snapshot."""

    ticket: FraudTicket
    is_automatic_approval: bool
    approved_by: Any
    status_changed: Literal[False] = False

    def to_message(self, action: str) -> dict[str, Any]:
        """Build the wire payload: action tag, ticket snapshot, approval fields."""
        return {
            "action": action,
            **self.ticket.to_document(),
            "_id": self.ticket.id,
            "isAutomaticApproval": self.is_automatic_approval,
            "approvedBy": self.approved_by,
            "statusChanged": self.status_changed,
        }
