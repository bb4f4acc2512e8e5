"""Fraud ticket repository using motor.

Collections: ticketFraud, fraudHistory
"""

import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from fraud_reconciler.core.config import MongoConfig

logger = logging.getLogger(__name__)

# Fields read by the card lookup; the full document is re-read by id
CARD_LOOKUP_PROJECTION = {"_id": 1, "card": 1, "currentState": 1, "isActive": 1}


class TicketRepository:
    """Repository for fraud ticket and ticket history data access."""

    def __init__(self, database: AsyncIOMotorDatabase, config: MongoConfig):
        self.tickets = database[config.ticket_collection]
        self.history = database[config.history_collection]

    async def find_by_card(self, card: str) -> dict[str, Any] | None:
        """Find the ticket referencing a card (partial view)."""
        return await self.tickets.find_one(
            {"card.id": str(card)},
            projection=CARD_LOOKUP_PROJECTION,
        )

    async def get_by_id(self, ticket_id: Any) -> dict[str, Any] | None:
        """Get the full ticket document by its identifier."""
        return await self.tickets.find_one({"_id": ticket_id})

    async def confirm_state(self, ticket_id: Any, patch: dict[str, Any]) -> dict[str, Any] | None:
        """Apply a partial-field patch and return the post-update document.

        Returns None when the ticket no longer exists.
        """
        return await self.tickets.find_one_and_update(
            {"_id": ticket_id},
            {"$set": patch},
            return_document=ReturnDocument.AFTER,
        )

    async def latest_history_entry(self, ticket_id: Any) -> dict[str, Any] | None:
        """Get the most recent history entry for a ticket."""
        return await self.history.find_one(
            {"ticketId": ticket_id},
            sort=[("date", DESCENDING)],
        )
