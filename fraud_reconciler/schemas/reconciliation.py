"""Per-card outcome and run summary schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class OutcomeStatus(str, Enum):
    """Result of reconciling one card."""

    PROCESSED = "PROCESSED"
    SKIPPED_NOT_FOUND = "SKIPPED_NOT_FOUND"
    FAILED = "FAILED"


class ReconcileOutcome(BaseModel):
    """Outcome of a single card reconciliation."""

    card: str
    status: OutcomeStatus
    reason_code: str | None = None
    message: str | None = None
    is_automatic_approval: bool | None = None

    @classmethod
    def processed(cls, card: str, is_automatic_approval: bool) -> "ReconcileOutcome":
        return cls(
            card=card,
            status=OutcomeStatus.PROCESSED,
            is_automatic_approval=is_automatic_approval,
        )

    @classmethod
    def skipped_not_found(cls, card: str) -> "ReconcileOutcome":
        return cls(card=card, status=OutcomeStatus.SKIPPED_NOT_FOUND)

    @classmethod
    def failed(cls, card: str, reason_code: str, message: str) -> "ReconcileOutcome":
        return cls(
            card=card,
            status=OutcomeStatus.FAILED,
            reason_code=reason_code,
            message=message,
        )


class RunSummary(BaseModel):
    """Outcome counts for one dispatch run."""

    processed: int = Field(0, description="Cards reconciled and published")
    skipped_not_found: int = Field(0, description="Cards with no fraud ticket")
    failed: int = Field(0, description="Cards whose reconciliation failed")
    groups: int = Field(0, description="Number of groups executed")
    failed_cards: list[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.processed + self.skipped_not_found + self.failed

    def record(self, outcome: ReconcileOutcome) -> None:
        """Accumulate one card outcome."""
        if outcome.status == OutcomeStatus.PROCESSED:
            self.processed += 1
        elif outcome.status == OutcomeStatus.SKIPPED_NOT_FOUND:
            self.skipped_not_found += 1
        else:
            self.failed += 1
            self.failed_cards.append(outcome.card)
