"""Resubmission feedback events."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ResubmissionEvent(BaseModel):
    """
    Emitted when a deal fails an investor's risk rules.
    investor_id and reasons are internal context; the applicant only sees
    applicant_payload().
    """

    deal_id: str
    deal_version: int = 1
    investor_id: str
    failing_dimensions: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def applicant_payload(self) -> dict:
        """Applicant-facing view: no investor identity, no thresholds."""
        return {
            "deal_id": self.deal_id,
            "failing_dimensions": list(self.failing_dimensions),
            "timestamp": self.timestamp.isoformat(),
        }
