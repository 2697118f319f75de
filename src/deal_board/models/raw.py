"""Deal record as delivered by a source, before normalization."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RawDeal(BaseModel):
    """
    Untyped platform record. Field names follow the applicant platform
    (financial_data may be a JSON string or an object).
    """

    model_config = ConfigDict(extra="allow")

    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def record_id(self) -> str:
        """Stripped deal id, '' when the record has none."""
        return str(self.data.get("id") or "").strip()
