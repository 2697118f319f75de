"""Deal record submitted by a funding applicant."""

from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class DealStatus(str, Enum):
    """Applicant-global lifecycle status of a deal."""

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    NEEDS_RESUBMISSION = "needs_resubmission"
    APPROVED = "approved"
    REJECTED = "rejected"


# Attributes a filter rule may reference directly on the deal
NUMERIC_DIMENSIONS: tuple[str, ...] = (
    "funding_amount",
    "investment_period_months",
    "revenue_share_ratio",
    "daily_revenue",
    "monthly_revenue",
    "annual_revenue",
    "gross_margin",
    "net_margin",
    "irr_estimate",
)
TEXT_DIMENSIONS: tuple[str, ...] = (
    "industry",
    "industry_sub",
    "region",
    "city",
    "cashflow_frequency",
)


class Deal(BaseModel):
    """
    Canonical deal record in the catalog.
    Facts are replaced only through an applicant resubmission (version bump);
    status moves through lifecycle.advance_status.
    """

    id: str = Field(..., description="Deal id, e.g. 'DGT-2026-001'")
    company_name: str = ""
    industry: Optional[str] = Field(default=None, description="catering | retail | service | ...")
    industry_sub: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    main_business: Optional[str] = None

    funding_amount: Optional[float] = Field(default=None, description="Requested amount, 10k CNY")
    funding_purpose: Optional[str] = None
    investment_period_months: Optional[int] = None
    revenue_share_ratio: Optional[float] = Field(default=None, ge=0, le=1)
    cashflow_frequency: Optional[str] = Field(default=None, description="daily | weekly | monthly")

    daily_revenue: Optional[float] = None
    monthly_revenue: Optional[float] = None
    annual_revenue: Optional[float] = None
    gross_margin: Optional[float] = None
    net_margin: Optional[float] = None
    irr_estimate: Optional[float] = None

    status: DealStatus = DealStatus.PENDING
    submitted_date: date
    version: int = Field(default=1, ge=1, description="Bumped on every applicant resubmission")
    revision: int = Field(default=0, description="Catalog revision of the last write")

    def dimension_value(self, dimension: str) -> Any:
        """Value a rule sees for `dimension`; None when the deal does not carry it."""
        if dimension not in NUMERIC_DIMENSIONS and dimension not in TEXT_DIMENSIONS:
            return None
        return getattr(self, dimension)

    def changed_dimensions(self, other: "Deal") -> set[str]:
        """Rule-visible dimensions whose value differs between self and other."""
        return {
            dim
            for dim in NUMERIC_DIMENSIONS + TEXT_DIMENSIONS
            if getattr(self, dim) != getattr(other, dim)
        }
