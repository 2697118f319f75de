"""Evaluation outcomes, evaluation log records and opportunity views."""

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from deal_board.models.filters import FilterRule


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RuleOutcome(BaseModel):
    """Result of one rule against one deal."""

    rule: FilterRule
    matched: bool
    reason: str
    missing: bool = Field(default=False, description="Deal had no value for the dimension")


class AssessmentOutcome(BaseModel):
    """Weighted score of a deal against an investor's assessment rules."""

    score: Optional[float] = Field(default=None, description="None when there are no assessment rules")
    passed: bool
    threshold: float
    outcomes: list[RuleOutcome] = Field(default_factory=list)


class RiskOutcome(BaseModel):
    """Conjunctive risk check; failures holds every failing rule, not just the first."""

    passed: bool
    failures: list[RuleOutcome] = Field(default_factory=list)

    @property
    def reasons(self) -> list[str]:
        return [f.reason for f in self.failures]

    @property
    def failing_dimensions(self) -> list[str]:
        """Distinct failing dimensions in rule order."""
        return list(dict.fromkeys(f.rule.dimension for f in self.failures))


class MatchState(str, Enum):
    """Per (deal, investor) matching states."""

    INGESTED = "ingested"
    ASSESSED = "assessed"
    RISK_CHECKED = "risk_checked"
    VISIBLE = "visible"
    REJECTED = "rejected"
    NOT_MATCHED = "not_matched"
    NEEDS_RESUBMISSION = "needs_resubmission"


class MatchOutcome(BaseModel):
    """Terminal state of one run of the matching state machine."""

    deal_id: str
    investor_id: str
    state: MatchState
    path: list[MatchState] = Field(default_factory=list, description="States visited, in order")
    score: Optional[float] = None
    assessment: Optional[AssessmentOutcome] = None
    risk: Optional[RiskOutcome] = None
    filter_set_version: int
    deal_version: int
    submitted_date: date

    @property
    def visible(self) -> bool:
        return self.state == MatchState.VISIBLE


class EvaluationStage(str, Enum):
    ASSESSMENT = "assessment"
    RISK = "risk"
    DECISION = "decision"


class EvaluationResult(BaseModel):
    """Append-only evaluation record, tagged with the filter-set version it used."""

    id: Optional[int] = None
    run_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex, description="Shared by the records of one matching run"
    )
    deal_id: str
    investor_id: str
    stage: EvaluationStage
    passed: Optional[bool] = None
    score: Optional[float] = None
    state: Optional[MatchState] = Field(default=None, description="Final state; decision stage only")
    reasons: list[str] = Field(default_factory=list)
    filter_set_version: int
    deal_version: int
    evaluated_at: datetime = Field(default_factory=_utcnow)

    def is_stale(self, current_filter_set_version: int, current_deal_version: int) -> bool:
        """True if either the rules or the deal moved on since this was computed."""
        return (
            self.filter_set_version < current_filter_set_version
            or self.deal_version < current_deal_version
        )


class ViewEntry(BaseModel):
    deal_id: str
    score: Optional[float] = None
    submitted_date: date


def view_sort_key(entry: ViewEntry) -> tuple:
    """Score descending, then oldest submission first; unscored entries sort by date only."""
    return (-(entry.score or 0.0), entry.submitted_date, entry.deal_id)


class OpportunityView(BaseModel):
    """Materialized, ordered set of deals visible to one investor."""

    investor_id: str
    filter_set_version: int
    catalog_revision: int = 0
    entries: list[ViewEntry] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utcnow)

    @property
    def deal_ids(self) -> list[str]:
        return [e.deal_id for e in self.entries]


class OpportunityPage(BaseModel):
    """One page of an investor's opportunity view."""

    investor_id: str
    filter_set_version: int
    page: int
    page_size: int
    total: int
    entries: list[ViewEntry] = Field(default_factory=list)
    generated_at: Optional[datetime] = None
