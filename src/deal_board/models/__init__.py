"""Data models for deals, filter sets, evaluation results and views."""

from deal_board.models.deal import Deal, DealStatus
from deal_board.models.events import ResubmissionEvent
from deal_board.models.filters import FilterRule, InvestorFilterSet, Operator, RuleKind, build_filter_set
from deal_board.models.raw import RawDeal
from deal_board.models.results import (
    EvaluationResult,
    EvaluationStage,
    MatchOutcome,
    MatchState,
    OpportunityPage,
    OpportunityView,
    ViewEntry,
)

__all__ = [
    "Deal",
    "DealStatus",
    "EvaluationResult",
    "EvaluationStage",
    "FilterRule",
    "InvestorFilterSet",
    "MatchOutcome",
    "MatchState",
    "Operator",
    "OpportunityPage",
    "OpportunityView",
    "RawDeal",
    "ResubmissionEvent",
    "RuleKind",
    "ViewEntry",
    "build_filter_set",
]
