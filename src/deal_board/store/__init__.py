"""Local storage for deals, filter sets, evaluation results and views."""

from deal_board.store.catalog import DealCatalog
from deal_board.store.evaluation_log import EvaluationLog, results_from_outcome
from deal_board.store.filter_store import FilterRuleStore
from deal_board.store.view_store import OpportunityViewStore

__all__ = [
    "DealCatalog",
    "EvaluationLog",
    "FilterRuleStore",
    "OpportunityViewStore",
    "results_from_outcome",
]
