"""Assessment and risk evaluators and the matching state machine."""

from .assessment import assess
from .engine import MatchingEngine
from .operators import evaluate_rule
from .risk import check_risk

__all__ = ["MatchingEngine", "assess", "check_risk", "evaluate_rule"]
