"""Risk stage: conjunctive pass/fail check collecting every failing rule."""

from deal_board.models.deal import Deal
from deal_board.models.filters import InvestorFilterSet
from deal_board.models.results import RiskOutcome

from .operators import evaluate_rule


def check_risk(deal: Deal, filter_set: InvestorFilterSet) -> RiskOutcome:
    """Deal must satisfy every risk rule. Does not short-circuit so feedback lists all failures."""
    outcomes = [evaluate_rule(rule, deal) for rule in filter_set.risk_rules]
    failures = [o for o in outcomes if not o.matched]
    return RiskOutcome(passed=not failures, failures=failures)
