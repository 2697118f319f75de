"""Assessment stage: weighted scoring of a deal against an investor's assessment rules."""

from deal_board.models.deal import Deal
from deal_board.models.filters import InvestorFilterSet
from deal_board.models.results import AssessmentOutcome

from .operators import evaluate_rule


def assess(deal: Deal, filter_set: InvestorFilterSet) -> AssessmentOutcome:
    """
    Score = sum(weight * matched) / sum(weight) over the assessment rules.
    Passes when score >= the investor's passing threshold. With no assessment
    rules the score is undefined (None) and the deal passes.
    Pure: safe to call concurrently for any (deal, investor) pair.
    """
    threshold = filter_set.passing_threshold
    if not filter_set.assessment_rules:
        return AssessmentOutcome(score=None, passed=True, threshold=threshold)

    outcomes = [evaluate_rule(rule, deal) for rule in filter_set.assessment_rules]
    total_weight = sum(o.rule.weight or 0.0 for o in outcomes)
    matched_weight = sum(o.rule.weight or 0.0 for o in outcomes if o.matched)
    score = matched_weight / total_weight if total_weight else 0.0
    return AssessmentOutcome(
        score=round(score, 6),
        passed=score >= threshold,
        threshold=threshold,
        outcomes=outcomes,
    )
