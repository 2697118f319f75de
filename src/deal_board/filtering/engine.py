"""Matching orchestrator: runs one deal through assessment -> risk -> visibility for one investor."""

import logging

from deal_board.models.deal import Deal, DealStatus
from deal_board.models.filters import InvestorFilterSet
from deal_board.models.results import MatchOutcome, MatchState

from .assessment import assess
from .risk import check_risk

logger = logging.getLogger(__name__)


class MatchingEngine:
    """
    Per-investor state machine over deals.

    INGESTED -> ASSESSED -> RISK_CHECKED -> VISIBLE, with side exits
    REJECTED (status rejected, before any evaluation), NOT_MATCHED
    (assessment failed; silent) and NEEDS_RESUBMISSION (risk failed).
    Holds no mutable state: one engine can serve many threads.
    """

    def __init__(self, filter_set: InvestorFilterSet):
        self.filter_set = filter_set

    def match(self, deal: Deal) -> MatchOutcome:
        """Run the state machine once for (deal, investor)."""
        fs = self.filter_set
        path = [MatchState.INGESTED]

        def _finish(state: MatchState, **kwargs) -> MatchOutcome:
            if path[-1] != state:
                path.append(state)
            return MatchOutcome(
                deal_id=deal.id,
                investor_id=fs.investor_id,
                state=state,
                path=list(path),
                filter_set_version=fs.version,
                deal_version=deal.version,
                submitted_date=deal.submitted_date,
                **kwargs,
            )

        if deal.status == DealStatus.REJECTED:
            return _finish(MatchState.REJECTED)

        assessment = assess(deal, fs)
        path.append(MatchState.ASSESSED)
        if not assessment.passed:
            return _finish(MatchState.NOT_MATCHED, score=assessment.score, assessment=assessment)

        risk = check_risk(deal, fs)
        path.append(MatchState.RISK_CHECKED)
        if not risk.passed:
            logger.debug(
                "Deal %s failed risk for investor %s: %s", deal.id, fs.investor_id, risk.reasons
            )
            return _finish(
                MatchState.NEEDS_RESUBMISSION,
                score=assessment.score,
                assessment=assessment,
                risk=risk,
            )

        return _finish(MatchState.VISIBLE, score=assessment.score, assessment=assessment, risk=risk)

    def match_many(self, deals: list[Deal]) -> list[MatchOutcome]:
        """Match multiple deals; returns one outcome per deal."""
        return [self.match(d) for d in deals]

    def visible(self, deals: list[Deal]) -> list[MatchOutcome]:
        """Match and return only the outcomes that ended VISIBLE."""
        return [o for o in self.match_many(deals) if o.visible]
