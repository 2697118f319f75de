"""Deal status lifecycle: allowed transitions and reconciliation of per-investor verdicts."""

import logging
from typing import Iterable, Optional

from deal_board.errors import InvalidTransitionError
from deal_board.models.deal import DealStatus
from deal_board.models.results import MatchState

logger = logging.getLogger(__name__)

# Forward-only; needs_resubmission -> pending is reserved for applicant updates
_TRANSITIONS: dict[DealStatus, frozenset[DealStatus]] = {
    DealStatus.PENDING: frozenset(
        {
            DealStatus.UNDER_REVIEW,
            DealStatus.NEEDS_RESUBMISSION,
            DealStatus.APPROVED,
            DealStatus.REJECTED,
        }
    ),
    DealStatus.UNDER_REVIEW: frozenset(
        {DealStatus.NEEDS_RESUBMISSION, DealStatus.APPROVED, DealStatus.REJECTED}
    ),
    DealStatus.NEEDS_RESUBMISSION: frozenset({DealStatus.PENDING, DealStatus.REJECTED}),
    DealStatus.APPROVED: frozenset(),
    DealStatus.REJECTED: frozenset(),
}


def can_transition(current: DealStatus, target: DealStatus, *, applicant_update: bool = False) -> bool:
    """True if current -> target is allowed. Same status is always allowed (no-op)."""
    if current == target:
        return True
    if current == DealStatus.NEEDS_RESUBMISSION and target == DealStatus.PENDING:
        return applicant_update
    return target in _TRANSITIONS[current]


def advance_status(
    current: DealStatus,
    target: DealStatus,
    *,
    deal_id: str = "",
    applicant_update: bool = False,
) -> DealStatus:
    """Return target if the move is allowed, else raise InvalidTransitionError."""
    if not can_transition(current, target, applicant_update=applicant_update):
        raise InvalidTransitionError(
            f"Cannot move deal from {current.value} to {target.value}",
            context={"deal_id": deal_id},
        )
    return target


def reconcile_status(
    current: DealStatus,
    decisions: dict[str, MatchState],
    investors_with_risk_rules: Iterable[str],
) -> Optional[DealStatus]:
    """
    Collective verdict for a deal's global status from per-investor decisions.

    decisions maps investor id -> latest decision state for the current deal
    version. The deal goes to needs_resubmission only if at least one investor
    has risk rules, every such investor returned NEEDS_RESUBMISSION, and no
    investor has it VISIBLE. Otherwise an evaluated pending deal moves to
    under_review. Returns the new status, or None when nothing changes.
    """
    if current not in (DealStatus.PENDING, DealStatus.UNDER_REVIEW) or not decisions:
        return None

    risk_investors = set(investors_with_risk_rules)
    visible_anywhere = any(state == MatchState.VISIBLE for state in decisions.values())
    all_risk_decided = bool(risk_investors) and risk_investors.issubset(decisions)
    failed_everywhere = all_risk_decided and all(
        decisions[inv] == MatchState.NEEDS_RESUBMISSION for inv in risk_investors
    )

    if failed_everywhere and not visible_anywhere:
        return DealStatus.NEEDS_RESUBMISSION
    if current == DealStatus.PENDING:
        return DealStatus.UNDER_REVIEW
    return None
