"""Rule operators: one dispatch over the Operator enum; each returns (matched, explanation)."""

from typing import Any

from deal_board.models.deal import Deal
from deal_board.models.filters import FilterRule, Operator, format_value, is_number
from deal_board.models.results import RuleOutcome


def _normalize_for_match(value: Any) -> Any:
    """Lowercase and strip strings so set/equality checks ignore case; numbers pass through."""
    if isinstance(value, str):
        return value.lower().strip()
    return value


def _in_list(value: Any, items: list) -> bool:
    target = _normalize_for_match(value)
    return any(_normalize_for_match(item) == target for item in items)


def _compare(op: Operator, value: Any, threshold: Any) -> tuple[bool, str]:
    """Apply op to a present value. Explanation reads 'value <op-result> threshold'."""
    shown = format_value(value)
    if op in (Operator.GTE, Operator.LTE, Operator.IN_RANGE) and not is_number(value):
        return False, f"{shown!r} is not numeric"

    if op == Operator.GTE:
        if value >= threshold:
            return True, f"{shown} >= {format_value(threshold)}"
        return False, f"{shown} < {format_value(threshold)}"

    if op == Operator.LTE:
        if value <= threshold:
            return True, f"{shown} <= {format_value(threshold)}"
        return False, f"{shown} > {format_value(threshold)}"

    if op == Operator.EQ:
        if _normalize_for_match(value) == _normalize_for_match(threshold):
            return True, f"{shown} == {format_value(threshold)}"
        return False, f"{shown} != {format_value(threshold)}"

    if op == Operator.IN_RANGE:
        low, high = threshold
        if low <= value <= high:
            return True, f"{shown} within {format_value(threshold)}"
        return False, f"{shown} outside {format_value(threshold)}"

    if op == Operator.BLACKLIST:
        if _in_list(value, threshold):
            return False, f"{shown} is blacklisted"
        return True, f"{shown} not blacklisted"

    if op == Operator.MEMBER:
        if _in_list(value, threshold):
            return True, f"{shown} in {format_value(threshold)}"
        return False, f"{shown} not in {format_value(threshold)}"

    raise ValueError(f"Unhandled operator: {op}")


def evaluate_rule(rule: FilterRule, deal: Deal) -> RuleOutcome:
    """
    Evaluate one rule against one deal.
    A missing dimension is a failed rule with a 'missing' reason, never an error.
    """
    value = deal.dimension_value(rule.dimension)
    if value is None or (isinstance(value, str) and not value.strip()):
        return RuleOutcome(rule=rule, matched=False, reason=f"{rule.dimension}: missing", missing=True)
    matched, explanation = _compare(rule.operator, value, rule.threshold)
    return RuleOutcome(rule=rule, matched=matched, reason=f"{rule.dimension}: {explanation}")
