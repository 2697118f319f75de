"""Investor filter rules and filter sets."""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from deal_board.errors import FilterConfigError

DEFAULT_PASSING_THRESHOLD = 0.6


class RuleKind(str, Enum):
    """Stage a rule belongs to."""

    ASSESSMENT = "assessment"
    RISK = "risk"


class Operator(str, Enum):
    """Closed set of rule operators; evaluated by operators.evaluate_rule."""

    GTE = ">="
    LTE = "<="
    EQ = "=="
    IN_RANGE = "in-range"
    BLACKLIST = "blacklist-member"
    MEMBER = "member"


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_value(value: Any) -> str:
    """Render numbers without a trailing .0 so reasons read like the submitted data."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    return str(value)


class FilterRule(BaseModel):
    """
    One investor-defined predicate over a single deal dimension.
    Assessment rules carry a weight in (0, 1]; risk rules are pass/fail.
    """

    kind: RuleKind
    dimension: str = Field(..., min_length=1, description="Deal attribute name, e.g. 'funding_amount'")
    operator: Operator
    threshold: Any = Field(..., description="Number, string, [low, high] or list, by operator")
    weight: Optional[float] = Field(default=None, description="Assessment only, in (0, 1]")

    @model_validator(mode="after")
    def _check_shape(self) -> "FilterRule":
        if self.kind == RuleKind.RISK:
            if self.weight is not None:
                raise ValueError("weight applies to assessment rules only")
        elif self.weight is None:
            self.weight = 1.0
        elif not (0 < self.weight <= 1):
            raise ValueError(f"weight {self.weight} outside (0, 1]")

        op = self.operator
        th = self.threshold
        if op in (Operator.GTE, Operator.LTE):
            if not is_number(th):
                raise ValueError(f"operator {op.value} needs a numeric threshold, got {th!r}")
        elif op == Operator.EQ:
            if not (is_number(th) or isinstance(th, str)):
                raise ValueError(f"operator == needs a number or string threshold, got {th!r}")
        elif op == Operator.IN_RANGE:
            if (
                not isinstance(th, (list, tuple))
                or len(th) != 2
                or not all(is_number(v) for v in th)
            ):
                raise ValueError(f"operator in-range needs [low, high], got {th!r}")
            if th[0] > th[1]:
                raise ValueError(f"in-range low {th[0]} above high {th[1]}")
            self.threshold = [th[0], th[1]]
        else:
            if not isinstance(th, (list, tuple, set)) or not th:
                raise ValueError(f"operator {op.value} needs a non-empty list, got {th!r}")
            if not all(is_number(v) or isinstance(v, str) for v in th):
                raise ValueError(f"operator {op.value} list may hold only numbers and strings")
            self.threshold = list(th)
        return self

    def describe(self) -> str:
        """Human-readable form, e.g. 'revenue_share_ratio <= 0.05'."""
        return f"{self.dimension} {self.operator.value} {format_value(self.threshold)}"


class InvestorFilterSet(BaseModel):
    """Per-investor assessment and risk rules. Version is assigned by the store."""

    investor_id: str = Field(..., min_length=1)
    assessment_rules: list[FilterRule] = Field(default_factory=list)
    risk_rules: list[FilterRule] = Field(default_factory=list)
    passing_threshold: float = Field(default=DEFAULT_PASSING_THRESHOLD, ge=0, le=1)
    version: int = Field(default=0, ge=0, description="0 until first saved")

    @field_validator("passing_threshold", mode="before")
    @classmethod
    def _threshold_is_number(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_PASSING_THRESHOLD
        if not is_number(value):
            raise ValueError(f"passing_threshold must be a number, got {value!r}")
        return value

    @model_validator(mode="after")
    def _check_kinds(self) -> "InvestorFilterSet":
        for field, kind in (("assessment_rules", RuleKind.ASSESSMENT), ("risk_rules", RuleKind.RISK)):
            for i, rule in enumerate(getattr(self, field)):
                if rule.kind != kind:
                    raise ValueError(
                        f"{field}[{i}] ({rule.dimension}): {rule.kind.value} rule in {kind.value} list"
                    )
        return self

    @property
    def is_empty(self) -> bool:
        """No rules at all: the investor sees every non-rejected deal."""
        return not self.assessment_rules and not self.risk_rules

    @property
    def dimensions(self) -> set[str]:
        """Every dimension referenced by any rule."""
        return {r.dimension for r in self.assessment_rules + self.risk_rules}

    @classmethod
    def empty(cls, investor_id: str) -> "InvestorFilterSet":
        """Filter set used for investors that never configured one."""
        return cls(investor_id=investor_id)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "InvestorFilterSet":
        """Load from YAML. Supports nested (assessment/risk) or flat (rules with kind) structure."""
        data = yaml.safe_load(Path(path).read_text()) or {}
        return build_filter_set(data)


def _rule_label(data: dict, loc: tuple) -> str:
    """Name the offending rule from a pydantic error location, e.g. 'risk_rules[0] (net_margin)'."""
    if len(loc) >= 2 and loc[0] in ("assessment_rules", "risk_rules") and isinstance(loc[1], int):
        label = f"{loc[0]}[{loc[1]}]"
        rules = data.get(loc[0]) or []
        if loc[1] < len(rules) and isinstance(rules[loc[1]], dict) and rules[loc[1]].get("dimension"):
            label += f" ({rules[loc[1]]['dimension']})"
        return label
    return ".".join(str(p) for p in loc) or "filter set"


def _normalize_config(data: dict) -> dict:
    """Flatten the YAML shapes into InvestorFilterSet fields; kind defaults from the section."""
    flat: dict = {
        "investor_id": data.get("investor_id", ""),
        "passing_threshold": data.get("passing_threshold", DEFAULT_PASSING_THRESHOLD),
    }
    assessment = list(data.get("assessment_rules") or data.get("assessment") or [])
    risk = list(data.get("risk_rules") or data.get("risk") or [])
    for rule in data.get("rules") or []:
        kind = rule.get("kind") if isinstance(rule, dict) else None
        (risk if kind == RuleKind.RISK.value else assessment).append(rule)

    def _with_kind(rules: list, kind: RuleKind) -> list:
        return [{"kind": kind.value, **r} if isinstance(r, dict) and "kind" not in r else r for r in rules]

    flat["assessment_rules"] = _with_kind(assessment, RuleKind.ASSESSMENT)
    flat["risk_rules"] = _with_kind(risk, RuleKind.RISK)
    return flat


def build_filter_set(data: dict) -> InvestorFilterSet:
    """
    Validate raw filter configuration and return an InvestorFilterSet.
    Raises FilterConfigError naming the first offending rule.
    """
    flat = _normalize_config(data)
    try:
        return InvestorFilterSet.model_validate(flat)
    except ValidationError as e:
        err = e.errors()[0]
        loc = tuple(err.get("loc", ()))
        label = _rule_label(flat, loc)
        msg = err.get("msg", "invalid")
        if loc and loc[-1] == "operator":
            msg = f"unknown operator {err.get('input')!r}"
        msg = msg.removeprefix("Value error, ")
        if not loc:
            # Model-level checks already name the rule in their message
            raise FilterConfigError(msg, rule=None, context={"investor_id": flat["investor_id"]}) from e
        raise FilterConfigError(
            f"{label}: {msg}", rule=label, context={"investor_id": flat["investor_id"]}
        ) from e
