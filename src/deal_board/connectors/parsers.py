"""Normalize applicant-platform deal records into Deal."""

import json
import logging
from datetime import date, datetime
from typing import Any, Optional

from deal_board.errors import SourceError
from deal_board.models.deal import Deal, DealStatus
from deal_board.models.raw import RawDeal

logger = logging.getLogger(__name__)

_REVENUE_FIELDS = ("daily_revenue", "monthly_revenue", "annual_revenue", "gross_margin", "net_margin")
_TEXT_FIELDS = (
    "company_name",
    "industry",
    "industry_sub",
    "region",
    "city",
    "main_business",
    "funding_purpose",
    "cashflow_frequency",
)


def parse_date(value: Any) -> Optional[date]:
    """Parse 'YYYY-MM-DD', an ISO datetime, or a date; None if unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not str(value).strip():
        return None
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y/%m/%d"):
        try:
            return datetime.strptime(text[:19], fmt).date()
        except ValueError:
            continue
    return None


def _financial_data(data: dict) -> dict:
    """financial_data arrives as a JSON string from the platform API, or as an object."""
    raw = data.get("financial_data")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError:
            logger.warning("Deal %s has unreadable financial_data", data.get("id"))
            return {}
    return raw if isinstance(raw, dict) else {}


def _status(value: Any, deal_id: str) -> DealStatus:
    try:
        return DealStatus((value or DealStatus.PENDING.value).strip().lower())
    except ValueError:
        logger.warning("Deal %s has unknown status %r, treating as pending", deal_id, value)
        return DealStatus.PENDING


def normalize_deal(raw: RawDeal) -> Deal:
    """Convert one raw platform record into a Deal. Top-level figures win over financial_data."""
    data = raw.data
    deal_id = raw.record_id
    if not deal_id:
        raise SourceError("Deal record has no id", context={"company_name": data.get("company_name")})
    submitted = parse_date(data.get("submitted_date"))
    if submitted is None:
        raise SourceError(f"Deal {deal_id} has no valid submitted_date", context={"deal_id": deal_id})

    fin = _financial_data(data)
    revenue = fin.get("revenue_data") or {}
    fields: dict[str, Any] = {k: data.get(k) for k in _TEXT_FIELDS if data.get(k) is not None}
    for key in _REVENUE_FIELDS:
        value = data.get(key, revenue.get(key))
        if value is not None:
            fields[key] = value
    fields["funding_amount"] = data.get("funding_amount", fin.get("investment_amount"))
    fields["investment_period_months"] = data.get(
        "investment_period_months", fin.get("investment_period_months")
    )
    fields["revenue_share_ratio"] = data.get("revenue_share_ratio", fin.get("revenue_share_ratio"))
    fields["irr_estimate"] = data.get("irr_estimate", fin.get("irr_estimate"))
    if not fields.get("cashflow_frequency") and fin.get("cashflow_frequency"):
        fields["cashflow_frequency"] = fin["cashflow_frequency"]

    return Deal(
        id=deal_id,
        status=_status(data.get("status"), deal_id),
        submitted_date=submitted,
        **fields,
    )
