"""Bundled sample deals (DGT-2026-001..010) for local runs and demos."""

import json
from pathlib import Path
from typing import Optional

from deal_board.models.raw import RawDeal

from .base import BaseDealSource

SEED_PATH = Path(__file__).resolve().parent.parent / "data" / "deals_seed.json"


class SeedDealSource(BaseDealSource):
    """Reads deals from a JSON file shaped like the platform's GET /api/deals response."""

    source_id = "seed"

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else SEED_PATH

    def search(self, query: Optional[str] = None, filters: Optional[dict] = None) -> list[RawDeal]:
        """
        Load records. query: substring match on company name or industry (case-insensitive).
        filters: optional {'status': ..., 'industry': ...} exact matches.
        """
        records = json.loads(self.path.read_text(encoding="utf-8"))
        raw_list = [RawDeal(data=r) for r in records]
        if query:
            q = query.lower()
            raw_list = [
                r
                for r in raw_list
                if q in (r.data.get("company_name") or "").lower()
                or q in (r.data.get("industry") or "").lower()
            ]
        for key, value in (filters or {}).items():
            raw_list = [r for r in raw_list if r.data.get(key) == value]
        return raw_list

    def fetch_details(self, raw_id: str) -> RawDeal:
        for r in self.search():
            if r.record_id == raw_id.strip():
                return r
        raise ValueError(f"Deal not found: {raw_id}")
