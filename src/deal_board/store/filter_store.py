"""Per-investor filter set store with a monotonic version counter."""

import logging
from datetime import datetime, timezone
from typing import Optional

from deal_board.models.filters import InvestorFilterSet, build_filter_set

from .db import SqliteStore

logger = logging.getLogger(__name__)


class FilterRuleStore(SqliteStore):
    """
    SQLite store for InvestorFilterSet.
    Every save replaces the investor's set and bumps its version by one, atomically.
    """

    def put(self, filter_set: InvestorFilterSet) -> InvestorFilterSet:
        """Create or replace an investor's filter set. Returns the stored set with its new version."""
        now = datetime.now(timezone.utc).isoformat()
        with self._write_transaction() as conn:
            row = conn.execute(
                "SELECT version FROM filter_sets WHERE investor_id = ?", (filter_set.investor_id,)
            ).fetchone()
            version = (row["version"] if row else 0) + 1
            stored = filter_set.model_copy(update={"version": version})
            conn.execute(
                """
                INSERT INTO filter_sets (investor_id, version, data, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT(investor_id) DO UPDATE SET
                    version = excluded.version, data = excluded.data, updated_at = excluded.updated_at
                """,
                (stored.investor_id, version, stored.model_dump_json(), now),
            )
        logger.info(
            "Filter set for %s saved as version %d (%d assessment, %d risk rules)",
            stored.investor_id,
            version,
            len(stored.assessment_rules),
            len(stored.risk_rules),
        )
        return stored

    def put_config(self, data: dict) -> InvestorFilterSet:
        """Validate raw configuration (raises FilterConfigError) and save it."""
        return self.put(build_filter_set(data))

    def get(self, investor_id: str) -> Optional[InvestorFilterSet]:
        """Stored filter set, or None if the investor never saved one."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT data FROM filter_sets WHERE investor_id = ?", (investor_id,)
            ).fetchone()
        return InvestorFilterSet.model_validate_json(row["data"]) if row else None

    def get_or_empty(self, investor_id: str) -> InvestorFilterSet:
        """Stored filter set, or an empty version-0 set."""
        return self.get(investor_id) or InvestorFilterSet.empty(investor_id)

    def current_version(self, investor_id: str) -> int:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT version FROM filter_sets WHERE investor_id = ?", (investor_id,)
            ).fetchone()
        return row["version"] if row else 0

    def list_investors(self) -> list[str]:
        with self._connection() as conn:
            rows = conn.execute("SELECT investor_id FROM filter_sets ORDER BY investor_id").fetchall()
        return [r["investor_id"] for r in rows]

    def get_all(self) -> list[InvestorFilterSet]:
        """Every stored filter set, by investor id."""
        with self._connection() as conn:
            rows = conn.execute("SELECT data FROM filter_sets ORDER BY investor_id").fetchall()
        return [InvestorFilterSet.model_validate_json(r["data"]) for r in rows]
