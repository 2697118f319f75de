"""Opportunity view store with version-checked publication."""

import logging
from datetime import timezone
from typing import Optional

from deal_board.models.results import OpportunityView

from .db import SqliteStore

logger = logging.getLogger(__name__)


class OpportunityViewStore(SqliteStore):
    """
    Holds the current OpportunityView per investor.
    publish() re-checks the investor's filter-set version inside the same
    write transaction, so a superseded recompute can never overwrite a newer view.
    """

    def get(self, investor_id: str) -> Optional[OpportunityView]:
        with self._connection() as conn:
            row = conn.execute("SELECT data FROM views WHERE investor_id = ?", (investor_id,)).fetchone()
        return OpportunityView.model_validate_json(row["data"]) if row else None

    def publish(self, view: OpportunityView) -> bool:
        """
        Save view if it was computed against the investor's current filter-set
        version and is not older than the stored view. Returns False when discarded.
        """
        with self._write_transaction() as conn:
            row = conn.execute(
                "SELECT version FROM filter_sets WHERE investor_id = ?", (view.investor_id,)
            ).fetchone()
            current_version = row["version"] if row else 0
            if view.filter_set_version < current_version:
                logger.debug(
                    "Discarding view for %s: version %d superseded by %d",
                    view.investor_id,
                    view.filter_set_version,
                    current_version,
                )
                return False
            existing = conn.execute(
                "SELECT filter_set_version, catalog_revision FROM views WHERE investor_id = ?",
                (view.investor_id,),
            ).fetchone()
            if existing and (existing["filter_set_version"], existing["catalog_revision"]) > (
                view.filter_set_version,
                view.catalog_revision,
            ):
                logger.debug("Discarding view for %s: newer view already published", view.investor_id)
                return False
            conn.execute(
                """
                INSERT INTO views (investor_id, filter_set_version, catalog_revision, data, generated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(investor_id) DO UPDATE SET
                    filter_set_version = excluded.filter_set_version,
                    catalog_revision = excluded.catalog_revision,
                    data = excluded.data,
                    generated_at = excluded.generated_at
                """,
                (
                    view.investor_id,
                    view.filter_set_version,
                    view.catalog_revision,
                    view.model_dump_json(),
                    view.generated_at.astimezone(timezone.utc).isoformat(),
                ),
            )
        return True

    def list_investors(self) -> list[str]:
        """Investors that have a published view."""
        with self._connection() as conn:
            rows = conn.execute("SELECT investor_id FROM views ORDER BY investor_id").fetchall()
        return [r["investor_id"] for r in rows]
