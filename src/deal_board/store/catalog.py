"""SQLite-backed deal catalog with revision tracking and lifecycle-checked status writes."""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from deal_board.errors import DealNotFoundError, InvalidTransitionError
from deal_board.lifecycle import advance_status
from deal_board.models.deal import Deal, DealStatus

from .db import SqliteStore

logger = logging.getLogger(__name__)

# Bookkeeping fields that do not count as a change in the applicant's facts
_NON_FACT_FIELDS = {"status", "version", "revision"}


class DealCatalog(SqliteStore):
    """
    Read-mostly store of deal records.
    Every write stamps the deal with a new catalog revision (monotonic), so
    readers can ask for everything that changed after a snapshot.
    """

    def _deserialize(self, row: sqlite3.Row) -> Deal:
        data = json.loads(row["data"])
        data.update(status=row["status"], version=row["version"], revision=row["revision"])
        return Deal.model_validate(data)

    def _deserialize_rows(self, rows: list[sqlite3.Row]) -> tuple[list[Deal], list[str]]:
        """Deserialize rows one at a time; unreadable rows are logged and their ids returned."""
        deals: list[Deal] = []
        unreadable: list[str] = []
        for row in rows:
            try:
                deals.append(self._deserialize(row))
            except ValueError as e:
                logger.warning("Skipping unreadable deal %s: %s", row["id"], e)
                unreadable.append(row["id"])
        return deals, unreadable

    @staticmethod
    def _next_revision(conn: sqlite3.Connection) -> int:
        row = conn.execute("SELECT COALESCE(MAX(revision), 0) AS rev FROM deals").fetchone()
        return row["rev"] + 1

    @staticmethod
    def _facts(deal: Deal) -> str:
        return deal.model_dump_json(exclude=_NON_FACT_FIELDS)

    def upsert(self, deal: Deal) -> tuple[bool, bool]:
        """
        Insert a new deal or refresh the facts of an existing one. Returns (was_new, was_changed).
        Existing deals keep their status and version; use resubmit for applicant updates.
        """
        now = datetime.now(timezone.utc).isoformat()
        facts = self._facts(deal)
        with self._write_transaction() as conn:
            existing = conn.execute("SELECT data FROM deals WHERE id = ?", (deal.id,)).fetchone()
            if existing is None:
                rev = self._next_revision(conn)
                conn.execute(
                    """
                    INSERT INTO deals (id, status, version, revision, submitted_date, data, first_seen_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        deal.id,
                        deal.status.value,
                        deal.version,
                        rev,
                        deal.submitted_date.isoformat(),
                        facts,
                        now,
                        now,
                    ),
                )
                return True, False
            if json.loads(existing["data"]) == json.loads(facts):
                return False, False
            rev = self._next_revision(conn)
            conn.execute(
                "UPDATE deals SET data = ?, submitted_date = ?, revision = ?, updated_at = ? WHERE id = ?",
                (facts, deal.submitted_date.isoformat(), rev, now, deal.id),
            )
            return False, True

    def get(self, deal_id: str) -> Optional[Deal]:
        """Get single deal by id."""
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM deals WHERE id = ?", (deal_id,)).fetchone()
        return self._deserialize(row) if row else None

    def require(self, deal_id: str) -> Deal:
        """Get deal or raise DealNotFoundError."""
        deal = self.get(deal_id)
        if deal is None:
            raise DealNotFoundError(f"Deal not found: {deal_id}")
        return deal

    def get_all(self) -> list[Deal]:
        """Return all deals, oldest submission first."""
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM deals ORDER BY submitted_date, id").fetchall()
        return self._deserialize_rows(rows)[0]

    def get_by_status(self, status: DealStatus | str) -> list[Deal]:
        """Return deals with given status."""
        value = DealStatus(status).value
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM deals WHERE status = ? ORDER BY submitted_date, id", (value,)
            ).fetchall()
        return self._deserialize_rows(rows)[0]

    def head_revision(self) -> int:
        """Latest catalog revision; 0 for an empty catalog."""
        with self._connection() as conn:
            row = conn.execute("SELECT COALESCE(MAX(revision), 0) AS rev FROM deals").fetchone()
        return row["rev"]

    def snapshot(self) -> tuple[list[Deal], int]:
        """All readable deals plus the revision they reflect, read consistently."""
        with self._read_transaction() as conn:
            rows = conn.execute("SELECT * FROM deals ORDER BY submitted_date, id").fetchall()
            rev = conn.execute("SELECT COALESCE(MAX(revision), 0) AS rev FROM deals").fetchone()["rev"]
        return self._deserialize_rows(rows)[0], rev

    def changed_since(self, revision: int) -> tuple[list[Deal], list[str], int]:
        """
        Deals written after `revision`, ids of rows among them that could not be
        read, and the current head revision.
        """
        with self._read_transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM deals WHERE revision > ? ORDER BY revision", (revision,)
            ).fetchall()
            rev = conn.execute("SELECT COALESCE(MAX(revision), 0) AS rev FROM deals").fetchone()["rev"]
        deals, unreadable = self._deserialize_rows(rows)
        return deals, unreadable, rev

    def update_status(
        self,
        deal_id: str,
        target: DealStatus | str,
        *,
        applicant_update: bool = False,
    ) -> tuple[Deal, bool]:
        """
        Move a deal's global status. Returns (deal, changed).
        Raises InvalidTransitionError for backward moves; same status is a no-op.
        """
        target = DealStatus(target)
        now = datetime.now(timezone.utc).isoformat()
        with self._write_transaction() as conn:
            row = conn.execute("SELECT * FROM deals WHERE id = ?", (deal_id,)).fetchone()
            if row is None:
                raise DealNotFoundError(f"Deal not found: {deal_id}")
            current = DealStatus(row["status"])
            advance_status(current, target, deal_id=deal_id, applicant_update=applicant_update)
            if current == target:
                return self._deserialize(row), False
            rev = self._next_revision(conn)
            conn.execute(
                "UPDATE deals SET status = ?, revision = ?, updated_at = ? WHERE id = ?",
                (target.value, rev, now, deal_id),
            )
            updated = conn.execute("SELECT * FROM deals WHERE id = ?", (deal_id,)).fetchone()
        logger.info("Deal %s status %s -> %s", deal_id, current.value, target.value)
        return self._deserialize(updated), True

    def resubmit(self, deal: Deal) -> tuple[Deal, set[str]]:
        """
        Applicant update: replace facts, bump version, reset needs_resubmission -> pending.
        Returns (stored deal, changed rule dimensions). Closed deals cannot be resubmitted.
        """
        now = datetime.now(timezone.utc).isoformat()
        with self._write_transaction() as conn:
            row = conn.execute("SELECT * FROM deals WHERE id = ?", (deal.id,)).fetchone()
            if row is None:
                raise DealNotFoundError(f"Deal not found: {deal.id}")
            previous = self._deserialize(row)
            if previous.status in (DealStatus.APPROVED, DealStatus.REJECTED):
                raise InvalidTransitionError(
                    f"Deal {deal.id} is {previous.status.value} and cannot be resubmitted",
                    context={"deal_id": deal.id},
                )
            status = previous.status
            if status == DealStatus.NEEDS_RESUBMISSION:
                status = advance_status(status, DealStatus.PENDING, deal_id=deal.id, applicant_update=True)
            version = previous.version + 1
            rev = self._next_revision(conn)
            conn.execute(
                """
                UPDATE deals SET data = ?, status = ?, version = ?, revision = ?, submitted_date = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    self._facts(deal),
                    status.value,
                    version,
                    rev,
                    deal.submitted_date.isoformat(),
                    now,
                    deal.id,
                ),
            )
            updated = conn.execute("SELECT * FROM deals WHERE id = ?", (deal.id,)).fetchone()
        stored = self._deserialize(updated)
        logger.info("Deal %s resubmitted as version %d (status %s)", deal.id, version, status.value)
        return stored, stored.changed_dimensions(previous)
