"""Unit tests for DealCatalog."""

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from deal_board.errors import DealNotFoundError, InvalidTransitionError
from deal_board.models.deal import Deal, DealStatus
from deal_board.store import DealCatalog


def _make_deal(**kwargs) -> Deal:
    defaults = {
        "id": "DGT-TEST-001",
        "company_name": "Test Tea Shop",
        "industry": "catering",
        "funding_amount": 35,
        "revenue_share_ratio": 0.08,
        "submitted_date": date(2026, 1, 10),
    }
    defaults.update(kwargs)
    return Deal(**defaults)


@pytest.fixture
def catalog(temp_db: Path) -> DealCatalog:
    """DealCatalog with temporary database."""
    return DealCatalog(temp_db)


class TestDealCatalogUpsert:
    """Tests for upsert."""

    def test_upsert_new(self, catalog: DealCatalog) -> None:
        """First upsert returns (was_new=True, was_changed=False)."""
        assert catalog.upsert(_make_deal()) == (True, False)
        assert catalog.get("DGT-TEST-001").funding_amount == 35

    def test_upsert_unchanged(self, catalog: DealCatalog) -> None:
        catalog.upsert(_make_deal())
        assert catalog.upsert(_make_deal()) == (False, False)

    def test_upsert_changed_facts(self, catalog: DealCatalog) -> None:
        """Changed facts are stored; version is not bumped."""
        catalog.upsert(_make_deal())
        assert catalog.upsert(_make_deal(funding_amount=40)) == (False, True)
        stored = catalog.get("DGT-TEST-001")
        assert stored.funding_amount == 40
        assert stored.version == 1

    def test_upsert_keeps_status(self, catalog: DealCatalog) -> None:
        """Status in an upserted record does not overwrite the stored status."""
        catalog.upsert(_make_deal())
        catalog.update_status("DGT-TEST-001", DealStatus.UNDER_REVIEW)
        catalog.upsert(_make_deal(status=DealStatus.PENDING))
        assert catalog.get("DGT-TEST-001").status == DealStatus.UNDER_REVIEW


class TestDealCatalogQueries:
    """Tests for reads and revisions."""

    def test_get_missing(self, catalog: DealCatalog) -> None:
        assert catalog.get("nope") is None
        with pytest.raises(DealNotFoundError):
            catalog.require("nope")

    def test_get_all_oldest_first(self, catalog: DealCatalog) -> None:
        catalog.upsert(_make_deal(id="b", submitted_date=date(2026, 2, 1)))
        catalog.upsert(_make_deal(id="a", submitted_date=date(2025, 12, 1)))
        assert [d.id for d in catalog.get_all()] == ["a", "b"]

    def test_get_by_status(self, catalog: DealCatalog) -> None:
        catalog.upsert(_make_deal(id="a"))
        catalog.upsert(_make_deal(id="b", status=DealStatus.UNDER_REVIEW))
        assert [d.id for d in catalog.get_by_status("under_review")] == ["b"]

    def test_revision_monotonic(self, catalog: DealCatalog) -> None:
        """Every write stamps a higher revision."""
        assert catalog.head_revision() == 0
        catalog.upsert(_make_deal(id="a"))
        catalog.upsert(_make_deal(id="b"))
        rev_after_insert = catalog.head_revision()
        catalog.update_status("a", "under_review")
        assert catalog.head_revision() > rev_after_insert

    def test_changed_since(self, catalog: DealCatalog) -> None:
        """changed_since returns only deals written after the snapshot."""
        catalog.upsert(_make_deal(id="a"))
        _, rev = catalog.snapshot()
        catalog.upsert(_make_deal(id="b"))
        changed, unreadable, head = catalog.changed_since(rev)
        assert [d.id for d in changed] == ["b"]
        assert unreadable == []
        assert head == catalog.head_revision()

    def test_unreadable_row_is_skipped(self, catalog: DealCatalog) -> None:
        """A row whose stored facts no longer parse is reported, and the others still load."""
        catalog.upsert(_make_deal(id="a"))
        _, rev = catalog.snapshot()
        catalog.upsert(_make_deal(id="b"))
        conn = sqlite3.connect(catalog.db_path)
        with conn:
            conn.execute("UPDATE deals SET data = ? WHERE id = ?", ("not json", "b"))
        conn.close()

        deals, _ = catalog.snapshot()
        assert [d.id for d in deals] == ["a"]
        assert [d.id for d in catalog.get_all()] == ["a"]
        changed, unreadable, _ = catalog.changed_since(rev)
        assert changed == []
        assert unreadable == ["b"]


class TestDealCatalogStatus:
    """Tests for update_status and resubmit."""

    def test_update_status(self, catalog: DealCatalog) -> None:
        catalog.upsert(_make_deal())
        deal, changed = catalog.update_status("DGT-TEST-001", "approved")
        assert changed is True
        assert deal.status == DealStatus.APPROVED

    def test_update_status_same_is_noop(self, catalog: DealCatalog) -> None:
        catalog.upsert(_make_deal())
        _, changed = catalog.update_status("DGT-TEST-001", "pending")
        assert changed is False

    def test_backward_move_raises(self, catalog: DealCatalog) -> None:
        catalog.upsert(_make_deal())
        catalog.update_status("DGT-TEST-001", "rejected")
        with pytest.raises(InvalidTransitionError):
            catalog.update_status("DGT-TEST-001", "pending")
        assert catalog.get("DGT-TEST-001").status == DealStatus.REJECTED

    def test_update_status_unknown_deal(self, catalog: DealCatalog) -> None:
        with pytest.raises(DealNotFoundError):
            catalog.update_status("nope", "approved")

    def test_resubmit_bumps_version_and_resets_status(self, catalog: DealCatalog) -> None:
        """Resubmission from needs_resubmission returns the deal to pending at version 2."""
        catalog.upsert(_make_deal())
        catalog.update_status("DGT-TEST-001", "needs_resubmission")
        stored, changed = catalog.resubmit(_make_deal(revenue_share_ratio=0.05))
        assert stored.version == 2
        assert stored.status == DealStatus.PENDING
        assert stored.revenue_share_ratio == 0.05
        assert changed == {"revenue_share_ratio"}

    def test_resubmit_closed_deal_raises(self, catalog: DealCatalog) -> None:
        catalog.upsert(_make_deal())
        catalog.update_status("DGT-TEST-001", "approved")
        with pytest.raises(InvalidTransitionError):
            catalog.resubmit(_make_deal(funding_amount=20))

    def test_resubmit_unknown_deal(self, catalog: DealCatalog) -> None:
        with pytest.raises(DealNotFoundError):
            catalog.resubmit(_make_deal(id="nope"))
