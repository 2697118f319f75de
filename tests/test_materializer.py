"""Unit tests for ViewMaterializer and DimensionIndex."""

from datetime import date
from pathlib import Path

import pytest

from deal_board.filtering import MatchingEngine
from deal_board.materializer import DimensionIndex, ViewMaterializer
from deal_board.models.deal import Deal
from deal_board.models.filters import build_filter_set
from deal_board.store import DealCatalog, EvaluationLog, FilterRuleStore, OpportunityViewStore


def _make_deal(deal_id: str, funding: float, submitted: date = date(2026, 1, 10), ratio: float = 0.05) -> Deal:
    return Deal(
        id=deal_id,
        industry="catering",
        funding_amount=funding,
        revenue_share_ratio=ratio,
        submitted_date=submitted,
    )


def _funding_cap(investor_id: str, cap: float) -> dict:
    return {
        "investor_id": investor_id,
        "assessment": [{"dimension": "funding_amount", "operator": "<=", "threshold": cap}],
    }


def _risk(dimension: str, operator: str, threshold: float) -> dict:
    return {"dimension": dimension, "operator": operator, "threshold": threshold}


def _publish(materializer: ViewMaterializer, config: dict) -> set[str]:
    fs = materializer.filter_store.put(build_filter_set(config))
    return set(materializer.on_filter_set_changed(fs).deal_ids)


@pytest.fixture
def stores(temp_db: Path):
    return (
        DealCatalog(temp_db),
        FilterRuleStore(temp_db),
        OpportunityViewStore(temp_db),
        EvaluationLog(temp_db),
    )


@pytest.fixture
def materializer(stores) -> ViewMaterializer:
    catalog, filter_store, view_store, evaluation_log = stores
    for deal in (
        _make_deal("a", 30, date(2026, 1, 5)),
        _make_deal("b", 45, date(2026, 1, 1)),
        _make_deal("c", 90, date(2026, 1, 3)),
    ):
        catalog.upsert(deal)
    return ViewMaterializer(catalog, filter_store, view_store, evaluation_log, max_workers=2)


class TestDimensionIndex:
    """Tests for the dimension -> investors index."""

    def test_interested(self) -> None:
        index = DimensionIndex()
        index.update(build_filter_set(_funding_cap("inv-a", 50)))
        index.update(
            build_filter_set(
                {"investor_id": "inv-b", "risk": [{"dimension": "region", "operator": "member", "threshold": ["北京"]}]}
            )
        )
        assert index.interested({"funding_amount"}) == {"inv-a"}
        assert index.interested({"region", "funding_amount"}) == {"inv-a", "inv-b"}
        assert index.interested({"city"}) == set()

    def test_update_replaces_entries(self) -> None:
        index = DimensionIndex()
        index.update(build_filter_set(_funding_cap("inv-a", 50)))
        index.update(
            build_filter_set(
                {"investor_id": "inv-a", "risk": [{"dimension": "net_margin", "operator": ">=", "threshold": 0.1}]}
            )
        )
        assert index.interested({"funding_amount"}) == set()
        assert index.interested({"net_margin"}) == {"inv-a"}


class TestRecompute:
    """Tests for full recomputation on filter-set change."""

    def test_view_ordering(self, materializer: ViewMaterializer) -> None:
        """Equal scores order by submission date, oldest first."""
        fs = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        view = materializer.on_filter_set_changed(fs)
        assert view.deal_ids == ["b", "a"]
        assert view.filter_set_version == 1

    def test_score_orders_before_date(self, materializer: ViewMaterializer) -> None:
        fs = materializer.filter_store.put(
            build_filter_set(
                {
                    "investor_id": "inv-a",
                    "passing_threshold": 0.5,
                    "assessment": [
                        {"dimension": "funding_amount", "operator": "<=", "threshold": 35, "weight": 0.5},
                        {"dimension": "industry", "operator": "==", "threshold": "catering", "weight": 0.5},
                    ],
                }
            )
        )
        view = materializer.on_filter_set_changed(fs)
        assert view.deal_ids == ["a", "b", "c"]
        assert [e.score for e in view.entries] == [1.0, 0.5, 0.5]

    def test_superseded_recompute_is_dropped(self, materializer: ViewMaterializer) -> None:
        """A job running against an older filter-set version never publishes."""
        v1 = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        v2 = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 100)))
        assert materializer.on_filter_set_changed(v2).deal_ids == ["b", "c", "a"]
        assert materializer.recompute_investor("inv-a", v1) is None
        stored = materializer.view_store.get("inv-a")
        assert stored.filter_set_version == 2
        assert len(stored.entries) == 3

    def test_recompute_is_idempotent(self, materializer: ViewMaterializer) -> None:
        """Recomputing with nothing changed yields the same view and no new log records."""
        fs = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        first = materializer.on_filter_set_changed(fs)
        records = len(materializer.evaluation_log.history("a", "inv-a"))
        second = materializer.recompute_investor("inv-a")
        assert second.deal_ids == first.deal_ids
        assert len(materializer.evaluation_log.history("a", "inv-a")) == records

    def test_failed_pair_is_omitted(self, materializer: ViewMaterializer, monkeypatch) -> None:
        """One pair raising is logged and left out; the rest of the view is published."""
        original = MatchingEngine.match

        def flaky(self, deal):
            if deal.id == "a":
                raise RuntimeError("boom")
            return original(self, deal)

        monkeypatch.setattr(MatchingEngine, "match", flaky)
        fs = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        view = materializer.on_filter_set_changed(fs)
        assert view.deal_ids == ["b"]
        assert materializer.evaluation_log.history("a", "inv-a") == []


class TestIncremental:
    """Tests for incremental refresh on deal changes."""

    def test_new_deal_added(self, materializer: ViewMaterializer) -> None:
        fs = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        materializer.on_filter_set_changed(fs)
        materializer.catalog.upsert(_make_deal("d", 10, date(2025, 12, 1)))
        views = materializer.on_deals_changed()
        assert views["inv-a"].deal_ids == ["d", "b", "a"]

    def test_changed_deal_leaves_view(self, materializer: ViewMaterializer) -> None:
        fs = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        materializer.on_filter_set_changed(fs)
        materializer.catalog.upsert(_make_deal("a", 80, date(2026, 1, 5)))
        materializer.on_deals_changed(dimensions={"funding_amount"})
        assert materializer.view_store.get("inv-a").deal_ids == ["b"]

    def test_uninterested_investor_not_refreshed(self, materializer: ViewMaterializer) -> None:
        """Attribute change on a dimension nobody references refreshes no one."""
        fs = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        materializer.on_filter_set_changed(fs)
        assert materializer.on_deals_changed(dimensions={"city"}) == {}

    def test_incremental_matches_full_recompute(self, materializer: ViewMaterializer) -> None:
        """Incremental refresh and a full recompute agree."""
        fs = materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        materializer.on_filter_set_changed(fs)
        materializer.catalog.upsert(_make_deal("e", 50, date(2026, 1, 2)))
        materializer.catalog.upsert(_make_deal("b", 60, date(2026, 1, 1)))
        incremental = materializer.on_deals_changed()["inv-a"]
        full = materializer.recompute_investor("inv-a")
        assert incremental.deal_ids == full.deal_ids == ["e", "a"]

    def test_refresh_without_view_falls_back_to_recompute(self, materializer: ViewMaterializer) -> None:
        materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        view = materializer.refresh_investor("inv-a")
        assert view.deal_ids == ["b", "a"]

    def test_known_investors(self, materializer: ViewMaterializer) -> None:
        materializer.filter_store.put(build_filter_set(_funding_cap("inv-b", 50)))
        materializer.recompute_investor("inv-open")
        assert materializer.known_investors() == ["inv-b", "inv-open"]


class TestViewProperties:
    """Properties that hold for every published view."""

    @pytest.fixture
    def mixed(self, materializer: ViewMaterializer) -> ViewMaterializer:
        materializer.catalog.upsert(_make_deal("d", 40, date(2026, 1, 4), ratio=0.08))
        materializer.catalog.upsert(_make_deal("e", 70, date(2026, 1, 6), ratio=0.03))
        materializer.catalog.upsert(_make_deal("f", 20, date(2026, 1, 7), ratio=0.10))
        return materializer

    def test_views_are_subsets_of_catalog(self, mixed: ViewMaterializer) -> None:
        catalog_ids = {d.id for d in mixed.catalog.get_all()}
        configs = [
            {"investor_id": "inv-open"},
            _funding_cap("inv-cap", 50),
            {**_funding_cap("inv-risk", 100), "risk": [_risk("revenue_share_ratio", "<=", 0.05)]},
            {
                "investor_id": "inv-retail",
                "assessment": [{"dimension": "industry", "operator": "member", "threshold": ["retail"]}],
            },
        ]
        for config in configs:
            assert _publish(mixed, config) <= catalog_ids

    def test_stricter_risk_rules_never_grow_view(self, mixed: ViewMaterializer) -> None:
        """Each added risk rule narrows or keeps the view; removing them one by one widens it back."""
        steps = [
            [],
            [_risk("revenue_share_ratio", "<=", 0.08)],
            [_risk("revenue_share_ratio", "<=", 0.08), _risk("revenue_share_ratio", "<=", 0.05)],
            [
                _risk("revenue_share_ratio", "<=", 0.08),
                _risk("revenue_share_ratio", "<=", 0.05),
                _risk("funding_amount", "<=", 50),
            ],
        ]
        config = _funding_cap("inv-a", 100)

        tightening = [_publish(mixed, {**config, "risk": risk}) for risk in steps]
        for wider, narrower in zip(tightening, tightening[1:]):
            assert narrower <= wider
        assert tightening[0] == {"a", "b", "c", "d", "e", "f"}
        assert tightening[-1] == {"a", "b"}

        loosening = [_publish(mixed, {**config, "risk": risk}) for risk in reversed(steps)]
        for narrower, wider in zip(loosening, loosening[1:]):
            assert narrower <= wider
        assert loosening == list(reversed(tightening))

    def test_removing_every_rule_never_shrinks_view(self, mixed: ViewMaterializer) -> None:
        strict = _publish(
            mixed, {**_funding_cap("inv-a", 50), "risk": [_risk("revenue_share_ratio", "<=", 0.05)]}
        )
        assert strict == {"a", "b"}
        assert _publish(mixed, {"investor_id": "inv-a"}) >= strict


class TestPreview:
    """Tests for unpublished previews."""

    def test_preview_without_filter_set(self, materializer: ViewMaterializer) -> None:
        view = materializer.preview("inv-new")
        assert view.filter_set_version == 0
        assert view.deal_ids == ["b", "c", "a"]
        assert materializer.view_store.get("inv-new") is None
        assert materializer.evaluation_log.history("a", "inv-new") == []
        assert materializer.known_investors() == []

    def test_preview_uses_saved_filter_set(self, materializer: ViewMaterializer) -> None:
        materializer.filter_store.put(build_filter_set(_funding_cap("inv-a", 50)))
        view = materializer.preview("inv-a")
        assert view.filter_set_version == 1
        assert view.deal_ids == ["b", "a"]
        assert materializer.view_store.get("inv-a") is None
