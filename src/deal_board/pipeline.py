"""Pipeline facade: catalog + filter sets -> matching -> opportunity views, with resubmission feedback."""

import logging
from pathlib import Path
from typing import Optional

from deal_board.config import Settings
from deal_board.materializer import ViewMaterializer
from deal_board.models.deal import Deal, DealStatus
from deal_board.models.filters import InvestorFilterSet, build_filter_set
from deal_board.models.results import (
    EvaluationResult,
    EvaluationStage,
    OpportunityPage,
    OpportunityView,
)
from deal_board.notify import EventSink, ResubmissionNotifier, SqliteEventSink, WebhookSink
from deal_board.store import DealCatalog, EvaluationLog, FilterRuleStore, OpportunityViewStore

logger = logging.getLogger(__name__)


class DealPipeline:
    """
    Entry point for the display and applicant-facing layers.

    Writes (deal submission, status changes, filter edits, resubmissions)
    trigger view recomputation synchronously and return once views are
    published.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        workers: int = 4,
        sinks: Optional[list[EventSink]] = None,
    ):
        self.catalog = DealCatalog(db_path)
        self.filter_store = FilterRuleStore(db_path)
        self.view_store = OpportunityViewStore(db_path)
        self.evaluation_log = EvaluationLog(db_path)
        self.event_store = SqliteEventSink(db_path)
        self.notifier = ResubmissionNotifier([self.event_store, *(sinks or [])])
        self.materializer = ViewMaterializer(
            self.catalog,
            self.filter_store,
            self.view_store,
            self.evaluation_log,
            self.notifier,
            max_workers=workers,
        )

    @classmethod
    def from_settings(cls, settings: Settings, sinks: Optional[list[EventSink]] = None) -> "DealPipeline":
        """Build from Settings; adds a WebhookSink when a webhook URL is configured."""
        all_sinks = list(sinks or [])
        if settings.webhook_url:
            all_sinks.append(WebhookSink(settings.webhook_url))
        return cls(settings.db_path, workers=settings.workers, sinks=all_sinks)

    # Deals

    def ingest(self, deals: list[Deal]) -> tuple[int, int]:
        """Upsert many deals, then refresh views once. Returns (new, changed) counts."""
        items_new = 0
        items_changed = 0
        for deal in deals:
            was_new, was_changed = self.catalog.upsert(deal)
            items_new += int(was_new)
            items_changed += int(was_changed)
        if items_new or items_changed:
            self.materializer.on_deals_changed()
        return items_new, items_changed

    def submit_deal(self, deal: Deal) -> Deal:
        """Add a new deal (or refresh facts of an existing one) and update every investor's view."""
        existing = self.catalog.get(deal.id)
        was_new, was_changed = self.catalog.upsert(deal)
        if was_new:
            self.materializer.on_deals_changed()
        elif was_changed and existing is not None:
            self.materializer.on_deals_changed(dimensions=deal.changed_dimensions(existing))
        return self.catalog.require(deal.id)

    def resubmit_deal(self, deal: Deal) -> Deal:
        """Applicant update after feedback: new deal version, needs_resubmission -> pending."""
        _, changed = self.catalog.resubmit(deal)
        logger.info("Deal %s resubmitted; changed dimensions: %s", deal.id, sorted(changed))
        self.materializer.on_deals_changed()
        return self.catalog.require(deal.id)

    def update_status(self, deal_id: str, status: DealStatus | str) -> Deal:
        """Review decision from the display layer (approve / reject). Forward moves only."""
        with self.materializer.deal_locks.hold(deal_id):
            deal, changed = self.catalog.update_status(deal_id, status)
        if changed:
            self.materializer.on_deals_changed()
        return deal

    def get_deal(self, deal_id: str) -> Deal:
        return self.catalog.require(deal_id)

    # Filter sets

    def put_filter_set(self, filter_set: InvestorFilterSet | dict) -> InvestorFilterSet:
        """
        Create or replace an investor's filter set (raises FilterConfigError on bad
        config, before anything is stored), bump its version and recompute the view.
        """
        if isinstance(filter_set, dict):
            filter_set = build_filter_set(filter_set)
        stored = self.filter_store.put(filter_set)
        self.materializer.on_filter_set_changed(stored)
        return stored

    def get_filter_set(self, investor_id: str) -> InvestorFilterSet:
        return self.filter_store.get_or_empty(investor_id)

    # Views and explainability

    def get_view(self, investor_id: str) -> OpportunityView:
        """
        Current view. An investor with no saved filter set and no published view
        gets an unpublished preview under the empty filter set, with no side effects.
        """
        view = self.view_store.get(investor_id)
        if view is None and self.filter_store.get(investor_id) is None:
            return self.materializer.preview(investor_id)
        if view is None:
            self.materializer.recompute_investor(investor_id)
            view = self.view_store.get(investor_id)
        if view is None:
            # Lost a race with a newer filter set; the newer view is published by now
            view = self.materializer.refresh_investor(investor_id) or self.view_store.get(investor_id)
        return view

    def get_opportunity_view(self, investor_id: str, page: int = 1, page_size: int = 20) -> OpportunityPage:
        """Ordered deal ids with scores for one investor, paginated (page is 1-based)."""
        page = max(1, page)
        page_size = max(1, page_size)
        view = self.get_view(investor_id)
        start = (page - 1) * page_size
        return OpportunityPage(
            investor_id=investor_id,
            filter_set_version=view.filter_set_version,
            page=page,
            page_size=page_size,
            total=len(view.entries),
            entries=view.entries[start : start + page_size],
            generated_at=view.generated_at,
        )

    def get_evaluation(self, deal_id: str, investor_id: str) -> dict[EvaluationStage, EvaluationResult]:
        """Latest stage verdicts and reasons for (deal, investor)."""
        return self.evaluation_log.latest(deal_id, investor_id)

    def is_stale(self, result: EvaluationResult) -> bool:
        """True if the result predates the investor's current rules or the deal's current version."""
        deal = self.catalog.get(result.deal_id)
        deal_version = deal.version if deal else result.deal_version
        return result.is_stale(self.filter_store.current_version(result.investor_id), deal_version)

    def refresh_all(self) -> dict[str, Optional[OpportunityView]]:
        """Full recompute for every known investor."""
        return {inv: self.materializer.recompute_investor(inv) for inv in self.materializer.known_investors()}
