"""Opportunity view materializer: turns per-pair match outcomes into investor-scoped views."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

from deal_board.errors import InvalidTransitionError
from deal_board.filtering import MatchingEngine
from deal_board.lifecycle import reconcile_status
from deal_board.locks import KeyedLocks
from deal_board.models.deal import Deal
from deal_board.models.filters import InvestorFilterSet
from deal_board.models.results import (
    EvaluationResult,
    MatchOutcome,
    OpportunityView,
    ViewEntry,
    view_sort_key,
)
from deal_board.notify import ResubmissionNotifier
from deal_board.store import (
    DealCatalog,
    EvaluationLog,
    FilterRuleStore,
    OpportunityViewStore,
    results_from_outcome,
)

logger = logging.getLogger(__name__)


class DimensionIndex:
    """dimension name -> investors whose rules reference it."""

    def __init__(self) -> None:
        self._by_dimension: dict[str, set[str]] = {}

    def update(self, filter_set: InvestorFilterSet) -> None:
        """Replace the entries for filter_set's investor."""
        self.remove(filter_set.investor_id)
        for dim in filter_set.dimensions:
            self._by_dimension.setdefault(dim, set()).add(filter_set.investor_id)

    def remove(self, investor_id: str) -> None:
        for investors in self._by_dimension.values():
            investors.discard(investor_id)

    def interested(self, dimensions: Iterable[str]) -> set[str]:
        found: set[str] = set()
        for dim in dimensions:
            found |= self._by_dimension.get(dim, set())
        return found


def _result_signature(result: EvaluationResult) -> tuple:
    return (
        result.passed,
        result.score,
        result.state,
        tuple(result.reasons),
        result.filter_set_version,
        result.deal_version,
    )


def _safe_match(engine: MatchingEngine, deal: Deal) -> Optional[MatchOutcome]:
    """Match one pair; a failure is logged and the pair omitted, never included."""
    try:
        return engine.match(deal)
    except Exception as e:
        logger.warning(
            "Evaluation failed for deal %s / investor %s, omitting: %s",
            deal.id,
            engine.filter_set.investor_id,
            e,
        )
        return None


class ViewMaterializer:
    """
    Recomputes and publishes OpportunityViews.

    - recompute_investor: full scan of the catalog for one investor (filter-set change).
    - on_deals_changed: re-evaluate only changed deals on top of each investor's current view.
    - preview: compute a view without publishing it.

    Publication for an investor is serialized under that investor's lock and
    version-checked by the view store; a superseded job finishes but its view,
    evaluation records, events and status effects are dropped.
    """

    def __init__(
        self,
        catalog: DealCatalog,
        filter_store: FilterRuleStore,
        view_store: OpportunityViewStore,
        evaluation_log: EvaluationLog,
        notifier: Optional[ResubmissionNotifier] = None,
        *,
        max_workers: int = 4,
    ):
        self.catalog = catalog
        self.filter_store = filter_store
        self.view_store = view_store
        self.evaluation_log = evaluation_log
        self.notifier = notifier or ResubmissionNotifier()
        self.max_workers = max(1, max_workers)
        self.index = DimensionIndex()
        self.investor_locks = KeyedLocks()
        self.deal_locks = KeyedLocks()
        for fs in self.filter_store.get_all():
            self.index.update(fs)

    def known_investors(self) -> list[str]:
        """Investors with a saved filter set or a published view."""
        return sorted(set(self.filter_store.list_investors()) | set(self.view_store.list_investors()))

    def _evaluate(self, filter_set: InvestorFilterSet, deals: list[Deal]) -> dict[str, Optional[MatchOutcome]]:
        """Match every deal in parallel. Failed pairs map to None."""
        engine = MatchingEngine(filter_set)
        if len(deals) <= 1 or self.max_workers == 1:
            return {d.id: _safe_match(engine, d) for d in deals}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            outcomes = list(pool.map(lambda d: _safe_match(engine, d), deals))
        return {d.id: o for d, o in zip(deals, outcomes)}

    @staticmethod
    def _merge_entries(
        entries: dict[str, ViewEntry],
        outcomes: dict[str, Optional[MatchOutcome]],
    ) -> dict[str, ViewEntry]:
        """Apply outcomes on top of existing entries: visible pairs are (re)placed, all others dropped."""
        for deal_id, outcome in outcomes.items():
            if outcome is not None and outcome.visible:
                entries[deal_id] = ViewEntry(
                    deal_id=deal_id, score=outcome.score, submitted_date=outcome.submitted_date
                )
            else:
                entries.pop(deal_id, None)
        return entries

    def preview(self, investor_id: str) -> OpportunityView:
        """
        The view investor_id would get from its current filter set (the empty set
        when none is saved), computed over a catalog snapshot. Nothing is
        published, recorded, notified or reconciled.
        """
        fs = self.filter_store.get_or_empty(investor_id)
        deals, revision = self.catalog.snapshot()
        entries = self._merge_entries({}, self._evaluate(fs, deals))
        return OpportunityView(
            investor_id=investor_id,
            filter_set_version=fs.version,
            catalog_revision=revision,
            entries=sorted(entries.values(), key=view_sort_key),
        )

    def recompute_investor(
        self,
        investor_id: str,
        filter_set: Optional[InvestorFilterSet] = None,
    ) -> Optional[OpportunityView]:
        """
        Full recompute of one investor's view against the whole catalog.
        filter_set is the version read at dispatch time; defaults to the current one.
        Returns the published view, or None if it was superseded.
        """
        fs = filter_set or self.filter_store.get_or_empty(investor_id)
        deals, revision = self.catalog.snapshot()
        outcomes = self._evaluate(fs, deals)
        logger.info(
            "Recomputed %s (filter set v%d): %d deals at revision %d",
            investor_id,
            fs.version,
            len(deals),
            revision,
        )
        return self._publish(fs, outcomes, revision, base=None)

    def refresh_investor(self, investor_id: str) -> Optional[OpportunityView]:
        """Bring one investor's view up to the catalog head, evaluating only changed deals."""
        fs = self.filter_store.get_or_empty(investor_id)
        view = self.view_store.get(investor_id)
        if view is None or view.filter_set_version != fs.version:
            return self.recompute_investor(investor_id, fs)
        return self._publish(fs, {}, view.catalog_revision, base=view)

    def on_filter_set_changed(self, filter_set: InvestorFilterSet) -> Optional[OpportunityView]:
        """Trigger (a): new filter-set version -> full recompute for that investor."""
        self.index.update(filter_set)
        return self.recompute_investor(filter_set.investor_id, filter_set)

    def on_deals_changed(
        self,
        dimensions: Optional[set[str]] = None,
    ) -> dict[str, Optional[OpportunityView]]:
        """
        Trigger (b): deals were created or changed.
        With dimensions given (attribute-only change, same deal version) only
        investors whose rules reference one of them are refreshed; otherwise all.
        """
        investors = self.known_investors()
        if dimensions is not None:
            interested = self.index.interested(dimensions)
            investors = [inv for inv in investors if inv in interested]
        if not investors:
            return {}

        def _refresh(investor_id: str) -> Optional[OpportunityView]:
            try:
                return self.refresh_investor(investor_id)
            except Exception:
                logger.exception("Refresh failed for investor %s", investor_id)
                return None

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            views = list(pool.map(_refresh, investors))
        return dict(zip(investors, views))

    def _publish(
        self,
        filter_set: InvestorFilterSet,
        outcomes: dict[str, Optional[MatchOutcome]],
        snapshot_revision: int,
        base: Optional[OpportunityView],
    ) -> Optional[OpportunityView]:
        investor_id = filter_set.investor_id
        with self.investor_locks.hold(investor_id):
            # Catch up on deals written after the snapshot this job read
            late, unreadable, head = self.catalog.changed_since(snapshot_revision)
            if late:
                outcomes = {**outcomes, **self._evaluate(filter_set, late)}

            entries: dict[str, ViewEntry] = {}
            if base is not None:
                entries = {e.deal_id: e for e in base.entries}
            # Rows that no longer deserialize cannot be shown as matching
            for deal_id in unreadable:
                entries.pop(deal_id, None)
            entries = self._merge_entries(entries, outcomes)

            view = OpportunityView(
                investor_id=investor_id,
                filter_set_version=filter_set.version,
                catalog_revision=head,
                entries=sorted(entries.values(), key=view_sort_key),
            )
            if not self.view_store.publish(view):
                logger.info(
                    "View for %s at filter set v%d superseded, dropped", investor_id, filter_set.version
                )
                return None

        done = [o for o in outcomes.values() if o is not None]
        for outcome in done:
            if self._already_recorded(outcome):
                continue
            self.evaluation_log.record(outcome)
            self.notifier.notify(outcome)
        self.reconcile_deals([o.deal_id for o in done])
        return view

    def _already_recorded(self, outcome: MatchOutcome) -> bool:
        """The newest logged run for the pair has the same stages with the same results."""
        previous = self.evaluation_log.latest(outcome.deal_id, outcome.investor_id)
        current = {r.stage: _result_signature(r) for r in results_from_outcome(outcome)}
        return current == {stage: _result_signature(r) for stage, r in previous.items()}

    def reconcile_deals(self, deal_ids: Iterable[str]) -> dict[str, str]:
        """Apply the collective status verdict to each deal. Returns deal id -> new status."""
        filter_sets = {fs.investor_id: fs for fs in self.filter_store.get_all()}
        risk_investors = [inv for inv, fs in filter_sets.items() if fs.risk_rules]
        changed: dict[str, str] = {}
        for deal_id in dict.fromkeys(deal_ids):
            with self.deal_locks.hold(deal_id):
                deal = self.catalog.get(deal_id)
                if deal is None:
                    continue
                decisions = {
                    inv: r.state
                    for inv, r in self.evaluation_log.latest_decisions(deal_id, deal.version).items()
                    if r.state is not None
                    and r.filter_set_version == (filter_sets[inv].version if inv in filter_sets else 0)
                }
                target = reconcile_status(deal.status, decisions, risk_investors)
                if target is None:
                    continue
                try:
                    self.catalog.update_status(deal_id, target)
                except InvalidTransitionError as e:
                    logger.debug("Skipped status reconcile for %s: %s", deal_id, e)
                    continue
                changed[deal_id] = target.value
        return changed
