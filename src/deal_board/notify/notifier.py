"""Resubmission notifier: turns risk failures into applicant feedback events."""

import logging
from typing import Optional

from deal_board.models.events import ResubmissionEvent
from deal_board.models.results import MatchOutcome, MatchState

from .sinks import EventSink

logger = logging.getLogger(__name__)


class ResubmissionNotifier:
    """
    Emits a ResubmissionEvent for every NEEDS_RESUBMISSION outcome.
    Fire-and-forget: a failing sink is logged and never stops the pipeline.
    """

    def __init__(self, sinks: Optional[list[EventSink]] = None):
        self.sinks: list[EventSink] = list(sinks or [])

    def add_sink(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def notify(self, outcome: MatchOutcome) -> Optional[ResubmissionEvent]:
        """Emit an event if the outcome needs resubmission; returns the event or None."""
        if outcome.state != MatchState.NEEDS_RESUBMISSION or outcome.risk is None:
            return None
        event = ResubmissionEvent(
            deal_id=outcome.deal_id,
            deal_version=outcome.deal_version,
            investor_id=outcome.investor_id,
            failing_dimensions=outcome.risk.failing_dimensions,
            reasons=outcome.risk.reasons,
        )
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as e:
                logger.warning(
                    "Resubmission sink %s failed for deal %s: %s", type(sink).__name__, event.deal_id, e
                )
        return event
