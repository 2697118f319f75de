"""Unit tests for ResubmissionNotifier and event sinks."""

from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from deal_board.filtering import MatchingEngine
from deal_board.models.deal import Deal
from deal_board.models.events import ResubmissionEvent
from deal_board.models.filters import build_filter_set
from deal_board.notify import InMemorySink, ResubmissionNotifier, SqliteEventSink, WebhookSink


def _make_deal(**kwargs) -> Deal:
    defaults = {
        "id": "DGT-2026-001",
        "funding_amount": 35,
        "revenue_share_ratio": 0.08,
        "net_margin": 0.05,
        "submitted_date": date(2026, 1, 10),
    }
    defaults.update(kwargs)
    return Deal(**defaults)


@pytest.fixture
def strict_engine() -> MatchingEngine:
    """Investor with two risk rules the default deal fails."""
    fs = build_filter_set(
        {
            "investor_id": "inv-strict",
            "risk": [
                {"dimension": "revenue_share_ratio", "operator": "<=", "threshold": 0.05},
                {"dimension": "net_margin", "operator": ">=", "threshold": 0.1},
            ],
        }
    )
    return MatchingEngine(fs)


class TestResubmissionNotifier:
    """Tests for event emission."""

    def test_emits_for_needs_resubmission(self, strict_engine: MatchingEngine) -> None:
        """Event lists every failing dimension."""
        sink = InMemorySink()
        notifier = ResubmissionNotifier([sink])
        event = notifier.notify(strict_engine.match(_make_deal()))
        assert event.failing_dimensions == ["revenue_share_ratio", "net_margin"]
        assert event.investor_id == "inv-strict"
        assert sink.drain() == [event]

    def test_no_event_when_visible(self, strict_engine: MatchingEngine) -> None:
        sink = InMemorySink()
        notifier = ResubmissionNotifier([sink])
        assert notifier.notify(strict_engine.match(_make_deal(revenue_share_ratio=0.05, net_margin=0.2))) is None
        assert len(sink) == 0

    def test_failing_sink_does_not_stop_others(self, strict_engine: MatchingEngine) -> None:
        """A raising sink is logged; later sinks still receive the event."""
        broken = MagicMock()
        broken.emit.side_effect = RuntimeError("sink down")
        sink = InMemorySink()
        notifier = ResubmissionNotifier([broken])
        notifier.add_sink(sink)
        event = notifier.notify(strict_engine.match(_make_deal()))
        assert event is not None
        assert len(sink) == 1


class TestApplicantPayload:
    """Applicant-facing payload hides investor context."""

    def test_payload_fields(self) -> None:
        event = ResubmissionEvent(
            deal_id="DGT-2026-001",
            investor_id="inv-strict",
            failing_dimensions=["revenue_share_ratio"],
            reasons=["revenue_share_ratio: 0.08 > 0.05"],
        )
        payload = event.applicant_payload()
        assert set(payload) == {"deal_id", "failing_dimensions", "timestamp"}
        assert payload["failing_dimensions"] == ["revenue_share_ratio"]


class TestSqliteEventSink:
    """Tests for the durable event stream."""

    def test_emit_and_list(self, temp_db: Path) -> None:
        sink = SqliteEventSink(temp_db)
        sink.emit(ResubmissionEvent(deal_id="a", investor_id="inv-1", failing_dimensions=["x"], reasons=["x: missing"]))
        sink.emit(ResubmissionEvent(deal_id="b", investor_id="inv-1", failing_dimensions=["y"]))
        assert [e.deal_id for e in sink.list_events()] == ["a", "b"]
        stored = sink.list_events("a")
        assert len(stored) == 1
        assert stored[0].reasons == ["x: missing"]


class TestWebhookSink:
    """Tests for WebhookSink with a mocked httpx client."""

    def test_posts_applicant_payload(self) -> None:
        client = MagicMock()
        sink = WebhookSink("https://applicants.example/hooks/resubmission", client=client)
        event = ResubmissionEvent(deal_id="a", investor_id="inv-1", failing_dimensions=["x"])
        sink.emit(event)
        client.post.assert_called_once_with(
            "https://applicants.example/hooks/resubmission", json=event.applicant_payload()
        )
        client.post.return_value.raise_for_status.assert_called_once()

    def test_http_error_propagates_to_notifier(self, strict_engine: MatchingEngine) -> None:
        """HTTP failure raises from the sink and is absorbed by the notifier."""
        client = MagicMock()
        client.post.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
            "503", request=MagicMock(), response=MagicMock(status_code=503)
        )
        sink = WebhookSink("https://applicants.example/hooks", client=client)
        with pytest.raises(httpx.HTTPStatusError):
            sink.emit(ResubmissionEvent(deal_id="a", investor_id="inv-1"))
        assert ResubmissionNotifier([sink]).notify(strict_engine.match(_make_deal())) is not None
