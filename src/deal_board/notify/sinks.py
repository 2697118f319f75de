"""Destinations for resubmission events."""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx

from deal_board.models.events import ResubmissionEvent
from deal_board.store.db import SqliteStore

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """Receives resubmission events. Delivery and deduplication are the sink's concern."""

    @abstractmethod
    def emit(self, event: ResubmissionEvent) -> None:
        pass


class InMemorySink(EventSink):
    """Thread-safe queue drained by the applicant-facing layer."""

    def __init__(self) -> None:
        self._events: deque[ResubmissionEvent] = deque()
        self._lock = threading.Lock()

    def emit(self, event: ResubmissionEvent) -> None:
        with self._lock:
            self._events.append(event)

    def drain(self) -> list[ResubmissionEvent]:
        """Return and clear all queued events, oldest first."""
        with self._lock:
            events = list(self._events)
            self._events.clear()
        return events

    def __len__(self) -> int:
        return len(self._events)


class SqliteEventSink(SqliteStore, EventSink):
    """Durable event stream in the resubmission_events table."""

    def emit(self, event: ResubmissionEvent) -> None:
        with self._write_transaction() as conn:
            conn.execute(
                """
                INSERT INTO resubmission_events (deal_id, deal_version, investor_id, failing_dimensions, reasons, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    event.deal_id,
                    event.deal_version,
                    event.investor_id,
                    json.dumps(event.failing_dimensions),
                    json.dumps(event.reasons),
                    event.timestamp.isoformat(),
                ),
            )

    def list_events(self, deal_id: Optional[str] = None) -> list[ResubmissionEvent]:
        """Stored events, oldest first, optionally for one deal."""
        query = "SELECT * FROM resubmission_events"
        params: tuple = ()
        if deal_id:
            query += " WHERE deal_id = ?"
            params = (deal_id,)
        with self._connection() as conn:
            rows = conn.execute(query + " ORDER BY id", params).fetchall()
        return [
            ResubmissionEvent(
                deal_id=r["deal_id"],
                deal_version=r["deal_version"],
                investor_id=r["investor_id"],
                failing_dimensions=json.loads(r["failing_dimensions"]),
                reasons=json.loads(r["reasons"]),
                timestamp=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]


class WebhookSink(EventSink):
    """POSTs the applicant payload (no investor identity) to the applicant-facing service."""

    DEFAULT_HEADERS = {
        "User-Agent": "deal-board/0.1",
        "Content-Type": "application/json",
    }

    def __init__(self, url: str, client: Optional[httpx.Client] = None):
        self.url = url
        self._client = client or httpx.Client(timeout=10.0, headers=self.DEFAULT_HEADERS)

    def emit(self, event: ResubmissionEvent) -> None:
        response = self._client.post(self.url, json=event.applicant_payload())
        response.raise_for_status()
