"""Resubmission feedback to applicants."""

from .notifier import ResubmissionNotifier
from .sinks import EventSink, InMemorySink, SqliteEventSink, WebhookSink

__all__ = ["EventSink", "InMemorySink", "ResubmissionNotifier", "SqliteEventSink", "WebhookSink"]
