"""In-memory event warehouse.

Two append-only collections: analytics events and waitlist entries. The
store is created by the application factory and handed to every handler;
tests build their own instances. Storage is ephemeral by design and lives
only as long as the process.

Every mutation is a single append (or a full clear) under one lock, and
every read works on a copy taken under that lock, so a failed request can
never leave a collection half-written.
"""

import logging
import threading
from typing import Callable

from src.analysis.metrics import conversion_metrics, unique_sessions
from src.collector.schemas import AnalyticsEvent, ConversionMetrics, EventType, WaitlistEntry
from src.errors import DuplicateEmailError

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


class EventStore:
    def __init__(self):
        self._events: list[AnalyticsEvent] = []
        self._waitlist: list[WaitlistEntry] = []
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    # --- Change notification ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback fired after each write; returns an unsubscribe hook.

        The callback receives ``"event"`` or ``"waitlist"``. Failures inside
        listeners are logged and never affect the write.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(kind)
            except Exception:
                logger.exception("Store listener failed for %s write", kind)

    # --- Writes ---

    def store_event(self, event: AnalyticsEvent) -> None:
        with self._lock:
            self._events.append(event)
        logger.debug("Stored %s event %s (variant %s)", event.type.value, event.id, event.variant)
        self._notify("event")

    def store_waitlist_entry(self, entry: WaitlistEntry) -> None:
        with self._lock:
            if any(e.email == entry.email for e in self._waitlist):
                raise DuplicateEmailError(entry.email)
            self._waitlist.append(entry)
        logger.debug("Stored waitlist entry %s (variant %s)", entry.id, entry.variant)
        self._notify("waitlist")

    def clear_all(self) -> None:
        with self._lock:
            self._events = []
            self._waitlist = []
        logger.info("Cleared all events and waitlist entries")

    # --- Reads ---

    def get_events(self, include_test: bool = False) -> list[AnalyticsEvent]:
        with self._lock:
            events = list(self._events)
        if include_test:
            return events
        return [e for e in events if not e.is_test_session]

    def get_events_by_type(self, event_type: EventType | str, include_test: bool = False) -> list[AnalyticsEvent]:
        event_type = EventType(event_type)
        return [e for e in self.get_events(include_test) if e.type == event_type]

    def get_events_by_variant(self, variant: str, include_test: bool = False) -> list[AnalyticsEvent]:
        return [e for e in self.get_events(include_test) if e.variant == variant]

    def query_events(
        self,
        variant: str | None = None,
        event_type: EventType | str | None = None,
        include_test: bool = False,
    ) -> list[AnalyticsEvent]:
        events = self.get_events(include_test)
        if variant is not None:
            events = [e for e in events if e.variant == variant]
        if event_type is not None:
            event_type = EventType(event_type)
            events = [e for e in events if e.type == event_type]
        return events

    def get_waitlist_entries(self, include_test: bool = False) -> list[WaitlistEntry]:
        with self._lock:
            entries = list(self._waitlist)
            if include_test:
                return entries
            test_sessions = {e.session_id for e in self._events if e.is_test_session}

        # An entry is test traffic if it was stamped as such at write time, or
        # if any event from its session is flagged as a test session.
        return [
            e for e in entries
            if not e.is_test_session and not (e.session_id and e.session_id in test_sessions)
        ]

    def get_conversion_metrics(self, include_test: bool = False) -> dict[str, ConversionMetrics]:
        return conversion_metrics(self.get_events(include_test))

    def get_unique_sessions_count(self, variant: str | None = None, include_test: bool = False) -> int:
        return unique_sessions(self.get_events(include_test), variant)

    def snapshot(self, include_test: bool = False) -> tuple[list[AnalyticsEvent], list[WaitlistEntry]]:
        """Events and waitlist entries read under one lock acquisition."""
        with self._lock:
            return self.get_events(include_test), self.get_waitlist_entries(include_test)

    def counts(self) -> tuple[int, int]:
        with self._lock:
            return len(self._events), len(self._waitlist)
