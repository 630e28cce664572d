"""In-process calendar gateway used by tests and the CLI."""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from nlcal.errors import NotFound
from nlcal.gateway.base import CalendarGateway
from nlcal.logging_config import get_logger
from nlcal.models import Command, EventStatus, ExternalEvent, TimeWindow

logger = get_logger(__name__)


class InMemoryGateway(CalendarGateway):
    """Holds events in a dict keyed by id.

    Cancelled events are stored but never listed. Transparent and tentative
    events are listed; ``check_free`` ignores transparent ones.
    """

    def __init__(self, events: Iterable[ExternalEvent] | None = None):
        self._events: dict[str, ExternalEvent] = {}
        for event in events or []:
            self._events[event.id] = event

    @classmethod
    def from_json(cls, path: str | Path) -> InMemoryGateway:
        """Seed from a JSON file holding a list of events (or {"events": [...]})."""
        with open(path) as f:
            data: Any = json.load(f)
        if isinstance(data, dict):
            data = data.get("events", [])
        return cls(ExternalEvent.from_dict(item) for item in data)

    @property
    def events(self) -> list[ExternalEvent]:
        """Every stored event, cancelled included, ordered by start."""
        return sorted(self._events.values(), key=lambda e: e.start)

    def get(self, event_id: str) -> ExternalEvent | None:
        return self._events.get(event_id)

    async def list_events(self, start: datetime, end: datetime) -> list[ExternalEvent]:
        query = TimeWindow(start, end)
        return [
            event for event in self.events
            if event.status != EventStatus.CANCELLED and event.window.overlaps(query)
        ]

    async def check_free(self, start: datetime, end: datetime) -> bool:
        return not any(e.is_blocking for e in await self.list_events(start, end))

    async def create_event(self, command: Command) -> ExternalEvent:
        event = ExternalEvent(
            id=uuid.uuid4().hex[:12],
            title=command.title,
            window=command.window,
            location=command.location,
            attendees=list(command.attendees),
            recurrence_rule=command.recurrence.to_rrule() if command.recurrence else None,
        )
        self._events[event.id] = event
        logger.debug("memory_event_created", event_id=event.id, title=event.title)
        return event

    async def update_event(self, event_id: str, command: Command) -> ExternalEvent:
        existing = self._events.get(event_id)
        if existing is None:
            raise NotFound(f"Unknown event: {event_id}", {"event_id": event_id})

        event = ExternalEvent(
            id=existing.id,
            title=command.title or existing.title,
            window=command.window,
            location=command.location or existing.location,
            attendees=list(command.attendees or existing.attendees),
            recurrence_rule=(
                command.recurrence.to_rrule() if command.recurrence else existing.recurrence_rule
            ),
            transparency=existing.transparency,
            status=existing.status,
        )
        self._events[event_id] = event
        logger.debug("memory_event_updated", event_id=event_id)
        return event

    async def delete_event(self, event_id: str) -> bool:
        removed = self._events.pop(event_id, None) is not None
        logger.debug("memory_event_deleted", event_id=event_id, removed=removed)
        return removed
