"""
Calendar Gateway Base

Abstract interface to whatever owns the calendar (a provider API, a database,
an in-memory store). The engine never touches storage directly; everything
goes through these five calls.

Usage:
    from nlcal.gateway.base import CalendarGateway
    from nlcal.gateway.memory import InMemoryGateway

    gateway: CalendarGateway = InMemoryGateway()
    events = await gateway.list_events(start, end)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from nlcal.models import Command, ExternalEvent


class TransientGatewayError(Exception):
    """A failure worth retrying (rate limit, 5xx, dropped connection).

    Implementations wrapping an HTTP client raise this for retryable
    statuses. ``OSError`` and ``TimeoutError`` are treated the same way.
    """


class CalendarGateway(ABC):
    """
    Abstract calendar collaborator.

    Implementations raise ``TransientGatewayError`` (or let ``OSError`` /
    ``TimeoutError`` escape) for transport failures; the retrying wrapper
    turns repeated ones into ``GatewayError``. Anything else, domain
    failures included, is passed through untouched.
    """

    @property
    def name(self) -> str:
        """Short name used in logs."""
        return type(self).__name__

    @abstractmethod
    async def list_events(self, start: datetime, end: datetime) -> list[ExternalEvent]:
        """
        Events that may intersect [start, end).

        Args:
            start: Window start
            end: Window end

        Returns:
            Events ordered by start time. Callers apply their own overlap test.
        """

    @abstractmethod
    async def check_free(self, start: datetime, end: datetime) -> bool:
        """
        Whether no blocking event overlaps [start, end).

        A True answer lets the resolver skip its own conflict query.
        """

    @abstractmethod
    async def create_event(self, command: Command) -> ExternalEvent:
        """Create an event from a command and return the stored projection."""

    @abstractmethod
    async def update_event(self, event_id: str, command: Command) -> ExternalEvent:
        """Apply a command's fields to an existing event."""

    @abstractmethod
    async def delete_event(self, event_id: str) -> bool:
        """Delete an event. Returns True when something was removed."""
