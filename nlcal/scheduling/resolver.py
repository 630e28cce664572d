"""
Scheduling Resolver

Decides whether a requested window is free and, when it is not, walks
forward in fixed steps to find the next suitable slot.

Rules:
    - Overlap is strict on both sides: windows that only touch never conflict.
    - A conflict is acceptable only for a flexible command whose conflicting
      events are all transparent or tentative.
    - Suggestions stay inside business hours unless the command is flexible
      and never overlap an event that blocks time.
    - Writes are guarded: check, wait, check again, then write. This narrows
      the race with other writers; it does not close it.

Usage:
    resolver = SchedulingResolver(gateway, config)
    resolution = await resolver.resolve(command)
    if not resolution.available:
        print(resolution.alternatives)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from nlcal.config_models import EngineConfig
from nlcal.errors import GatewayError, Unavailable
from nlcal.gateway.base import CalendarGateway
from nlcal.logging_config import get_logger
from nlcal.models import (
    Command,
    EventStatus,
    ExternalEvent,
    Priority,
    TimeWindow,
    Transparency,
)

logger = get_logger(__name__)


@dataclass
class Resolution:
    """Availability verdict for one window."""

    window: TimeWindow
    available: bool
    conflicts: list[ExternalEvent] = field(default_factory=list)
    alternatives: list[TimeWindow] = field(default_factory=list)

    @property
    def suggestion(self) -> TimeWindow | None:
        return self.alternatives[0] if self.alternatives else None


class SchedulingResolver:
    """Conflict detection and alternative search against a CalendarGateway."""

    def __init__(self, gateway: CalendarGateway, config: EngineConfig | None = None):
        self.gateway = gateway
        self.config = config or EngineConfig()

    # =========================================================================
    # Conflicts
    # =========================================================================

    async def find_conflicts(
        self,
        window: TimeWindow,
        exclude_event_id: str | None = None,
    ) -> list[ExternalEvent]:
        """Events overlapping the window (the ConflictSet), minus the excluded one."""
        events = await self.gateway.list_events(window.start, window.end)
        return [
            event for event in events
            if event.id != exclude_event_id
            and event.status != EventStatus.CANCELLED
            and event.window.overlaps(window)
        ]

    def is_suitable(self, command: Command, conflicts: list[ExternalEvent]) -> bool:
        if not conflicts:
            return True
        if not command.context.is_flexible:
            return False
        return all(
            c.transparency == Transparency.TRANSPARENT or c.status == EventStatus.TENTATIVE
            for c in conflicts
        )

    async def check_window(
        self,
        command: Command,
        window: TimeWindow | None = None,
        exclude_event_id: str | None = None,
    ) -> tuple[bool, list[ExternalEvent]]:
        """(available, conflicts) for a window, trying the gateway's free check first."""
        window = window or command.window
        if await self.gateway.check_free(window.start, window.end):
            return True, []
        conflicts = await self.find_conflicts(window, exclude_event_id)
        return self.is_suitable(command, conflicts), conflicts

    async def is_available(
        self,
        command: Command,
        window: TimeWindow | None = None,
        exclude_event_id: str | None = None,
    ) -> bool:
        available, _ = await self.check_window(command, window, exclude_event_id)
        return available

    # =========================================================================
    # Alternatives
    # =========================================================================

    def in_business_hours(self, window: TimeWindow) -> bool:
        """Whether the whole window sits inside one business day."""
        hours = self.config.business_hours
        start = window.start
        if hours.weekdays_only and start.weekday() >= 5:
            return False
        day = start.replace(hour=0, minute=0, second=0, microsecond=0)
        opens = day + timedelta(hours=hours.start_hour)
        closes = day + timedelta(hours=hours.end_hour)
        return opens <= window.start and window.end <= closes

    def step_for(self, command: Command) -> timedelta:
        search = self.config.search
        if command.context.priority == Priority.HIGH or command.context.is_urgent:
            return timedelta(minutes=search.high_priority_step_minutes)
        return timedelta(minutes=search.step_minutes)

    async def suggest_alternatives(
        self,
        command: Command,
        limit: int | None = None,
        exclude_event_id: str | None = None,
        start: datetime | None = None,
    ) -> list[TimeWindow]:
        """
        Walk forward from the requested start and collect free windows.

        Args:
            command: The command whose duration, priority and flexibility apply
            limit: How many windows to return (default: one)
            exclude_event_id: Event to ignore, e.g. the one being moved
            start: Where to begin the walk (default: the command's start)

        Returns:
            Up to ``limit`` windows in chronological order.
        """
        limit = limit or self.config.search.suggestion_limit
        begin = start or command.start_time
        duration = timedelta(minutes=command.duration)
        horizon = begin + timedelta(days=self.config.search.horizon_days)
        step = self.step_for(command)

        events = await self.gateway.list_events(begin, horizon + duration)
        busy = [
            e.window for e in events
            if e.is_blocking and e.id != exclude_event_id
        ]
        busy.sort(key=lambda w: w.start)

        found: list[TimeWindow] = []
        candidate = begin
        while candidate < horizon and len(found) < limit:
            window = TimeWindow(candidate, candidate + duration)
            if (
                (command.context.is_flexible or self.in_business_hours(window))
                and not any(window.overlaps(b) for b in busy)
            ):
                found.append(window)
                candidate = window.end
                continue
            candidate += step

        logger.debug(
            "alternatives_searched",
            requested=command.start_time.isoformat(),
            found=len(found),
            step_minutes=int(step.total_seconds() // 60),
        )
        return found

    # =========================================================================
    # Resolution and guarded writes
    # =========================================================================

    async def resolve(
        self,
        command: Command,
        exclude_event_id: str | None = None,
    ) -> Resolution:
        """Availability verdict, with alternatives when the window is taken.

        A failed alternative search leaves ``alternatives`` empty rather than
        hiding the conflict behind a gateway error.
        """
        window = command.window
        available, conflicts = await self.check_window(command, window, exclude_event_id)
        if available:
            return Resolution(window=window, available=True, conflicts=conflicts)

        alternatives: list[TimeWindow] = []
        try:
            alternatives = await self.suggest_alternatives(
                command,
                limit=self.config.search.conflict_alternatives,
                exclude_event_id=exclude_event_id,
            )
        except GatewayError as e:
            logger.warning("alternatives_unavailable", error=e.message)
        return Resolution(
            window=window,
            available=False,
            conflicts=conflicts,
            alternatives=alternatives,
        )

    async def guarded_write(
        self,
        command: Command,
        write: Callable[[], Awaitable[ExternalEvent]],
        exclude_event_id: str | None = None,
    ) -> ExternalEvent:
        """Resolve, wait, re-check, then write.

        Raises:
            Unavailable: The window was taken at the first check (with
                alternatives attached), or became taken before the second.
        """
        resolution = await self.resolve(command, exclude_event_id)
        window = resolution.window
        if not resolution.available:
            raise Unavailable(
                f"Requested time conflicts with {len(resolution.conflicts)} event(s)",
                window,
                resolution.conflicts,
                resolution.alternatives,
            )

        await asyncio.sleep(self.config.guard.recheck_delay_seconds)

        available, conflicts = await self.check_window(command, window, exclude_event_id)
        if not available:
            logger.info("slot_taken_during_guard", start=window.start.isoformat())
            raise Unavailable("Requested time became unavailable", window, conflicts)

        return await write()
