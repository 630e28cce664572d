"""Shared test fixtures for nlcal tests.

This module provides common fixtures used across all test modules:
- A pinned reference time (Monday 2026-03-02 10:00) and parse context
- An engine config with no guard delay and no retry waits
- An in-memory gateway and an event factory

Usage:
    def test_something(context, make_event):
        event = make_event("Standup", "2026-03-02T09:00", 15)
        ...
"""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from nlcal.config_models import EngineConfig, GuardConfig, RetryConfig
from nlcal.gateway.memory import InMemoryGateway
from nlcal.models import (
    EventStatus,
    ExternalEvent,
    ParseContext,
    TimeWindow,
    Transparency,
)
from nlcal.parser.command_parser import CommandParser


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent

# Monday
NOW = datetime(2026, 3, 2, 10, 0)


# ─────────────────────────────────────────────────────────────────────────────
# Time and Config Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def context(now: datetime) -> ParseContext:
    """Parse context pinned to NOW."""
    return ParseContext(now=now)


@pytest.fixture
def config() -> EngineConfig:
    """Engine config that never sleeps.

    Returns:
        EngineConfig with zero guard delay and zero retry backoff
    """
    return EngineConfig(
        guard=GuardConfig(recheck_delay_seconds=0),
        retry=RetryConfig(
            max_attempts=3,
            initial_wait_seconds=0,
            max_wait_seconds=0,
            jitter_seconds=0,
        ),
    )


@pytest.fixture
def parser(config: EngineConfig) -> CommandParser:
    return CommandParser(config)


# ─────────────────────────────────────────────────────────────────────────────
# Calendar Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def make_event():
    """Factory for ExternalEvent objects.

    Usage:
        make_event("Standup", "2026-03-02T09:00", 15, transparency=Transparency.TRANSPARENT)
    """
    counter = {"n": 0}

    def _make(
        title: str,
        start: str,
        minutes: int = 60,
        transparency: Transparency = Transparency.OPAQUE,
        status: EventStatus = EventStatus.CONFIRMED,
        event_id: str | None = None,
    ) -> ExternalEvent:
        counter["n"] += 1
        begin = datetime.fromisoformat(start)
        return ExternalEvent(
            id=event_id or f"evt-{counter['n']}",
            title=title,
            window=TimeWindow(begin, begin + timedelta(minutes=minutes)),
            transparency=transparency,
            status=status,
        )

    return _make


@pytest.fixture
def gateway() -> InMemoryGateway:
    """Empty in-memory calendar."""
    return InMemoryGateway()
