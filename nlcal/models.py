"""Scheduling data models.

Defines actions, commands, time windows and calendar projections for the
command pipeline:
    text → Command → ExecutionResult
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Union
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from nlcal.errors import SchedulingError


class Action(str, Enum):
    """What a command does to the calendar."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    QUERY = "query"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class TimePreference(str, Enum):
    EXACT = "exact"
    APPROXIMATE = "approximate"
    FLEXIBLE = "flexible"


class QueryType(str, Enum):
    AVAILABILITY = "availability"
    EVENT_DETAILS = "event_details"


class Transparency(str, Enum):
    """Whether an event blocks time (opaque) or is marked free (transparent)."""

    OPAQUE = "opaque"
    TRANSPARENT = "transparent"


class EventStatus(str, Enum):
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CommandSource(str, Enum):
    REGEX = "regex"
    INTERPRETER = "interpreter"


class DispatchState(str, Enum):
    """Lifecycle of a command inside the dispatcher."""

    RECEIVED = "received"
    VALIDATED = "validated"
    RESOLVED = "resolved"
    EXECUTED = "executed"
    FAILED = "failed"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


# =============================================================================
# Time
# =============================================================================


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end)."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(
                f"Window end {self.end.isoformat()} must be after start {self.start.isoformat()}"
            )

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> TimeWindow:
        return cls(start=start, end=start + timedelta(minutes=minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: TimeWindow) -> bool:
        """Strict overlap; windows that only touch do not overlap."""
        return self.start < other.end and other.start < self.end

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimeWindow:
        return cls(start=_parse_dt(data["start"]), end=_parse_dt(data["end"]))


@dataclass
class Recurrence:
    """Repeat rule for a created event."""

    pattern: RecurrencePattern
    interval: int = 1
    by_day: list[str] = field(default_factory=list)  # RRULE day codes, e.g. "MO"

    def to_rrule(self) -> str:
        """Render as an iCalendar RRULE body (no "RRULE:" prefix)."""
        parts = [f"FREQ={self.pattern.value.upper()}"]
        if self.interval > 1:
            parts.append(f"INTERVAL={self.interval}")
        if self.by_day:
            parts.append(f"BYDAY={','.join(self.by_day)}")
        return ";".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.value,
            "interval": self.interval,
            "by_day": list(self.by_day),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Recurrence:
        return cls(
            pattern=RecurrencePattern(str(data["pattern"]).lower()),
            interval=int(data.get("interval") or 1),
            by_day=list(data.get("by_day") or []),
        )


# =============================================================================
# Parse context and audit trail
# =============================================================================


@dataclass
class ParseContext:
    """Inputs besides the text that influence parsing.

    ``now`` pins the reference instant, which makes parsing reproducible.
    """

    now: datetime | None = None
    timezone: str | None = None
    user_id: str | None = None
    thread_id: str | None = None
    previous_messages: list[dict[str, str]] = field(default_factory=list)

    def reference_time(self) -> datetime:
        if self.now is not None:
            return self.now
        if self.timezone:
            return datetime.now(ZoneInfo(self.timezone))
        return datetime.now()


@dataclass
class ContextFlags:
    is_urgent: bool = False
    is_flexible: bool = False
    priority: Priority = Priority.NORMAL
    time_preference: TimePreference = TimePreference.APPROXIMATE

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_urgent": self.is_urgent,
            "is_flexible": self.is_flexible,
            "priority": self.priority.value,
            "time_preference": self.time_preference.value,
        }


@dataclass
class AmbiguityRecord:
    """Which fields were guessed, which were missing, and why."""

    assumed_defaults: list[str] = field(default_factory=list)
    missing_information: list[str] = field(default_factory=list)
    confidence_reasons: list[str] = field(default_factory=list)
    alternative_interpretations: list[datetime] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assumed_defaults": list(self.assumed_defaults),
            "missing_information": list(self.missing_information),
            "confidence_reasons": list(self.confidence_reasons),
            "alternative_interpretations": [
                d.isoformat() for d in self.alternative_interpretations
            ],
        }


@dataclass
class ParseAmbiguity:
    """A low-confidence parse that a clarification flow should resolve."""

    confidence: float
    missing_information: list[str] = field(default_factory=list)
    alternatives: list[datetime] = field(default_factory=list)
    question: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidence": self.confidence,
            "missing_information": list(self.missing_information),
            "alternatives": [d.isoformat() for d in self.alternatives],
            "question": self.question,
        }


# =============================================================================
# Commands (tagged union keyed by ``action``)
# =============================================================================


@dataclass(kw_only=True)
class BaseCommand:
    """Fields shared by every command variant."""

    action: ClassVar[Action]

    title: str
    start_time: datetime
    duration: int  # minutes
    location: str | None = None
    attendees: list[str] = field(default_factory=list)
    recurrence: Recurrence | None = None
    confidence: float = 0.0
    context: ContextFlags = field(default_factory=ContextFlags)
    ambiguity: AmbiguityRecord = field(default_factory=AmbiguityRecord)
    needs_clarification: bool = False
    raw_text: str = ""
    source: CommandSource = CommandSource.REGEX

    def __post_init__(self) -> None:
        if self.duration <= 0:
            raise ValueError(f"duration must be positive, got {self.duration}")
        self.confidence = min(1.0, max(0.0, float(self.confidence)))

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)

    def parse_ambiguity(self) -> ParseAmbiguity | None:
        """The clarification state, or None when the parse is usable as-is."""
        if not self.needs_clarification:
            return None

        if self.ambiguity.alternative_interpretations:
            options = [self.start_time, *self.ambiguity.alternative_interpretations]
            question = "Did you mean " + " or ".join(
                f"{d.strftime('%I:%M %p').lstrip('0')} on {d.strftime('%A')}" for d in options
            ) + "?"
        elif self.ambiguity.missing_information:
            question = "Could you tell me the " + ", ".join(
                self.ambiguity.missing_information
            ) + "?"
        else:
            question = "Could you rephrase that request?"

        return ParseAmbiguity(
            confidence=self.confidence,
            missing_information=list(self.ambiguity.missing_information),
            alternatives=list(self.ambiguity.alternative_interpretations),
            question=question,
        )

    def with_changes(self, **changes: Any) -> BaseCommand:
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "title": self.title,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration": self.duration,
            "location": self.location,
            "attendees": list(self.attendees),
            "recurrence": self.recurrence.to_dict() if self.recurrence else None,
            "confidence": round(self.confidence, 3),
            "context": self.context.to_dict(),
            "ambiguity": self.ambiguity.to_dict(),
            "needs_clarification": self.needs_clarification,
            "raw_text": self.raw_text,
            "source": self.source.value,
        }


@dataclass(kw_only=True)
class CreateCommand(BaseCommand):
    action: ClassVar[Action] = Action.CREATE


@dataclass(kw_only=True)
class UpdateCommand(BaseCommand):
    action: ClassVar[Action] = Action.UPDATE

    target_time: datetime | None = None
    target_title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["target_time"] = _iso(self.target_time)
        d["target_title"] = self.target_title
        return d


@dataclass(kw_only=True)
class DeleteCommand(BaseCommand):
    action: ClassVar[Action] = Action.DELETE

    target_time: datetime | None = None
    target_title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["target_time"] = _iso(self.target_time)
        d["target_title"] = self.target_title
        return d


@dataclass(kw_only=True)
class QueryCommand(BaseCommand):
    action: ClassVar[Action] = Action.QUERY

    query_type: QueryType | None = QueryType.EVENT_DETAILS
    whole_day: bool = False

    @property
    def query_window(self) -> TimeWindow:
        """The explicit window, or the whole start day when no time was given."""
        if not self.whole_day:
            return self.window
        day = self.start_time.replace(hour=0, minute=0, second=0, microsecond=0)
        return TimeWindow(day, day + timedelta(days=1))

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["query_type"] = self.query_type.value if self.query_type else None
        d["whole_day"] = self.whole_day
        d["query_window"] = self.query_window.to_dict()
        return d


Command = Union[CreateCommand, UpdateCommand, DeleteCommand, QueryCommand]

COMMAND_TYPES: dict[Action, type[BaseCommand]] = {
    Action.CREATE: CreateCommand,
    Action.UPDATE: UpdateCommand,
    Action.DELETE: DeleteCommand,
    Action.QUERY: QueryCommand,
}


def command_from_dict(data: dict[str, Any]) -> Command:
    """Build the right command variant from a plain dict.

    Accepts both the ``to_dict()`` shape and loosely typed input (strings for
    enums and datetimes). Raises ``ValueError``/``KeyError`` on bad input.
    """
    action = Action(str(data.get("action", "create")).lower())
    cls = COMMAND_TYPES[action]

    context_data = data.get("context") or {}
    context = ContextFlags(
        is_urgent=bool(context_data.get("is_urgent", False)),
        is_flexible=bool(context_data.get("is_flexible", False)),
        priority=Priority(str(context_data.get("priority", "normal")).lower()),
        time_preference=TimePreference(
            str(context_data.get("time_preference", "approximate")).lower()
        ),
    )

    ambiguity_data = data.get("ambiguity") or {}
    ambiguity = AmbiguityRecord(
        assumed_defaults=list(ambiguity_data.get("assumed_defaults") or []),
        missing_information=list(ambiguity_data.get("missing_information") or []),
        confidence_reasons=list(ambiguity_data.get("confidence_reasons") or []),
        alternative_interpretations=[
            _parse_dt(d) for d in ambiguity_data.get("alternative_interpretations") or []
        ],
    )

    kwargs: dict[str, Any] = {
        "title": str(data.get("title") or ""),
        "start_time": _parse_dt(data["start_time"]),
        "duration": int(data["duration"]),
        "location": data.get("location"),
        "attendees": [str(a) for a in data.get("attendees") or []],
        "recurrence": Recurrence.from_dict(data["recurrence"]) if data.get("recurrence") else None,
        "confidence": float(data.get("confidence", 0.0)),
        "context": context,
        "ambiguity": ambiguity,
        "needs_clarification": bool(data.get("needs_clarification", False)),
        "raw_text": str(data.get("raw_text") or ""),
        "source": CommandSource(str(data.get("source", "regex")).lower()),
    }

    if cls in (UpdateCommand, DeleteCommand):
        kwargs["target_time"] = _parse_dt(data.get("target_time"))
        kwargs["target_title"] = data.get("target_title")
    elif cls is QueryCommand:
        query_type = data.get("query_type")
        kwargs["query_type"] = QueryType(str(query_type).lower()) if query_type else None
        kwargs["whole_day"] = bool(data.get("whole_day", False))

    return cls(**kwargs)


# =============================================================================
# Calendar projections and results
# =============================================================================


@dataclass
class ExternalEvent:
    """Read-only projection of a calendar entry owned by the gateway."""

    id: str
    title: str
    window: TimeWindow
    location: str | None = None
    attendees: list[str] = field(default_factory=list)
    recurrence_rule: str | None = None
    transparency: Transparency = Transparency.OPAQUE
    status: EventStatus = EventStatus.CONFIRMED

    @property
    def start(self) -> datetime:
        return self.window.start

    @property
    def end(self) -> datetime:
        return self.window.end

    @property
    def duration_minutes(self) -> int:
        return self.window.duration_minutes

    @property
    def is_blocking(self) -> bool:
        """Whether the event occupies its time for suggestion purposes."""
        return (
            self.transparency == Transparency.OPAQUE
            and self.status != EventStatus.CANCELLED
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "location": self.location,
            "attendees": list(self.attendees),
            "recurrence_rule": self.recurrence_rule,
            "transparency": self.transparency.value,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExternalEvent:
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            window=TimeWindow(_parse_dt(data["start"]), _parse_dt(data["end"])),
            location=data.get("location"),
            attendees=list(data.get("attendees") or []),
            recurrence_rule=data.get("recurrence_rule"),
            transparency=Transparency(data.get("transparency", "opaque")),
            status=EventStatus(data.get("status", "confirmed")),
        )


@dataclass
class ExecutionResult:
    """Outcome of dispatching one command."""

    success: bool
    action: Action
    state: DispatchState
    message: str = ""
    event: ExternalEvent | None = None
    events: list[ExternalEvent] = field(default_factory=list)
    error: SchedulingError | None = None
    suggestion: TimeWindow | None = None
    alternatives: list[TimeWindow] = field(default_factory=list)
    available: bool | None = None
    clarification: ParseAmbiguity | None = None
    states: list[DispatchState] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action.value,
            "state": self.state.value,
            "message": self.message,
            "event": self.event.to_dict() if self.event else None,
            "events": [e.to_dict() for e in self.events],
            "error": self.error.to_dict() if self.error else None,
            "suggestion": self.suggestion.to_dict() if self.suggestion else None,
            "alternatives": [w.to_dict() for w in self.alternatives],
            "available": self.available,
            "clarification": self.clarification.to_dict() if self.clarification else None,
            "states": [s.value for s in self.states],
        }
