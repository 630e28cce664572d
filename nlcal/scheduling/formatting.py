"""Human-readable confirmation text for execution results."""

from __future__ import annotations

from datetime import datetime

from nlcal.models import ExternalEvent, TimeWindow

_FREQ_UNITS = {"DAILY": "day", "WEEKLY": "week", "MONTHLY": "month", "YEARLY": "year"}
_DAY_NAMES = {
    "MO": "Monday", "TU": "Tuesday", "WE": "Wednesday", "TH": "Thursday",
    "FR": "Friday", "SA": "Saturday", "SU": "Sunday",
}


def format_time(value: datetime) -> str:
    """3:00 PM"""
    return value.strftime("%I:%M %p").lstrip("0")


def format_date(value: datetime) -> str:
    """Monday, March 5, 2026"""
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def format_window(window: TimeWindow) -> str:
    text = f"{format_date(window.start)} from {format_time(window.start)} to {format_time(window.end)}"
    days = (window.end.date() - window.start.date()).days
    if days == 1:
        text += " the next day"
    elif days > 1:
        text += f" on {format_date(window.end)}"
    return text


def format_attendees(attendees: list[str]) -> str:
    """Up to two names joined by "and", otherwise the first plus a count."""
    if len(attendees) <= 2:
        return " and ".join(attendees)
    return f"{attendees[0]} and {len(attendees) - 1} others"


def format_recurrence(rule: str) -> str:
    """Describe an RRULE, e.g. "Recurring: Every 2 weeks on Monday"."""
    body = rule.removeprefix("RRULE:")
    parts = dict(p.split("=", 1) for p in body.split(";") if "=" in p)
    unit = _FREQ_UNITS.get(parts.get("FREQ", ""))
    if unit is None:
        return body

    interval = int(parts.get("INTERVAL", "1") or 1)
    text = f"Recurring: Every {interval} {unit}s" if interval > 1 else f"Recurring: Every {unit}"
    days = [_DAY_NAMES[d] for d in parts.get("BYDAY", "").split(",") if d in _DAY_NAMES]
    if days:
        text += " on " + ", ".join(days)
    return text


def confirmation(verb: str, event: ExternalEvent) -> str:
    """'Created: "Lunch with Sara" on ... from ... to ... with Sara'"""
    parts = [f'{verb}: "{event.title}"', f"on {format_window(event.window)}"]
    if event.location:
        parts.append(f"at {event.location}")
    if event.attendees:
        parts.append(f"with {format_attendees(event.attendees)}")
    if event.recurrence_rule:
        parts.append(f"({format_recurrence(event.recurrence_rule)})")
    return " ".join(parts)


def events_summary(events: list[ExternalEvent], window: TimeWindow) -> str:
    if not events:
        return f"Nothing scheduled on {format_window(window)}."
    lines = [f"{len(events)} event(s) on {format_window(window)}:"]
    for event in events:
        lines.append(f"- {format_time(event.start)}-{format_time(event.end)} {event.title}")
    return "\n".join(lines)


def availability_summary(available: bool, window: TimeWindow, suggestion: TimeWindow | None) -> str:
    if available:
        return f"You're free on {format_window(window)}."
    text = f"You're busy on {format_window(window)}."
    if suggestion:
        text += f" The next free slot is {format_window(suggestion)}."
    return text


def unavailable_summary(message: str, suggestion: TimeWindow | None) -> str:
    if suggestion is None:
        return message
    return f"{message}. How about {format_window(suggestion)}?"
