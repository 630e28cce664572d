"""Temporal extraction for scheduling text.

Pulls the start date and time, the duration, and any recurrence out of a
request, relative to a pinned reference instant. Pure function of
(text, reference, config): no clock reads, no I/O.

Handles:
    Dates      today, tomorrow/tmrw, day after tomorrow, next week/month,
               on/next/every <weekday>, in N days/weeks, 2026-03-05, March 5th
    Times      3pm, 15:00, at 3 (bare hour), noon, midnight, morning/afternoon/
               evening/tonight, in N hours/minutes
    Ranges     3-4pm, from 3:30 to 4pm, 10pm until 1:30am (crosses midnight)
    Durations  for 45 minutes, for an hour, half an hour, 1.5 hours, 90 min
    Recurrence daily, weekly, every monday, bi-weekly, monthly, quarterly, yearly
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from nlcal.config_models import EngineConfig, parse_clock
from nlcal.models import Recurrence, RecurrencePattern

WEEKDAYS = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}
RRULE_DAYS = ["MO", "TU", "WE", "TH", "FR", "SA", "SU"]

MONTHS = {
    "january": 1, "jan": 1, "february": 2, "feb": 2, "march": 3, "mar": 3,
    "april": 4, "apr": 4, "may": 5, "june": 6, "jun": 6, "july": 7, "jul": 7,
    "august": 8, "aug": 8, "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10, "november": 11, "nov": 11, "december": 12, "dec": 12,
}

_WEEKDAY_RE = "|".join(WEEKDAYS)
_MONTH_RE = "|".join(sorted(MONTHS, key=len, reverse=True))
_MERIDIEM = r"(am|pm|a\.m\.|p\.m\.)"

BASELINE_TIME_CONFIDENCE = 0.8
EXPLICIT_DATE_TIME_CONFIDENCE = 0.9
RANGE_TIME_CONFIDENCE = 0.95


@dataclass
class TemporalResult:
    """Everything temporal found in one request."""

    start_time: datetime
    duration: int
    recurrence: Recurrence | None = None
    time_confidence: float = BASELINE_TIME_CONFIDENCE
    has_explicit_date: bool = False
    has_explicit_time: bool = False
    has_explicit_duration: bool = False
    has_range: bool = False
    is_approximate: bool = False
    duration_keyword: str | None = None
    assumed_defaults: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    alternatives: list[datetime] = field(default_factory=list)
    spans: list[tuple[int, int]] = field(default_factory=list)

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration)

    @property
    def has_time(self) -> bool:
        """Any time signal, clock or time-of-day word."""
        return self.has_explicit_time or self.is_approximate


@dataclass
class _ClockTime:
    value: time
    day_offset: int = 0
    explicit: bool = True
    approximate: bool = False
    alternative: time | None = None


# =============================================================================
# Helpers
# =============================================================================


def _mask(text: str, span: tuple[int, int]) -> str:
    """Blank out a consumed span, keeping offsets stable."""
    start, end = span
    return text[:start] + " " * (end - start) + text[end:]


def _meridiem(raw: str | None) -> str | None:
    if not raw:
        return None
    return raw.replace(".", "").lower()


def _to_24h(hour: int, meridiem: str | None) -> int:
    if meridiem == "pm" and hour < 12:
        return hour + 12
    if meridiem == "am" and hour == 12:
        return 0
    return hour


def _opposite(meridiem: str) -> str:
    return "am" if meridiem == "pm" else "pm"


def _bare_hour(hour: int) -> tuple[int, int | None]:
    """Business-hours reading of an hour without am/pm, plus the other reading."""
    if hour == 0 or hour > 12:
        return hour, None
    if 1 <= hour <= 7:
        return hour + 12, hour
    if hour == 12:
        return 12, None
    return hour, hour + 12


def add_months(day: date, months: int) -> date:
    """Shift by calendar months, clamping to the last day of the month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def _valid(hour: int, minute: int) -> bool:
    return 0 <= hour <= 23 and 0 <= minute <= 59


# =============================================================================
# Dates
# =============================================================================


def _extract_date(
    text: str, reference: datetime, result: TemporalResult
) -> tuple[date | None, datetime | None, str]:
    """Find the date. Returns (date, exact datetime for "in N hours", masked text)."""
    today = reference.date()

    # ISO date
    match = re.search(r"\b(?:on\s+)?(\d{4})-(\d{2})-(\d{2})\b", text)
    if match:
        try:
            found = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            found = None
        if found:
            result.spans.append(match.span())
            return found, None, _mask(text, match.span())

    # "March 5th", "5 March", "March 5, 2027"
    month_first = re.search(
        rf"\b(?:on\s+)?({_MONTH_RE})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b(?:,?\s*(\d{{4}}))?",
        text,
    )
    day_first = re.search(
        rf"\b(?:on\s+)?(?:the\s+)?(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_RE})\b(?:,?\s*(\d{{4}}))?",
        text,
    )
    for match, month_group, day_group in ((month_first, 1, 2), (day_first, 2, 1)):
        if not match:
            continue
        month = MONTHS[match.group(month_group)]
        day = int(match.group(day_group))
        year = int(match.group(3)) if match.group(3) else today.year
        try:
            found = date(year, month, day)
        except ValueError:
            continue
        if not match.group(3) and found < today:
            try:
                found = found.replace(year=found.year + 1)
            except ValueError:
                continue
        result.spans.append(match.span())
        return found, None, _mask(text, match.span())

    # "in 2 hours", "in 45 minutes": date and time together
    match = re.search(r"\bin\s+(\d+|an?)\s+(hours?|hrs?|minutes?|mins?)\b", text)
    if match:
        amount = 1 if match.group(1) in ("a", "an") else int(match.group(1))
        if match.group(2).startswith("h"):
            exact = reference + timedelta(hours=amount)
        else:
            exact = reference + timedelta(minutes=amount)
        exact = exact.replace(second=0, microsecond=0)
        result.spans.append(match.span())
        return exact.date(), exact, _mask(text, match.span())

    # "in 3 days", "in 2 weeks", "in a week"
    match = re.search(r"\bin\s+(\d+|an?)\s+(days?|weeks?)\b", text)
    if match:
        amount = 1 if match.group(1) in ("a", "an") else int(match.group(1))
        days = amount * 7 if match.group(2).startswith("week") else amount
        result.spans.append(match.span())
        return today + timedelta(days=days), None, _mask(text, match.span())

    relative: list[tuple[str, int]] = [
        (r"\b(?:the\s+)?day\s+after\s+tomorrow\b", 2),
        (r"\b(?:tomorrow|tomorow|tmrw|tmr)\b", 1),
        (r"\btoday\b", 0),
    ]
    for pattern, offset in relative:
        match = re.search(pattern, text)
        if match:
            result.spans.append(match.span())
            return today + timedelta(days=offset), None, _mask(text, match.span())

    # "tonight" pins the date but is left for the time-of-day pass
    if re.search(r"\btonight\b", text):
        return today, None, text

    match = re.search(rf"\b(next|this|on|every)?\s*\b({_WEEKDAY_RE})s?\b", text)
    if match:
        qualifier = match.group(1)
        target = WEEKDAYS[match.group(2)]
        days_ahead = (target - today.weekday()) % 7
        if days_ahead == 0 and qualifier == "next":
            days_ahead = 7
        # "every monday" is left for the recurrence pass
        if qualifier != "every":
            result.spans.append(match.span())
            text = _mask(text, match.span())
        return today + timedelta(days=days_ahead), None, text

    match = re.search(r"\bnext\s+week\b", text)
    if match:
        result.spans.append(match.span())
        return today + timedelta(days=7), None, _mask(text, match.span())

    match = re.search(r"\bnext\s+month\b", text)
    if match:
        result.spans.append(match.span())
        return add_months(today, 1), None, _mask(text, match.span())

    return None, None, text


# =============================================================================
# Times
# =============================================================================


_RANGE_RE = re.compile(
    r"(?:\b(?P<lead>from|between|at)\s+)?"
    r"\b(?P<h1>\d{1,2})(?::(?P<m1>\d{2}))?\s*" + _MERIDIEM.replace("(", "(?P<ap1>", 1) + r"?"
    r"\s*(?P<conn>to|until|till|through|and|-|–)\s*"
    r"(?P<h2>\d{1,2})(?::(?P<m2>\d{2}))?\s*" + _MERIDIEM.replace("(", "(?P<ap2>", 1) + r"?"
    r"(?![\w:])"
)


def _extract_range(
    text: str, result: TemporalResult
) -> tuple[_ClockTime, _ClockTime] | None:
    for match in _RANGE_RE.finditer(text):
        if match.group("conn") == "and" and match.group("lead") != "between":
            continue
        ap1 = _meridiem(match.group("ap1"))
        ap2 = _meridiem(match.group("ap2"))
        # two plain numbers need some time signal to count as a range
        if not (ap1 or ap2 or match.group("m1") or match.group("m2") or match.group("lead")):
            continue

        h1, m1 = int(match.group("h1")), int(match.group("m1") or 0)
        h2, m2 = int(match.group("h2")), int(match.group("m2") or 0)
        alternative: time | None = None

        if ap1 and ap2:
            start_h, end_h = _to_24h(h1, ap1), _to_24h(h2, ap2)
        elif ap2:
            start_h, end_h = _to_24h(h1, ap2), _to_24h(h2, ap2)
            if h1 <= 12 and (start_h, m1) > (end_h, m2):
                start_h = _to_24h(h1, _opposite(ap2))
        elif ap1:
            start_h, end_h = _to_24h(h1, ap1), _to_24h(h2, ap1)
            if h2 <= 12 and (end_h, m2) <= (start_h, m1):
                end_h = _to_24h(h2, _opposite(ap1))
        else:
            start_h, other = _bare_hour(h1)
            if other is not None and _valid(other, m1):
                alternative = time(other, m1)
            end_h = h2
            if h2 <= 12:
                same = h2 + 12 if start_h >= 12 and h2 < 12 else h2
                end_h = same if (same, m2) > (start_h, m1) else _to_24h(h2, "pm" if same < 12 else "am")

        if not (_valid(start_h, m1) and _valid(end_h, m2)):
            continue

        result.spans.append(match.span())
        return (
            _ClockTime(time(start_h, m1), alternative=alternative),
            _ClockTime(time(end_h, m2)),
        )
    return None


_TIME_WORDS: list[tuple[str, str]] = [
    (r"\b(?:this\s+|in\s+the\s+)?morning\b", "morning"),
    (r"\b(?:this\s+|in\s+the\s+)?afternoon\b", "afternoon"),
    (r"\b(?:this\s+|in\s+the\s+)?evening\b", "evening"),
    (r"\btonight\b", "tonight"),
]


def _extract_time(
    text: str, config: EngineConfig, result: TemporalResult
) -> _ClockTime | None:
    """Find a single start time."""
    lead = r"(?:\b(?:at|from|by|around|about|@)\s*)?"

    match = re.search(lead + r"\b(noon|midday|midnight)\b", text)
    if match:
        result.spans.append(match.span())
        if match.group(1) == "midnight":
            return _ClockTime(time(0, 0), day_offset=1)
        return _ClockTime(time(12, 0))

    match = re.search(lead + r"\b(\d{1,2})(?::(\d{2}))?\s*" + _MERIDIEM + r"(?!\w)", text)
    if match:
        hour = _to_24h(int(match.group(1)), _meridiem(match.group(3)))
        minute = int(match.group(2) or 0)
        if _valid(hour, minute) and int(match.group(1)) <= 12:
            result.spans.append(match.span())
            return _ClockTime(time(hour, minute))

    match = re.search(lead + r"\b(\d{1,2}):(\d{2})\b", text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if _valid(hour, minute):
            result.spans.append(match.span())
            hour, other = _bare_hour(hour)
            alternative = time(other, minute) if other is not None else None
            return _ClockTime(time(hour, minute), alternative=alternative)

    match = re.search(
        r"(?:\bat|@)\s*(\d{1,2})\b(?!\s*(?:minutes?|mins?|hours?|hrs?|days?|weeks?|people|%|\.\d))",
        text,
    )
    if match:
        hour = int(match.group(1))
        if 0 <= hour <= 23:
            result.spans.append(match.span())
            hour, other = _bare_hour(hour)
            alternative = time(other, 0) if other is not None else None
            return _ClockTime(time(hour, 0), alternative=alternative)

    for pattern, key in _TIME_WORDS:
        match = re.search(pattern, text)
        if match:
            result.spans.append(match.span())
            clock = parse_clock(getattr(config.time_defaults, key))
            return _ClockTime(clock, explicit=False, approximate=True)

    return None


# =============================================================================
# Durations and recurrence
# =============================================================================


_DURATION_KEYWORDS: list[tuple[str, str]] = [
    (r"\bquick\s+(?:sync|call|chat)\b|\bcheck\s*-?\s*in\b|\bstand\s*-?\s*up\b", "quick"),
    (r"\b(?:lunch|brunch|dinner)\b", "lunch"),
    (r"\b(?:workshop|training)\b", "workshop"),
    (r"\b(?:1:1|1-on-1|1\s+on\s+1|one[\s-]on[\s-]one)\b", "one_on_one"),
    (r"\b(?:meeting|call|sync|chat)\b", "meeting"),
]


def _extract_duration(text: str, result: TemporalResult) -> int | None:
    """Explicit duration in minutes, or None."""
    fixed: list[tuple[str, int]] = [
        (r"\b(?:for\s+)?(?:an?|one)\s+hour\s+and\s+a\s+half\b", 90),
        (r"\b(?:for\s+)?half\s+an?\s+hour\b", 30),
        (r"\b(?:for\s+)?(?:an?|one)\s+hour\b", 60),
    ]
    for pattern, minutes in fixed:
        match = re.search(pattern, text)
        if match:
            result.spans.append(match.span())
            return minutes

    match = re.search(
        r"\b(?:for\s+)?(\d+)\s*(?:hours?|hrs?)\s*(?:and\s+)?(\d+)\s*(?:minutes?|mins?)\b", text
    )
    if match:
        result.spans.append(match.span())
        return int(match.group(1)) * 60 + int(match.group(2))

    match = re.search(r"\b(?:for\s+)?(\d+(?:\.\d+)?)\s*(?:hours?|hrs?)\b", text)
    if match:
        minutes = round(float(match.group(1)) * 60)
        if minutes > 0:
            result.spans.append(match.span())
            return minutes

    match = re.search(r"\b(?:for\s+)?(\d+)\s*(?:minutes?|mins?)\b", text)
    if match and int(match.group(1)) > 0:
        result.spans.append(match.span())
        return int(match.group(1))

    return None


def _weekday_codes(phrase: str) -> list[str]:
    return [RRULE_DAYS[WEEKDAYS[d]] for d in re.findall(_WEEKDAY_RE, phrase)]


def _extract_recurrence(
    text: str, lowered: str, result: TemporalResult
) -> Recurrence | None:
    """Repeat rule; ``lowered`` is the unmasked text, used for BYDAY codes."""
    simple: list[tuple[str, RecurrencePattern, int]] = [
        (r"\b(?:bi-?weekly|fortnightly|every\s+(?:other|two|2)\s+weeks?)\b", RecurrencePattern.WEEKLY, 2),
        (r"\b(?:quarterly|every\s+(?:three|3)\s+months)\b", RecurrencePattern.MONTHLY, 3),
        (r"\b(?:yearly|annually|every\s+year)\b", RecurrencePattern.YEARLY, 1),
        (r"\b(?:monthly|every\s+month)\b", RecurrencePattern.MONTHLY, 1),
    ]
    for pattern, frequency, interval in simple:
        match = re.search(pattern, text)
        if match:
            result.spans.append(match.span())
            by_day = _weekday_codes(lowered) if frequency == RecurrencePattern.WEEKLY else []
            return Recurrence(frequency, interval, by_day)

    match = re.search(r"\bevery\s+weekday\b", text)
    if match:
        result.spans.append(match.span())
        return Recurrence(RecurrencePattern.WEEKLY, 1, RRULE_DAYS[:5])

    match = re.search(
        rf"\bevery\s+((?:{_WEEKDAY_RE})s?(?:\s*(?:,|and|&)\s*(?:{_WEEKDAY_RE})s?)*)\b", text
    )
    if match:
        result.spans.append(match.span())
        return Recurrence(RecurrencePattern.WEEKLY, 1, _weekday_codes(match.group(1)))

    match = re.search(r"\b(?:weekly|every\s+week)\b", text)
    if match:
        result.spans.append(match.span())
        return Recurrence(RecurrencePattern.WEEKLY, 1, _weekday_codes(lowered))

    match = re.search(r"\b(?:daily|every\s+day|each\s+day)\b", text)
    if match:
        result.spans.append(match.span())
        return Recurrence(RecurrencePattern.DAILY, 1)

    return None


# =============================================================================
# Entry point
# =============================================================================


def extract_temporal(
    text: str,
    reference: datetime,
    config: EngineConfig | None = None,
) -> TemporalResult:
    """Extract start, duration, recurrence and time confidence from text.

    Args:
        text: Request text (any case).
        reference: The instant relative phrases are resolved against.
        config: Engine policy (default durations and time-of-day defaults).

    Returns:
        TemporalResult. Never raises for any input string.
    """
    config = config or EngineConfig()
    # one char per char, so spans line up with the caller's text
    work = "".join(ch.lower()[0] for ch in text).replace("’", "'")
    lowered = work

    reference = reference.replace(second=0, microsecond=0)
    result = TemporalResult(start_time=reference, duration=config.durations.default)

    found_date, exact, work = _extract_date(work, reference, result)
    if found_date is not None:
        result.has_explicit_date = True

    # recurrence before durations so "every 2 weeks" is not read as a length
    result.recurrence = _extract_recurrence(work, lowered, result)
    for span in result.spans:
        work = _mask(work, span)

    day = found_date or reference.date()
    if found_date is None:
        result.assumed_defaults.append("date")

    range_times = _extract_range(work, result)
    if range_times:
        work = _mask(work, result.spans[-1])
    explicit_minutes = _extract_duration(work, result)
    if explicit_minutes is not None:
        work = _mask(work, result.spans[-1])

    start_clock: _ClockTime | None = None
    end_clock: _ClockTime | None = None
    if exact is not None:
        result.has_explicit_time = True
        result.start_time = exact
    else:
        if range_times:
            start_clock, end_clock = range_times
            result.has_range = True
        else:
            start_clock = _extract_time(work, config, result)

        if start_clock is None:
            clock = parse_clock(config.time_defaults.default_time)
            result.assumed_defaults.append("start_time")
            result.start_time = datetime.combine(day, clock, tzinfo=reference.tzinfo)
        else:
            start_day = day + timedelta(days=start_clock.day_offset)
            result.start_time = datetime.combine(start_day, start_clock.value, tzinfo=reference.tzinfo)
            result.has_explicit_time = start_clock.explicit
            result.is_approximate = start_clock.approximate
            if start_clock.alternative is not None:
                result.alternatives.append(
                    datetime.combine(start_day, start_clock.alternative, tzinfo=reference.tzinfo)
                )
                result.notes.append("time of day is ambiguous without am/pm")

    if end_clock is not None:
        end = datetime.combine(result.start_time.date(), end_clock.value, tzinfo=reference.tzinfo)
        # an end at or before the start belongs to the next day
        if end <= result.start_time:
            end += timedelta(days=1)
        result.duration = int((end - result.start_time).total_seconds() // 60)
        result.has_explicit_duration = True
    elif explicit_minutes is not None:
        result.duration = explicit_minutes
        result.has_explicit_duration = True
    else:
        for pattern, key in _DURATION_KEYWORDS:
            if re.search(pattern, work):
                result.duration_keyword = key
                break
        key = result.duration_keyword or "default"
        result.duration = getattr(config.durations, key)
        result.assumed_defaults.append("duration")

    if result.has_range:
        result.time_confidence = RANGE_TIME_CONFIDENCE
    elif result.has_explicit_date:
        result.time_confidence = EXPLICIT_DATE_TIME_CONFIDENCE

    return result


__all__ = [
    "TemporalResult",
    "add_months",
    "extract_temporal",
]
