"""Entity extraction for scheduling requests.

Title, attendees, location, context flags (urgency, flexibility, priority,
time preference) and query type. Works on the normalized text handed out by
the command parser so spans from the temporal pass line up.
"""

from __future__ import annotations

import re

from nlcal.models import ContextFlags, Priority, QueryType, TimePreference
from nlcal.parser.temporal_extractor import MONTHS, WEEKDAYS, TemporalResult

# Capitalized words that are never a person or a place
_NOT_NAMES = {
    *(d.capitalize() for d in WEEKDAYS),
    *(m.capitalize() for m in MONTHS),
    "Today", "Tomorrow", "Tonight", "Next", "This", "Every", "At", "On", "In",
    "The", "A", "An", "And", "Or", "For", "From", "To", "My", "Our", "Me", "I",
    "Noon", "Midnight", "Morning", "Afternoon", "Evening",
}

_NAME = r"[A-Z][a-zA-Z'\-]+"

_ONLINE_LOCATIONS = [
    (r"\bzoom\b", "Zoom"),
    (r"\bgoogle\s+meet\b", "Google Meet"),
    (r"\b(?:ms\s+|microsoft\s+)?teams\b", "Microsoft Teams"),
    (r"\bskype\b", "Skype"),
    (r"\bwebex\b", "Webex"),
]

_URGENT_RE = re.compile(
    r"\b(?:urgent(?:ly)?|asap|as soon as possible|emergency|immediately|critical)\b", re.I
)
_NOT_URGENT_RE = re.compile(
    r"\b(?:not urgent|no rush|low[\s-]priority|whenever)\b", re.I
)
_IMPORTANT_RE = re.compile(r"\b(?:important|high[\s-]priority|top priority)\b", re.I)
_FLEXIBLE_RE = re.compile(
    r"\b(?:flexible|anytime|any time|whenever|sometime|some time|if possible|at some point)\b",
    re.I,
)
_APPROXIMATE_RE = re.compile(r"\b(?:around|about|approximately|roughly|-?ish)\b", re.I)
_AVAILABILITY_RE = re.compile(
    r"\b(?:free|available|availability|busy|open slots?)\b", re.I
)

# Words dropped from the title once temporal and entity spans are gone
_TITLE_NOISE = [
    r"\b(?:please|can you|could you|would you|help me|for me)\b",
    r"\b(?:i need to|i want to|i'd like to|i would like to|let's|lets|we need to)\b",
    r"\b(?:urgent(?:ly)?|asap|as soon as possible|emergency|immediately|critical)\b",
    r"\b(?:not urgent|no rush|important|high[\s-]priority|low[\s-]priority|top priority)\b",
    r"\b(?:flexible|anytime|any time|whenever|sometime|some time|if possible|at some point)\b",
    r"\b(?:around|about|approximately|roughly)\b",
    r"\b(?:maybe|probably|perhaps|might|i think)\b",
    r"\b(?:do i have|am i|is there|are there|on my calendar|in my calendar|my schedule)\b",
    r"\b(?:free|available|availability|busy)\b",
    r"\b(?:a new|new|an event|event|appointment for)\b",
]
_LEADING_FILLER = re.compile(
    r"^(?:(?:a|an|the|my|our|me|us|some|for|to|on|at|in|of|with|and|it|that|this)\b\s*)+", re.I
)
_TRAILING_FILLER = re.compile(
    r"(?:\s*\b(?:a|an|the|my|our|for|to|on|at|in|by|of|with|and|from|it|is|are)\b)+$", re.I
)


def _mask(text: str, span: tuple[int, int]) -> str:
    start, end = span
    return text[:start] + " " * (end - start) + text[end:]


def extract_attendees(text: str) -> list[str]:
    """Names after "with" plus any email addresses, in order of appearance."""
    attendees: list[str] = []

    for match in re.finditer(r"\bwith\s+", text, re.IGNORECASE):
        rest = text[match.end():]
        tokens = re.split(r"(\s*,\s*|\s+and\s+|\s*&\s*|\s+)", rest)
        current: list[str] = []
        for token in tokens:
            if not token:
                continue
            if re.fullmatch(r"\s*,\s*|\s+and\s+|\s*&\s*", token, re.IGNORECASE):
                if current:
                    attendees.append(" ".join(current))
                    current = []
                continue
            if token.isspace():
                continue
            word = token.rstrip(".,!?;:")
            if re.fullmatch(_NAME, word) and word not in _NOT_NAMES:
                current.append(word)
                if word != token:
                    break
                continue
            break
        if current:
            attendees.append(" ".join(current))

    for email in re.findall(r"[\w.+-]+@[\w-]+\.[\w.-]*\w", text):
        attendees.append(email)

    seen: set[str] = set()
    unique: list[str] = []
    for name in attendees:
        if name.lower() not in seen:
            seen.add(name.lower())
            unique.append(name)
    return unique


def extract_location(text: str) -> tuple[str | None, tuple[int, int] | None]:
    """A location and its span, from "at/in <Place>" or an online venue."""
    for pattern, name in _ONLINE_LOCATIONS:
        match = re.search(r"(?:\b(?:on|over|via|in)\s+)?" + pattern, text, re.IGNORECASE)
        if match:
            return name, match.span()

    match = re.search(
        r"\b(?:in\s+)?((?:conference\s+)?room\s+[A-Za-z0-9\-]+)\b", text, re.IGNORECASE
    )
    if match:
        room = match.group(1)
        return room[0].upper() + room[1:], match.span()

    for match in re.finditer(rf"\b(?:at|in)\s+(?:the\s+)?((?:{_NAME})(?:\s+{_NAME})*)", text):
        words = match.group(1).split()
        while words and words[-1] in _NOT_NAMES:
            words.pop()
        if not words or words[0] in _NOT_NAMES:
            continue
        place = " ".join(words)
        end = match.start(1) + match.group(1).find(place) + len(place)
        return place, (match.start(), end)

    return None, None


def extract_context_flags(text: str, temporal: TemporalResult) -> ContextFlags:
    """Urgency, flexibility, priority and time preference."""
    flags = ContextFlags()

    if _NOT_URGENT_RE.search(text):
        flags.priority = Priority.LOW
    elif _URGENT_RE.search(text):
        flags.is_urgent = True
        flags.priority = Priority.HIGH
    elif _IMPORTANT_RE.search(text):
        flags.priority = Priority.HIGH

    flags.is_flexible = bool(_FLEXIBLE_RE.search(text))

    if temporal.has_explicit_time and not _APPROXIMATE_RE.search(text):
        flags.time_preference = TimePreference.EXACT
    elif flags.is_flexible and not temporal.has_time:
        flags.time_preference = TimePreference.FLEXIBLE
    else:
        flags.time_preference = TimePreference.APPROXIMATE

    return flags


def detect_query_type(text: str) -> QueryType:
    if _AVAILABILITY_RE.search(text):
        return QueryType.AVAILABILITY
    return QueryType.EVENT_DETAILS


def extract_title(text: str, spans: list[tuple[int, int]]) -> str | None:
    """What is left once cue words, times, places and filler are removed.

    Args:
        text: Normalized request text (original case).
        spans: Character spans already consumed by other extractors.

    Returns:
        A capitalized title, or None when nothing meaningful remains.
    """
    remaining = text
    for span in spans:
        remaining = _mask(remaining, span)

    for pattern in _TITLE_NOISE:
        remaining = re.sub(pattern, " ", remaining, flags=re.IGNORECASE)

    remaining = re.sub(r"[?!.;:\"]+", " ", remaining)
    remaining = re.sub(r"\s*,\s*(?=,|$)", " ", remaining)
    remaining = re.sub(r"\s+", " ", remaining).strip(" ,-")

    previous = None
    while previous != remaining:
        previous = remaining
        remaining = _LEADING_FILLER.sub("", remaining).strip(" ,-")
        remaining = _TRAILING_FILLER.sub("", remaining).strip(" ,-")

    if not remaining or not re.search(r"[A-Za-z]", remaining):
        return None
    return remaining[0].upper() + remaining[1:]


__all__ = [
    "detect_query_type",
    "extract_attendees",
    "extract_context_flags",
    "extract_location",
    "extract_title",
]
