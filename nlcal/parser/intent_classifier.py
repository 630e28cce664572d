"""Intent classification for scheduling requests.

An ordered decision table of keyword families. Edit-style requests (query,
delete, update) are rarer and more specific, so they are checked before the
create catch-all; the first family with a matching cue wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from nlcal.models import Action

# (action, cue patterns), evaluated top to bottom
INTENT_FAMILIES: list[tuple[Action, tuple[str, ...]]] = [
    (Action.QUERY, (
        r"\bcheck\b(?!\s*-?\s*in\b)",
        r"\bshow\b",
        r"\bwhat(?:'s|\s+is|\s+do)\b",
        r"\bis\s+there\b",
        r"\bam\s+i\s+(?:free|available|busy)\b",
        r"\bdo\s+i\s+have\b",
        r"\bwhen\s+is\b",
        r"\blist\b",
    )),
    (Action.DELETE, (
        r"\bcancel\b",
        r"\bremove\b",
        r"\bdelete\b",
        r"\bcan(?:'t|not|t)\s+make\b",
        r"\bcall\s+off\b",
    )),
    (Action.UPDATE, (
        r"\bchange\b",
        r"\bmove\b",
        r"\breschedule\b",
        r"\bpush\b",
        r"\bpostpone\b",
        r"\bshift\b",
        r"\bbump\b",
    )),
    (Action.CREATE, (
        r"\bschedule\b",
        r"\bset\s+up\b",
        r"\bbook\b",
        r"\bneed\s+to\b",
        r"\bcreate\b",
        r"\badd\b",
        r"\bplan\b",
        r"\barrange\b",
    )),
]

_compiled_families: list[tuple[Action, list[re.Pattern]]] | None = None


def _get_families() -> list[tuple[Action, list[re.Pattern]]]:
    """Get compiled keyword families in evaluation order."""
    global _compiled_families
    if _compiled_families is None:
        _compiled_families = [
            (action, [re.compile(p, re.IGNORECASE) for p in patterns])
            for action, patterns in INTENT_FAMILIES
        ]
    return _compiled_families


def normalize_text(text: str) -> str:
    """Collapse whitespace and straighten curly apostrophes."""
    text = text.replace("’", "'").replace("‘", "'")
    return re.sub(r"\s+", " ", text).strip()


@dataclass
class IntentMatch:
    action: Action
    keyword: str | None = None
    span: tuple[int, int] | None = None

    @property
    def explicit(self) -> bool:
        """True when a cue matched rather than the create fallback."""
        return self.keyword is not None


def classify_intent(text: str) -> IntentMatch:
    """Map lexical cues to one of create, update, delete, query.

    Returns an IntentMatch; with no cue at all the action is CREATE and
    ``keyword`` is None.
    """
    text = normalize_text(text)
    if not text:
        return IntentMatch(Action.CREATE)

    for action, patterns in _get_families():
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return IntentMatch(action, match.group().lower(), match.span())

    return IntentMatch(Action.CREATE)
