"""Confidence scoring and ambiguity tracking for parsed commands."""

from __future__ import annotations

import re

from nlcal.config_models import EngineConfig
from nlcal.models import AmbiguityRecord
from nlcal.parser.intent_classifier import IntentMatch
from nlcal.parser.temporal_extractor import TemporalResult

TIME_WEIGHT = 0.6
ACTION_BONUS = 0.1
EXPLICIT_TIME_BONUS = 0.2
EXPLICIT_DURATION_BONUS = 0.1
HEDGING_PENALTY = 0.1
NO_TIME_PENALTY = 0.2


def find_hedging(text: str, hedging_words: list[str]) -> str | None:
    """First hedging word present in the text, if any."""
    lowered = text.lower()
    for word in hedging_words:
        if re.search(rf"\b{re.escape(word.lower())}\b", lowered):
            return word
    return None


def score(
    text: str,
    intent: IntentMatch,
    temporal: TemporalResult,
    config: EngineConfig | None = None,
) -> tuple[float, AmbiguityRecord]:
    """Combine extraction signals into one confidence value.

    Returns (confidence in [0, 1], ambiguity record). Defaults applied by the
    temporal pass are carried into ``assumed_defaults``; every penalty lands
    in both ``missing_information`` and ``confidence_reasons``.
    """
    config = config or EngineConfig()
    record = AmbiguityRecord(
        assumed_defaults=list(temporal.assumed_defaults),
        confidence_reasons=list(temporal.notes),
        alternative_interpretations=list(temporal.alternatives),
    )

    confidence = TIME_WEIGHT * temporal.time_confidence

    if intent.explicit:
        confidence += ACTION_BONUS
    else:
        record.assumed_defaults.append("action")

    if temporal.has_explicit_time:
        confidence += EXPLICIT_TIME_BONUS
    elif not temporal.has_time:
        confidence -= NO_TIME_PENALTY
        record.missing_information.append("time")
        record.confidence_reasons.append("no explicit time given")

    if temporal.has_explicit_duration:
        confidence += EXPLICIT_DURATION_BONUS

    hedge = find_hedging(text, config.parsing.hedging_words)
    if hedge:
        confidence -= HEDGING_PENALTY
        record.missing_information.append("confirmation")
        record.confidence_reasons.append(f"hedging language: {hedge!r}")

    return min(1.0, max(0.0, confidence)), record


__all__ = ["find_hedging", "score"]
