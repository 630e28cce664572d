"""Turn request text into a structured scheduling command.

Runs the intent, temporal and entity passes, scores the result and flags it
for clarification when confidence is low and something is ambiguous or
missing. ``parse`` is deterministic for a pinned ``ParseContext.now`` and
never raises.

Usage:
    parser = CommandParser(config)
    command = parser.parse("schedule lunch with Sara tomorrow at 12pm")

    # Optional second opinion from a language model
    parser = CommandParser(config, interpreter=AnthropicInterpreter(config))
    command = await parser.parse_with_interpreter(text, context)
"""

from __future__ import annotations

import dataclasses
import re
from datetime import datetime, timedelta

from nlcal.config_models import EngineConfig, parse_clock
from nlcal.interpret.base import Interpreter
from nlcal.logging_config import get_logger
from nlcal.models import (
    Action,
    AmbiguityRecord,
    Command,
    CommandSource,
    CreateCommand,
    DeleteCommand,
    ParseContext,
    QueryCommand,
    UpdateCommand,
)
from nlcal.parser import confidence
from nlcal.parser.entity_extractor import (
    detect_query_type,
    extract_attendees,
    extract_context_flags,
    extract_location,
    extract_title,
)
from nlcal.parser.intent_classifier import IntentMatch, classify_intent, normalize_text
from nlcal.parser.temporal_extractor import TemporalResult, extract_temporal

logger = get_logger(__name__)

# "move my 3pm with John to Friday at 4": what is moved, then where it goes
_UPDATE_SPLIT_RE = re.compile(r"^(?P<source>.*?)\s+(?:to|until|till)\s+(?P<dest>.+)$", re.I)


class CommandParser:
    """Deterministic command extraction with optional interpreter selection."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        interpreter: Interpreter | None = None,
    ):
        self.config = config or EngineConfig()
        self.interpreter = interpreter

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def parse(self, text: str, context: ParseContext | None = None) -> Command:
        """Parse text into a Command. Never raises."""
        context = context or ParseContext(timezone=self.config.timezone)
        reference = context.reference_time()
        try:
            command = self._build(text or "", reference)
        except Exception as e:
            logger.warning("parse_failed", error=str(e), text=text)
            command = self._fallback(text or "", reference)

        logger.debug(
            "command_parsed",
            action=command.action.value,
            confidence=round(command.confidence, 3),
            needs_clarification=command.needs_clarification,
        )
        return command

    async def parse_with_interpreter(
        self, text: str, context: ParseContext | None = None
    ) -> Command:
        """Parse, then let the interpreter compete; ties go to the regex result."""
        context = context or ParseContext(timezone=self.config.timezone)
        if context.now is None:
            context = dataclasses.replace(context, now=context.reference_time())

        regex_command = self.parse(text, context)
        if self.interpreter is None:
            return regex_command

        try:
            candidate = await self.interpreter.interpret(text, context)
        except Exception as e:
            logger.warning("interpreter_failed", error=str(e))
            return regex_command

        if candidate is not None and candidate.confidence > regex_command.confidence:
            logger.info(
                "interpreter_selected",
                interpreter_confidence=round(candidate.confidence, 3),
                regex_confidence=round(regex_command.confidence, 3),
            )
            return candidate
        return regex_command

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def _build(self, text: str, reference: datetime) -> Command:
        normalized = normalize_text(text)
        intent = classify_intent(normalized)

        if intent.action == Action.UPDATE:
            return self._build_update(normalized, intent, reference)

        temporal = extract_temporal(normalized, reference, self.config)
        score, record = confidence.score(normalized, intent, temporal, self.config)
        common = self._common_fields(normalized, intent, temporal, score, record, temporal.spans)

        if intent.action == Action.DELETE:
            target_title = None if "title" in record.assumed_defaults else common["title"]
            # a title is enough to find what to cancel
            if target_title is not None:
                common["needs_clarification"] = self._needs_clarification(
                    score, record, optional={"time"}
                )
            return DeleteCommand(
                **common,
                target_time=temporal.start_time if self._has_anchor(temporal) else None,
                target_title=target_title,
            )
        if intent.action == Action.QUERY:
            whole_day = not temporal.has_explicit_time
            if whole_day:
                common["needs_clarification"] = self._needs_clarification(
                    score, record, optional={"time"}
                )
            return QueryCommand(
                **common,
                query_type=detect_query_type(normalized),
                whole_day=whole_day,
            )
        return CreateCommand(**common)

    def _build_update(
        self, text: str, intent: IntentMatch, reference: datetime
    ) -> UpdateCommand:
        split = _UPDATE_SPLIT_RE.match(text)
        source_text = split.group("source") if split else text
        source = extract_temporal(source_text, reference, self.config)
        dest = extract_temporal(split.group("dest"), reference, self.config) if split else None

        target_time = source.start_time if self._has_anchor(source) else None
        anchor = target_time or reference

        if dest is not None and (dest.has_time or dest.has_explicit_date):
            # a missing date keeps the target's day, a missing time its clock
            day = dest.start_time.date() if dest.has_explicit_date else anchor.date()
            if dest.has_time:
                clock = dest.start_time.timetz()
            elif source.has_time:
                clock = source.start_time.timetz()
            else:
                clock = parse_clock(self.config.time_defaults.default_time).replace(
                    tzinfo=reference.tzinfo
                )
            start = datetime.combine(day, clock)
            moved = dest
        else:
            start = source.start_time
            moved = source

        explicit = [t for t in (dest, source) if t is not None and t.has_explicit_duration]
        duration = explicit[0].duration if explicit else moved.duration

        merged = dataclasses.replace(
            moved,
            start_time=start,
            duration=duration,
            has_explicit_time=source.has_explicit_time or moved.has_explicit_time,
            has_explicit_date=source.has_explicit_date or moved.has_explicit_date,
            has_explicit_duration=bool(explicit),
            is_approximate=source.is_approximate or moved.is_approximate,
            time_confidence=max(source.time_confidence, moved.time_confidence),
            # "date"/"start_time" left here mean the destination did not say;
            # execution then keeps the target event's own day or clock
            assumed_defaults=[
                d for d in moved.assumed_defaults
                if not (d == "duration" and explicit)
                and not (d == "start_time" and source.has_time)
            ],
            alternatives=list(moved.alternatives or source.alternatives),
        )

        score, record = confidence.score(text, intent, merged, self.config)
        common = self._common_fields(
            source_text, intent, merged, score, record, source.spans, full_text=text
        )
        target_title = None if "title" in record.assumed_defaults else common["title"]
        # "move the dentist to friday" keeps the dentist's clock
        if target_title is not None and dest is not None and dest.has_explicit_date:
            common["needs_clarification"] = self._needs_clarification(
                score, record, optional={"time"}
            )
        return UpdateCommand(
            **common,
            target_time=target_time,
            target_title=target_title,
        )

    def _common_fields(
        self,
        title_text: str,
        intent: IntentMatch,
        temporal: TemporalResult,
        score: float,
        record: AmbiguityRecord,
        spans: list[tuple[int, int]],
        full_text: str | None = None,
    ) -> dict:
        text = full_text or title_text

        location, location_span = extract_location(title_text)
        title_spans = list(spans)
        if intent.span and intent.span[1] <= len(title_text):
            title_spans.append(intent.span)
        if location_span:
            title_spans.append(location_span)

        title = extract_title(title_text, title_spans)
        if title is None:
            title = self.config.parsing.default_title
            record.assumed_defaults.append("title")

        return {
            "title": title,
            "start_time": temporal.start_time,
            "duration": temporal.duration,
            "location": location,
            "attendees": extract_attendees(text),
            "recurrence": temporal.recurrence,
            "confidence": score,
            "context": extract_context_flags(text, temporal),
            "ambiguity": record,
            "needs_clarification": self._needs_clarification(score, record),
            "raw_text": text,
            "source": CommandSource.REGEX,
        }

    def _needs_clarification(
        self, score: float, record: AmbiguityRecord, optional: set[str] | None = None
    ) -> bool:
        """Low confidence plus an alternative reading or a gap the action cares about.

        ``optional`` names missing items this action can do without.
        """
        if score >= self.config.parsing.clarification_threshold:
            return False
        gaps = [m for m in record.missing_information if m not in (optional or set())]
        return bool(record.alternative_interpretations or gaps)

    @staticmethod
    def _has_anchor(temporal: TemporalResult) -> bool:
        return temporal.has_time or temporal.has_explicit_date

    def _fallback(self, text: str, reference: datetime) -> Command:
        start = datetime.combine(
            reference.date(),
            parse_clock(self.config.time_defaults.default_time),
            tzinfo=reference.tzinfo,
        )
        return CreateCommand(
            title=self.config.parsing.default_title,
            start_time=start,
            duration=self.config.durations.default,
            confidence=0.0,
            ambiguity=AmbiguityRecord(
                assumed_defaults=["title", "start_time", "duration"],
                missing_information=["details"],
                confidence_reasons=["request could not be parsed"],
            ),
            needs_clarification=True,
            raw_text=text,
        )


def parse(
    text: str,
    context: ParseContext | None = None,
    config: EngineConfig | None = None,
) -> Command:
    """Parse with a throwaway parser."""
    return CommandParser(config).parse(text, context)


__all__ = ["CommandParser", "parse"]
