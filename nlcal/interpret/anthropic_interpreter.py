"""
Anthropic-backed interpreter.

Asks a Claude model for a JSON scheduling command and maps the reply onto the
Command union. The reply is located either in a fenced code block or as the
largest balanced brace group in the text.

Usage:
    from nlcal.interpret.anthropic_interpreter import AnthropicInterpreter

    interpreter = AnthropicInterpreter(config.interpreter)
    command = await interpreter.interpret("move standup to 10", context)
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta
from typing import Any

import anthropic

from nlcal.config_models import InterpreterConfig
from nlcal.interpret.base import Interpreter
from nlcal.logging_config import get_logger
from nlcal.models import Command, CommandSource, ParseContext, command_from_dict

logger = get_logger(__name__)

INTERPRET_PROMPT = """You are a calendar scheduling assistant.
Extract a single scheduling command from the user's request.

Current time: {now} ({weekday})
{history}
Request: "{text}"

Reply with JSON only, in this shape:
{{
  "action": "create" | "update" | "delete" | "query",
  "title": string,
  "start_time": string,        // ISO 8601, local time
  "duration": number,          // minutes
  "location": string | null,
  "attendees": string[],
  "recurrence": {{"pattern": "daily" | "weekly" | "monthly" | "yearly", "interval": number, "by_day": string[]}} | null,
  "priority": "low" | "normal" | "high",
  "flexible": boolean,
  "target_time": string | null,   // update/delete: when the existing event starts
  "target_title": string | null,  // update/delete: the existing event's title
  "query_type": "availability" | "event_details" | null,
  "confidence": number            // 0-1, how sure you are
}}"""

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json(text: str) -> dict[str, Any] | None:
    """Pull a JSON object out of model output.

    Tries fenced code blocks first, then balanced ``{...}`` groups from
    largest to smallest.
    """
    for block in _CODE_BLOCK_RE.findall(text):
        try:
            value = json.loads(block)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    candidates: list[str] = []
    depth = 0
    start = -1
    for i, ch in enumerate(text):
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                candidates.append(text[start:i + 1])

    for candidate in sorted(candidates, key=len, reverse=True):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


def _localize(value: Any, reference: datetime) -> str | None:
    """Parse an ISO string, attaching the reference zone to naive values."""
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None and reference.tzinfo is not None:
        parsed = parsed.replace(tzinfo=reference.tzinfo)
    elif parsed.tzinfo is not None and reference.tzinfo is None:
        parsed = parsed.replace(tzinfo=None)
    return parsed.isoformat()


def to_command(
    data: dict[str, Any],
    text: str,
    reference: datetime,
    default_confidence: float,
) -> Command:
    """Map the model's JSON onto a Command. Raises on unusable data."""
    start = _localize(data.get("start_time"), reference)
    if start is None:
        raise ValueError("interpreter reply has no start_time")

    duration = data.get("duration")
    if not duration and data.get("end_time"):
        end = datetime.fromisoformat(_localize(data["end_time"], reference))
        duration = int((end - datetime.fromisoformat(start)) / timedelta(minutes=1))

    flexible = bool(data.get("flexible", False))
    priority = str(data.get("priority") or "normal").lower()
    payload = {
        "action": data.get("action") or "create",
        "title": data.get("title") or "",
        "start_time": start,
        "duration": int(duration or 30),
        "location": data.get("location"),
        "attendees": data.get("attendees") or [],
        "recurrence": data.get("recurrence"),
        "confidence": data.get("confidence", default_confidence),
        "context": {
            "is_urgent": priority == "high",
            "is_flexible": flexible,
            "priority": priority if priority in ("low", "normal", "high") else "normal",
            "time_preference": "flexible" if flexible else "exact",
        },
        "raw_text": text,
        "source": CommandSource.INTERPRETER.value,
        "target_time": _localize(data.get("target_time"), reference),
        "target_title": data.get("target_title"),
        "query_type": data.get("query_type"),
    }
    return command_from_dict(payload)


class AnthropicInterpreter(Interpreter):
    """Interpreter over the Anthropic Messages API."""

    def __init__(
        self,
        config: InterpreterConfig | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.config = config or InterpreterConfig()
        self._client = client

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic()
        return self._client

    def build_prompt(self, text: str, context: ParseContext) -> str:
        now = context.reference_time()
        history = "\n".join(
            f"{m.get('role', 'user')}: {m.get('content', '')}"
            for m in context.previous_messages[-5:]
        )
        return INTERPRET_PROMPT.format(
            now=now.isoformat(timespec="minutes"),
            weekday=now.strftime("%A"),
            history=f"Recent conversation:\n{history}\n" if history else "",
            text=text,
        )

    async def interpret(self, text: str, context: ParseContext) -> Command | None:
        reference = context.reference_time()
        try:
            response = await self.client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=0,
                messages=[{"role": "user", "content": self.build_prompt(text, context)}],
            )
            reply = "".join(
                block.text for block in response.content if getattr(block, "type", "") == "text"
            )
            data = extract_json(reply)
            if data is None:
                logger.warning("interpreter_unparseable", model=self.config.model)
                return None
            command = to_command(data, text, reference, self.config.default_confidence)
        except (anthropic.APIError, ValueError, KeyError, TypeError) as e:
            logger.warning("interpreter_failed", model=self.config.model, error=str(e))
            return None

        logger.debug(
            "interpreter_command",
            action=command.action.value,
            confidence=round(command.confidence, 3),
        )
        return command
