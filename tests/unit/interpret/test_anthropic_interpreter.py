"""Tests for the Anthropic-backed interpreter. The client is always mocked."""

import json
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from nlcal.config_models import InterpreterConfig
from nlcal.interpret.anthropic_interpreter import (
    AnthropicInterpreter,
    extract_json,
    to_command,
)
from nlcal.models import (
    Action,
    CommandSource,
    ParseContext,
    Priority,
    RecurrencePattern,
    UpdateCommand,
)

NOW = datetime(2026, 3, 2, 10, 0)  # Monday


def reply(text: str):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def mock_client(text: str) -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=reply(text))
    return client


class TestExtractJson:

    def test_code_block(self):
        text = 'Here you go:\n```json\n{"action": "create", "title": "Lunch"}\n```'
        assert extract_json(text) == {"action": "create", "title": "Lunch"}

    def test_bare_object_with_prose(self):
        text = 'Sure! {"action": "delete", "target": {"title": "Dentist"}} Anything else?'
        assert extract_json(text) == {"action": "delete", "target": {"title": "Dentist"}}

    def test_largest_object_wins(self):
        text = '{"a": 1} and {"action": "query", "title": "x", "duration": 30}'
        assert extract_json(text)["action"] == "query"

    def test_bad_code_block_falls_back_to_braces(self):
        text = '```json\n{not json}\n```\n{"title": "Sync"}'
        assert extract_json(text) == {"title": "Sync"}

    @pytest.mark.parametrize("text", ["", "no json here", "{broken", "[1, 2, 3]"])
    def test_nothing_usable(self, text):
        assert extract_json(text) is None


class TestToCommand:

    def test_update_fields(self):
        data = {
            "action": "update",
            "title": "Standup",
            "start_time": "2026-03-06T10:00:00",
            "duration": 15,
            "target_title": "standup",
            "priority": "high",
            "confidence": 0.92,
        }

        command = to_command(data, "move standup to friday 10", NOW, 0.7)

        assert isinstance(command, UpdateCommand)
        assert command.start_time == datetime(2026, 3, 6, 10, 0)
        assert command.target_title == "standup"
        assert command.context.priority == Priority.HIGH
        assert command.confidence == pytest.approx(0.92)
        assert command.source == CommandSource.INTERPRETER

    def test_duration_from_end_time(self):
        data = {
            "start_time": "2026-03-03T12:00:00",
            "end_time": "2026-03-03T13:30:00",
            "title": "Lunch",
        }
        command = to_command(data, "lunch tomorrow noon to 1:30", NOW, 0.7)
        assert command.duration == 90
        assert command.confidence == pytest.approx(0.7)

    def test_offset_dropped_for_naive_reference(self):
        data = {"start_time": "2026-03-03T12:00:00Z", "duration": 30, "title": "Call"}
        command = to_command(data, "call", NOW, 0.7)
        assert command.start_time.tzinfo is None

    def test_recurrence(self):
        data = {
            "title": "Sync",
            "start_time": "2026-03-02T10:00:00",
            "duration": 30,
            "recurrence": {"pattern": "weekly", "interval": 2, "by_day": ["MO"]},
        }
        command = to_command(data, "biweekly sync", NOW, 0.7)
        assert command.recurrence.pattern == RecurrencePattern.WEEKLY
        assert command.recurrence.to_rrule() == "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO"

    def test_missing_start_raises(self):
        with pytest.raises(ValueError):
            to_command({"title": "Lunch"}, "lunch", NOW, 0.7)


class TestAnthropicInterpreter:

    @pytest.mark.asyncio
    async def test_interprets_reply(self):
        payload = {
            "action": "create",
            "title": "Lunch with Sara",
            "start_time": "2026-03-03T12:00:00",
            "duration": 60,
            "attendees": ["Sara"],
            "confidence": 0.95,
        }
        client = mock_client(f"```json\n{json.dumps(payload)}\n```")
        interpreter = AnthropicInterpreter(InterpreterConfig(model="test-model"), client=client)

        command = await interpreter.interpret("lunch w/ sara tmrw", ParseContext(now=NOW))

        assert command.action == Action.CREATE
        assert command.attendees == ["Sara"]
        assert command.raw_text == "lunch w/ sara tmrw"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "lunch w/ sara tmrw" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_unparseable_reply(self):
        interpreter = AnthropicInterpreter(client=mock_client("I'm not sure what you mean."))
        assert await interpreter.interpret("hmm", ParseContext(now=NOW)) is None

    @pytest.mark.asyncio
    async def test_reply_without_start_time(self):
        interpreter = AnthropicInterpreter(client=mock_client('{"title": "Lunch"}'))
        assert await interpreter.interpret("lunch", ParseContext(now=NOW)) is None

    @pytest.mark.asyncio
    async def test_bad_enum_value(self):
        client = mock_client('{"action": "explode", "start_time": "2026-03-03T12:00:00"}')
        interpreter = AnthropicInterpreter(client=client)
        assert await interpreter.interpret("lunch", ParseContext(now=NOW)) is None

    def test_prompt_carries_reference_and_history(self):
        interpreter = AnthropicInterpreter(client=MagicMock())
        context = ParseContext(
            now=NOW,
            previous_messages=[{"role": "user", "content": "book the team lunch"}],
        )

        prompt = interpreter.build_prompt("make it friday", context)

        assert "2026-03-02T10:00 (Monday)" in prompt
        assert "user: book the team lunch" in prompt
        assert 'Request: "make it friday"' in prompt
