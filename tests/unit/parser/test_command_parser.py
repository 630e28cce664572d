"""Tests for the command parser.

Covers the end-to-end text → Command mapping, the clarification flag, and
interpreter selection.
"""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nlcal.interpret.base import Interpreter
from nlcal.models import (
    Action,
    CommandSource,
    CreateCommand,
    DeleteCommand,
    ParseContext,
    QueryCommand,
    QueryType,
    UpdateCommand,
)
from nlcal.parser.command_parser import CommandParser, parse


class TestCreate:

    def test_lunch_with_sara(self, parser, context):
        command = parser.parse("schedule lunch with Sara tomorrow at 12pm", context)
        assert isinstance(command, CreateCommand)
        assert command.action == Action.CREATE
        assert "Sara" in command.title
        assert command.duration == 60
        assert command.start_time == datetime(2026, 3, 3, 12, 0)
        assert command.attendees == ["Sara"]
        assert command.source == CommandSource.REGEX
        assert not command.needs_clarification

    def test_recurring_with_location(self, parser, context):
        command = parser.parse("set up a weekly sync with Priya on zoom every monday at 10am", context)
        assert command.recurrence.to_rrule() == "FREQ=WEEKLY;BYDAY=MO"
        assert command.location == "Zoom"
        assert command.attendees == ["Priya"]
        assert command.start_time == datetime(2026, 3, 2, 10, 0)

    def test_overnight_range(self, parser, context):
        command = parser.parse("book the venue tomorrow from 10pm to 1:30am", context)
        assert command.duration == 210
        assert command.end_time == datetime(2026, 3, 4, 1, 30)

    def test_default_title(self, parser, context):
        command = parser.parse("schedule tomorrow at 3pm", context)
        assert command.title == "Untitled Event"
        assert "title" in command.ambiguity.assumed_defaults

    def test_keeps_raw_text(self, parser, context):
        command = parser.parse("schedule lunch tomorrow", context)
        assert command.raw_text == "schedule lunch tomorrow"


class TestUpdate:

    def test_move_to_new_time(self, parser, context):
        command = parser.parse("move my 3pm meeting to 4pm", context)
        assert isinstance(command, UpdateCommand)
        assert command.target_time == datetime(2026, 3, 2, 15, 0)
        assert command.target_title == "Meeting"
        assert command.start_time == datetime(2026, 3, 2, 16, 0)

    def test_move_to_new_day_keeps_time(self, parser, context):
        command = parser.parse("move my 3pm with John to friday", context)
        assert command.target_time == datetime(2026, 3, 2, 15, 0)
        assert command.start_time == datetime(2026, 3, 6, 15, 0)
        assert command.attendees == ["John"]

    def test_new_time_keeps_target_day(self, parser, context):
        command = parser.parse("reschedule tomorrow's standup at 9am to 11am", context)
        assert command.target_time == datetime(2026, 3, 3, 9, 0)
        assert command.start_time == datetime(2026, 3, 3, 11, 0)

    def test_title_only_target(self, parser, context):
        command = parser.parse("push the design review to thursday at 2pm", context)
        assert command.target_title == "Design review"
        assert command.target_time is None
        assert command.start_time == datetime(2026, 3, 5, 14, 0)

    def test_defaulted_duration_is_recorded(self, parser, context):
        command = parser.parse("move my 3pm to 4pm", context)
        assert "duration" in command.ambiguity.assumed_defaults

    def test_explicit_duration(self, parser, context):
        command = parser.parse("move my 3pm to 4pm for 45 minutes", context)
        assert command.duration == 45
        assert "duration" not in command.ambiguity.assumed_defaults

    def test_destination_without_date_is_recorded(self, parser, context):
        command = parser.parse("move lunch with Sara to 3pm", context)
        assert command.target_time is None
        assert command.target_title == "Lunch with Sara"
        assert "date" in command.ambiguity.assumed_defaults
        assert "start_time" not in command.ambiguity.assumed_defaults

    def test_destination_without_time_is_recorded(self, parser, context):
        command = parser.parse("move the dentist to friday", context)
        assert "start_time" in command.ambiguity.assumed_defaults
        assert "date" not in command.ambiguity.assumed_defaults

    def test_source_clock_is_not_a_default(self, parser, context):
        command = parser.parse("move my 3pm with John to friday", context)
        assert "start_time" not in command.ambiguity.assumed_defaults


class TestDeleteAndQuery:

    def test_cancel_by_time(self, parser, context):
        command = parser.parse("cancel my 3pm", context)
        assert isinstance(command, DeleteCommand)
        assert command.target_time == datetime(2026, 3, 2, 15, 0)
        assert command.target_title is None

    def test_cancel_by_title(self, parser, context):
        command = parser.parse("cancel the dentist appointment", context)
        assert command.target_title == "Dentist appointment"
        assert command.target_time is None

    def test_whole_day_query(self, parser, context):
        command = parser.parse("what do I have tomorrow", context)
        assert isinstance(command, QueryCommand)
        assert command.query_type == QueryType.EVENT_DETAILS
        assert command.whole_day
        window = command.query_window
        assert window.start == datetime(2026, 3, 3, 0, 0)
        assert window.end == datetime(2026, 3, 4, 0, 0)

    def test_availability_query(self, parser, context):
        command = parser.parse("am I free tomorrow at 2pm", context)
        assert command.query_type == QueryType.AVAILABILITY
        assert not command.whole_day
        assert command.query_window.start == datetime(2026, 3, 3, 14, 0)


class TestClarification:

    def test_empty_text_needs_clarification(self, parser, context):
        command = parser.parse("", context)
        assert 0.0 <= command.confidence <= 1.0
        assert command.needs_clarification
        ambiguity = command.parse_ambiguity()
        assert ambiguity is not None
        assert "time" in ambiguity.missing_information
        assert ambiguity.question

    def test_confident_parse_has_no_ambiguity(self, parser, context):
        command = parser.parse("schedule lunch with Sara tomorrow at 12pm", context)
        assert command.parse_ambiguity() is None

    def test_hedged_vague_request(self, parser, context):
        command = parser.parse("maybe coffee sometime", context)
        assert command.confidence < 0.5
        assert command.needs_clarification

    @pytest.mark.parametrize("text", [
        "cancel lunch with Sara tomorrow",
        "what's on my calendar tomorrow",
        "am I free tomorrow",
        "move the dentist to friday",
    ])
    def test_missing_clock_time_is_fine_when_not_needed(self, parser, context, text):
        command = parser.parse(text, context)
        assert command.confidence < 0.5
        assert "time" in command.ambiguity.missing_information
        assert not command.needs_clarification
        assert command.parse_ambiguity() is None

    def test_cancel_without_title_or_time_still_asks(self, parser, context):
        command = parser.parse("cancel tomorrow", context)
        assert command.target_title is None
        assert command.needs_clarification


class TestDeterminism:

    @pytest.mark.parametrize("text", [
        "schedule lunch with Sara tomorrow at 12pm",
        "move my 3pm with John to friday",
        "cancel my 3pm",
        "am I free tomorrow at 2pm",
        "",
    ])
    def test_same_input_same_command(self, parser, context, text):
        assert parser.parse(text, context) == parser.parse(text, context)

    def test_module_level_parse(self, context):
        assert parse("cancel my 3pm", context).action == Action.DELETE

    def test_never_raises(self, parser, context):
        with patch(
            "nlcal.parser.command_parser.extract_temporal", side_effect=RuntimeError("boom")
        ):
            command = parser.parse("schedule lunch tomorrow", context)
        assert command.confidence == 0.0
        assert command.needs_clarification


class TestInterpreterSelection:

    def _interpreter(self, command) -> Interpreter:
        interpreter = MagicMock(spec=Interpreter)
        interpreter.interpret = AsyncMock(return_value=command)
        return interpreter

    @pytest.mark.asyncio
    async def test_higher_confidence_wins(self, config, context):
        better = CreateCommand(
            title="Lunch with Sara",
            start_time=datetime(2026, 3, 3, 12, 0),
            duration=60,
            confidence=0.99,
            source=CommandSource.INTERPRETER,
        )
        parser = CommandParser(config, interpreter=self._interpreter(better))
        command = await parser.parse_with_interpreter("lunch w/ sara tmrw noonish", context)
        assert command is better

    @pytest.mark.asyncio
    async def test_tie_goes_to_regex(self, config, context):
        text = "schedule lunch with Sara tomorrow at 12pm"
        regex_command = CommandParser(config).parse(text, context)
        tied = regex_command.with_changes(source=CommandSource.INTERPRETER)
        parser = CommandParser(config, interpreter=self._interpreter(tied))
        command = await parser.parse_with_interpreter(text, context)
        assert command.source == CommandSource.REGEX

    @pytest.mark.asyncio
    async def test_none_falls_back_to_regex(self, config, context):
        parser = CommandParser(config, interpreter=self._interpreter(None))
        command = await parser.parse_with_interpreter("cancel my 3pm", context)
        assert command.action == Action.DELETE

    @pytest.mark.asyncio
    async def test_interpreter_error_falls_back_to_regex(self, config, context):
        interpreter = MagicMock(spec=Interpreter)
        interpreter.interpret = AsyncMock(side_effect=RuntimeError("model down"))
        parser = CommandParser(config, interpreter=interpreter)
        command = await parser.parse_with_interpreter("cancel my 3pm", context)
        assert command.source == CommandSource.REGEX

    @pytest.mark.asyncio
    async def test_context_is_pinned_for_both_passes(self, config):
        interpreter = self._interpreter(None)
        parser = CommandParser(config, interpreter=interpreter)
        await parser.parse_with_interpreter("cancel my 3pm", ParseContext())
        passed_context = interpreter.interpret.call_args.args[1]
        assert passed_context.now is not None
