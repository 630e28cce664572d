"""Tests for command dispatch: validation, target matching, guarded writes."""

from datetime import datetime

import pytest

from nlcal.errors import GatewayError, NotFound, Unavailable, ValidationError
from nlcal.gateway.memory import InMemoryGateway
from nlcal.models import (
    Action,
    AmbiguityRecord,
    CreateCommand,
    DeleteCommand,
    DispatchState,
    QueryCommand,
    QueryType,
    UpdateCommand,
)
from nlcal.scheduling.dispatcher import CommandDispatcher

R, V, RS, X, F = (
    DispatchState.RECEIVED,
    DispatchState.VALIDATED,
    DispatchState.RESOLVED,
    DispatchState.EXECUTED,
    DispatchState.FAILED,
)


def at(value: str) -> datetime:
    return datetime.fromisoformat(value)


def create(start: str = "2026-03-02T14:00", minutes: int = 30, title: str = "Review"):
    return CreateCommand(title=title, start_time=at(start), duration=minutes)


class TestCreate:

    @pytest.mark.asyncio
    async def test_creates_on_free_calendar(self, gateway, config):
        dispatcher = CommandDispatcher(gateway, config)

        result = await dispatcher.resolve_and_execute(create())

        assert result.success
        assert result.state == X
        assert result.states == [R, V, RS, X]
        assert result.event.title == "Review"
        assert gateway.get(result.event.id) is not None
        assert result.message == (
            'Created: "Review" on Monday, March 2, 2026 from 2:00 PM to 2:30 PM'
        )

    @pytest.mark.asyncio
    async def test_conflict_returns_alternatives(self, make_event, config):
        gateway = InMemoryGateway([make_event("Busy", "2026-03-02T14:00", 60)])
        dispatcher = CommandDispatcher(gateway, config)

        result = await dispatcher.resolve_and_execute(create("2026-03-02T14:30"))

        assert not result.success
        assert result.states == [R, V, F]
        assert isinstance(result.error, Unavailable)
        assert len(result.alternatives) == config.search.conflict_alternatives
        assert result.suggestion == result.alternatives[0]
        assert result.suggestion.start >= at("2026-03-02T15:00")
        assert "How about" in result.message
        assert len(gateway.events) == 1

    @pytest.mark.asyncio
    async def test_missing_title_fails_validation(self, gateway, config):
        dispatcher = CommandDispatcher(gateway, config)

        result = await dispatcher.resolve_and_execute(create(title=""))

        assert result.states == [R, F]
        assert isinstance(result.error, ValidationError)
        assert result.error.missing_fields == ["title"]
        assert result.message == "What should I call the event?"
        assert gateway.events == []

    @pytest.mark.asyncio
    async def test_slot_taken_during_guard(self, make_event, config):
        class RacingGateway(InMemoryGateway):
            def __init__(self):
                super().__init__()
                self.raced = False

            async def check_free(self, start, end):
                free = await super().check_free(start, end)
                if not self.raced:
                    self.raced = True
                    rival = make_event("Rival", start.isoformat(), 30, event_id="rival")
                    self._events[rival.id] = rival
                return free

        gateway = RacingGateway()
        dispatcher = CommandDispatcher(gateway, config)

        result = await dispatcher.resolve_and_execute(create())

        assert not result.success
        assert "became unavailable" in result.error.message
        assert [e.id for e in gateway.events] == ["rival"]
        assert result.suggestion is not None
        assert result.suggestion.start >= at("2026-03-02T14:30")

    @pytest.mark.asyncio
    async def test_gateway_error_becomes_failed_result(self, config):
        class DownGateway(InMemoryGateway):
            async def check_free(self, start, end):
                raise GatewayError("check_free failed after 3 attempts", attempts=3)

        dispatcher = CommandDispatcher(DownGateway(), config)

        result = await dispatcher.resolve_and_execute(create())

        assert result.state == F
        assert result.error.code == "gateway_error"
        assert result.error.attempts == 3

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, config):
        class BrokenGateway(InMemoryGateway):
            async def check_free(self, start, end):
                raise RuntimeError("bug")

        dispatcher = CommandDispatcher(BrokenGateway(), config)
        with pytest.raises(RuntimeError):
            await dispatcher.resolve_and_execute(create())


class TestTargetMatching:

    @pytest.mark.asyncio
    async def test_cancel_unknown_time_is_not_found(self, parser, context, gateway, config):
        command = parser.parse("cancel my 3pm", context)
        dispatcher = CommandDispatcher(gateway, config)

        result = await dispatcher.resolve_and_execute(command)

        assert result.states == [R, F]
        assert isinstance(result.error, NotFound)
        assert result.error.criteria["target_time"] == "2026-03-02T15:00:00"
        assert result.message == "No matching event found"

    @pytest.mark.asyncio
    async def test_title_match_prefers_closest(self, make_event, config):
        monday = make_event("Standup", "2026-03-02T09:00", 15)
        tuesday = make_event("Team standup", "2026-03-03T09:00", 15)
        dispatcher = CommandDispatcher(InMemoryGateway([monday, tuesday]), config)
        command = DeleteCommand(
            title="Standup",
            start_time=at("2026-03-03T08:00"),
            duration=30,
            target_time=at("2026-03-03T08:00"),
            target_title="standup",
        )

        assert (await dispatcher.find_target(command)).id == tuesday.id

    @pytest.mark.asyncio
    async def test_falls_back_to_exact_start(self, make_event, config):
        event = make_event("Dentist", "2026-03-02T15:00")
        dispatcher = CommandDispatcher(InMemoryGateway([event]), config)
        command = DeleteCommand(
            title="Doctor",
            start_time=at("2026-03-02T15:00"),
            duration=30,
            target_time=at("2026-03-02T15:00"),
            target_title="doctor",
        )

        assert (await dispatcher.find_target(command)).id == event.id

    @pytest.mark.asyncio
    async def test_outside_search_window_is_not_found(self, make_event, config):
        event = make_event("Standup", "2026-03-10T09:00", 15)
        dispatcher = CommandDispatcher(InMemoryGateway([event]), config)
        command = DeleteCommand(
            title="Standup",
            start_time=at("2026-03-02T09:00"),
            duration=30,
            target_title="standup",
        )

        with pytest.raises(NotFound):
            await dispatcher.find_target(command)


class TestUpdateAndDelete:

    @pytest.mark.asyncio
    async def test_update_keeps_title_and_length(self, make_event, config):
        standup = make_event("Standup", "2026-03-02T09:00", 15)
        gateway = InMemoryGateway([standup])
        dispatcher = CommandDispatcher(gateway, config)
        command = UpdateCommand(
            title="Standup",
            start_time=at("2026-03-02T09:10"),
            duration=30,
            target_time=at("2026-03-02T09:00"),
            ambiguity=AmbiguityRecord(assumed_defaults=["duration"]),
        )

        result = await dispatcher.resolve_and_execute(command)

        assert result.success
        assert result.states == [R, V, RS, X]
        moved = gateway.get(standup.id)
        assert moved.title == "Standup"
        assert moved.start == at("2026-03-02T09:10")
        assert moved.duration_minutes == 15
        assert result.message.startswith('Updated: "Standup"')

    @pytest.mark.asyncio
    async def test_update_without_date_keeps_target_day(self, make_event, config):
        lunch = make_event("Lunch with Sara", "2026-03-03T12:00", 60)
        gateway = InMemoryGateway([lunch])
        dispatcher = CommandDispatcher(gateway, config)
        command = UpdateCommand(
            title="Lunch with Sara",
            start_time=at("2026-03-02T15:00"),
            duration=30,
            target_title="lunch with sara",
            ambiguity=AmbiguityRecord(assumed_defaults=["date", "duration"]),
        )

        result = await dispatcher.resolve_and_execute(command)

        assert result.success
        moved = gateway.get(lunch.id)
        assert moved.start == at("2026-03-03T15:00")
        assert moved.duration_minutes == 60

    def test_merge_keeps_target_clock_without_time(self, make_event, config):
        dentist = make_event("Dentist", "2026-03-04T10:00", 45)
        dispatcher = CommandDispatcher(InMemoryGateway([dentist]), config)
        command = UpdateCommand(
            title="Dentist",
            start_time=at("2026-03-06T09:00"),
            duration=30,
            target_title="dentist",
            ambiguity=AmbiguityRecord(assumed_defaults=["start_time", "duration"]),
        )

        merged = dispatcher.merge_update(command, dentist)

        assert merged.start_time == at("2026-03-06T10:00")
        assert merged.duration == 45

    @pytest.mark.asyncio
    async def test_update_into_conflict(self, make_event, config):
        standup = make_event("Standup", "2026-03-02T09:00", 15)
        review = make_event("Review", "2026-03-02T11:00", 60)
        gateway = InMemoryGateway([standup, review])
        dispatcher = CommandDispatcher(gateway, config)
        command = UpdateCommand(
            title="Standup",
            start_time=at("2026-03-02T11:30"),
            duration=15,
            target_title="standup",
        )

        result = await dispatcher.resolve_and_execute(command)

        assert not result.success
        assert [e.id for e in result.error.conflicts] == [review.id]
        assert gateway.get(standup.id).start == at("2026-03-02T09:00")

    @pytest.mark.asyncio
    async def test_delete_by_time(self, make_event, config):
        event = make_event("Dentist", "2026-03-02T15:00")
        gateway = InMemoryGateway([event])
        dispatcher = CommandDispatcher(gateway, config)
        command = DeleteCommand(
            title="Untitled Event",
            start_time=at("2026-03-02T15:00"),
            duration=30,
            target_time=at("2026-03-02T15:00"),
        )

        result = await dispatcher.resolve_and_execute(command)

        assert result.success
        assert result.action == Action.DELETE
        assert result.states == [R, V, RS, X]
        assert gateway.events == []
        assert result.message.startswith('Cancelled: "Dentist"')

    @pytest.mark.asyncio
    async def test_delete_of_vanished_event(self, make_event, config):
        class VanishingGateway(InMemoryGateway):
            async def delete_event(self, event_id):
                return False

        event = make_event("Dentist", "2026-03-02T15:00")
        dispatcher = CommandDispatcher(VanishingGateway([event]), config)
        command = DeleteCommand(
            title="Dentist",
            start_time=at("2026-03-02T15:00"),
            duration=30,
            target_title="dentist",
        )

        result = await dispatcher.resolve_and_execute(command)

        assert isinstance(result.error, NotFound)
        assert result.states == [R, V, RS, F]


class TestQuery:

    @pytest.mark.asyncio
    async def test_lists_whole_day(self, make_event, config):
        gateway = InMemoryGateway([
            make_event("Standup", "2026-03-03T09:00", 15),
            make_event("Lunch", "2026-03-03T12:00", 60),
            make_event("Other day", "2026-03-04T09:00", 15),
        ])
        dispatcher = CommandDispatcher(gateway, config)
        command = QueryCommand(
            title="Untitled Event",
            start_time=at("2026-03-03T09:00"),
            duration=30,
            query_type=QueryType.EVENT_DETAILS,
            whole_day=True,
        )

        result = await dispatcher.resolve_and_execute(command)

        assert result.success
        assert [e.title for e in result.events] == ["Standup", "Lunch"]
        assert result.available is None
        assert result.message.startswith("2 event(s) on Tuesday, March 3, 2026")

    @pytest.mark.asyncio
    async def test_busy_slot_suggests_next(self, make_event, config):
        gateway = InMemoryGateway([make_event("Busy", "2026-03-02T14:00", 60)])
        dispatcher = CommandDispatcher(gateway, config)
        command = QueryCommand(
            title="Untitled Event",
            start_time=at("2026-03-02T14:00"),
            duration=60,
            query_type=QueryType.AVAILABILITY,
        )

        result = await dispatcher.resolve_and_execute(command)

        assert result.success
        assert result.available is False
        assert result.suggestion.start == at("2026-03-02T15:00")
        assert "The next free slot" in result.message

    @pytest.mark.asyncio
    async def test_free_slot(self, gateway, config):
        dispatcher = CommandDispatcher(gateway, config)
        command = QueryCommand(
            title="Untitled Event",
            start_time=at("2026-03-02T14:00"),
            duration=60,
            query_type=QueryType.AVAILABILITY,
        )

        result = await dispatcher.resolve_and_execute(command)

        assert result.available is True
        assert result.suggestion is None
        assert result.message.startswith("You're free")
