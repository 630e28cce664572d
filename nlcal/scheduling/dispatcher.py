"""Route commands through validation, resolution and execution.

Each command walks RECEIVED → VALIDATED → RESOLVED → EXECUTED, or drops to
FAILED from any state. Typed scheduling errors become failed results;
anything else propagates.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from nlcal.config_models import EngineConfig
from nlcal.errors import GatewayError, NotFound, SchedulingError, Unavailable
from nlcal.gateway.base import CalendarGateway
from nlcal.logging_config import get_logger
from nlcal.models import (
    Action,
    Command,
    DeleteCommand,
    DispatchState,
    ExecutionResult,
    ExternalEvent,
    QueryCommand,
    QueryType,
    UpdateCommand,
)
from nlcal.scheduling import formatting
from nlcal.scheduling.resolver import SchedulingResolver
from nlcal.scheduling.validator import validate_command

logger = get_logger(__name__)


class CommandDispatcher:
    """Executes one command at a time against a gateway."""

    def __init__(
        self,
        gateway: CalendarGateway,
        config: EngineConfig | None = None,
        resolver: SchedulingResolver | None = None,
    ):
        self.gateway = gateway
        self.config = config or EngineConfig()
        self.resolver = resolver or SchedulingResolver(gateway, self.config)

    async def resolve_and_execute(self, command: Command) -> ExecutionResult:
        """Run a command to completion and describe the outcome."""
        states = [DispatchState.RECEIVED]
        target: ExternalEvent | None = None
        effective = command

        try:
            validate_command(command)
            if isinstance(command, (UpdateCommand, DeleteCommand)):
                target = await self.find_target(command)
            states.append(DispatchState.VALIDATED)

            if isinstance(command, QueryCommand):
                result = await self._query(command, states)
            elif isinstance(command, DeleteCommand):
                result = await self._delete(command, target, states)
            elif isinstance(command, UpdateCommand):
                effective = self.merge_update(command, target)
                result = await self._update(effective, target, states)
            else:
                result = await self._create(command, states)

        except Unavailable as e:
            await self._attach_alternatives(e, effective, target)
            states.append(DispatchState.FAILED)
            logger.info(
                "command_unavailable",
                action=command.action.value,
                conflicts=len(e.conflicts),
                alternatives=len(e.alternatives),
            )
            return ExecutionResult(
                success=False,
                action=command.action,
                state=DispatchState.FAILED,
                message=formatting.unavailable_summary(e.message, e.suggestion),
                error=e,
                suggestion=e.suggestion,
                alternatives=list(e.alternatives),
                states=states,
            )
        except SchedulingError as e:
            states.append(DispatchState.FAILED)
            logger.info("command_failed", action=command.action.value, code=e.code, error=e.message)
            return ExecutionResult(
                success=False,
                action=command.action,
                state=DispatchState.FAILED,
                message=getattr(e, "question", None) or e.message,
                error=e,
                states=states,
            )

        result.states = states
        return result

    # =========================================================================
    # Target matching
    # =========================================================================

    async def find_target(self, command: UpdateCommand | DeleteCommand) -> ExternalEvent:
        """The existing event an update or delete refers to.

        Looks within ±N days of the target time: title containment first
        (either direction, case-insensitive, closest in time), then exact
        start-time equality.

        Raises:
            NotFound: Nothing matched.
        """
        anchor = command.target_time or command.start_time
        window_days = timedelta(days=self.config.search.target_window_days)
        events = await self.gateway.list_events(anchor - window_days, anchor + window_days)

        if command.target_title:
            wanted = command.target_title.lower()
            by_title = [
                e for e in events
                if wanted in e.title.lower() or e.title.lower() in wanted
            ]
            if by_title:
                return min(by_title, key=lambda e: abs(e.start - anchor))

        if command.target_time is not None:
            for event in events:
                if event.start == command.target_time:
                    return event

        criteria = {
            "target_time": command.target_time.isoformat() if command.target_time else None,
            "target_title": command.target_title,
        }
        raise NotFound("No matching event found", criteria)

    def merge_update(self, command: UpdateCommand, target: ExternalEvent) -> UpdateCommand:
        """Keep the target's title, and its day, clock and length when none was asked for."""
        assumed = command.ambiguity.assumed_defaults
        day = target.start.date() if "date" in assumed else command.start_time.date()
        clock = target.start.timetz() if "start_time" in assumed else command.start_time.timetz()
        start = datetime.combine(day, clock)
        duration = command.duration
        if "duration" in assumed:
            duration = target.duration_minutes
        return command.with_changes(
            title=target.title,
            start_time=start,
            duration=duration,
            location=command.location or target.location,
            attendees=list(command.attendees or target.attendees),
        )

    # =========================================================================
    # Actions
    # =========================================================================

    async def _create(self, command: Command, states: list[DispatchState]) -> ExecutionResult:
        async def write() -> ExternalEvent:
            states.append(DispatchState.RESOLVED)
            return await self.gateway.create_event(command)

        event = await self.resolver.guarded_write(command, write)
        states.append(DispatchState.EXECUTED)
        logger.info("event_created", event_id=event.id, start=event.start.isoformat())
        return ExecutionResult(
            success=True,
            action=Action.CREATE,
            state=DispatchState.EXECUTED,
            message=formatting.confirmation("Created", event),
            event=event,
        )

    async def _update(
        self, command: UpdateCommand, target: ExternalEvent, states: list[DispatchState]
    ) -> ExecutionResult:
        async def write() -> ExternalEvent:
            states.append(DispatchState.RESOLVED)
            return await self.gateway.update_event(target.id, command)

        event = await self.resolver.guarded_write(command, write, exclude_event_id=target.id)
        states.append(DispatchState.EXECUTED)
        logger.info("event_updated", event_id=event.id, start=event.start.isoformat())
        return ExecutionResult(
            success=True,
            action=Action.UPDATE,
            state=DispatchState.EXECUTED,
            message=formatting.confirmation("Updated", event),
            event=event,
        )

    async def _delete(
        self, command: DeleteCommand, target: ExternalEvent, states: list[DispatchState]
    ) -> ExecutionResult:
        states.append(DispatchState.RESOLVED)
        if not await self.gateway.delete_event(target.id):
            raise NotFound(f"Event {target.id} no longer exists", {"event_id": target.id})
        states.append(DispatchState.EXECUTED)
        logger.info("event_deleted", event_id=target.id)
        return ExecutionResult(
            success=True,
            action=Action.DELETE,
            state=DispatchState.EXECUTED,
            message=formatting.confirmation("Cancelled", target),
            event=target,
        )

    async def _query(self, command: QueryCommand, states: list[DispatchState]) -> ExecutionResult:
        window = command.query_window
        events = [
            e for e in await self.gateway.list_events(window.start, window.end)
            if e.window.overlaps(window)
        ]
        states.append(DispatchState.RESOLVED)

        if command.query_type == QueryType.AVAILABILITY:
            available = await self.resolver.is_available(command, window)
            suggestion = None
            if not available and not command.whole_day:
                alternatives = await self.resolver.suggest_alternatives(command, limit=1)
                suggestion = alternatives[0] if alternatives else None
            message = formatting.availability_summary(available, window, suggestion)
        else:
            available = None
            suggestion = None
            message = formatting.events_summary(events, window)

        states.append(DispatchState.EXECUTED)
        return ExecutionResult(
            success=True,
            action=Action.QUERY,
            state=DispatchState.EXECUTED,
            message=message,
            events=events,
            available=available,
            suggestion=suggestion,
        )

    async def _attach_alternatives(
        self, error: Unavailable, command: Command, target: ExternalEvent | None
    ) -> None:
        if error.alternatives:
            return
        try:
            error.alternatives = await self.resolver.suggest_alternatives(
                command,
                limit=self.config.search.conflict_alternatives,
                exclude_event_id=target.id if target else None,
            )
        except GatewayError as e:
            logger.warning("alternatives_unavailable", error=e.message)
