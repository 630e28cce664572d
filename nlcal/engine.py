"""
Scheduling Engine

Facade over the parser, the dispatcher and a calendar gateway. One engine
can serve many requests; no state is kept between them.

Usage:
    from nlcal.engine import SchedulingEngine
    from nlcal.gateway import InMemoryGateway

    engine = SchedulingEngine(InMemoryGateway())
    command = engine.parse("schedule lunch with Sara tomorrow at 12pm")
    result = await engine.resolve_and_execute(command)

    # or in one go, consulting the interpreter when one is configured
    result = await engine.handle("move my 3pm to Friday")
"""

from __future__ import annotations

from nlcal.config_models import EngineConfig, load_config
from nlcal.gateway.base import CalendarGateway
from nlcal.gateway.retry import RetryingGateway
from nlcal.interpret.base import Interpreter
from nlcal.logging_config import get_logger, request_context
from nlcal.models import Command, DispatchState, ExecutionResult, ParseContext
from nlcal.parser.command_parser import CommandParser
from nlcal.scheduling.dispatcher import CommandDispatcher

logger = get_logger(__name__)


class SchedulingEngine:
    """Text in, calendar mutation or answer out."""

    def __init__(
        self,
        gateway: CalendarGateway,
        config: EngineConfig | None = None,
        interpreter: Interpreter | None = None,
    ):
        self.config = config or load_config()
        if interpreter is None and self.config.interpreter.enabled:
            from nlcal.interpret.anthropic_interpreter import AnthropicInterpreter

            interpreter = AnthropicInterpreter(self.config.interpreter)

        self.gateway = RetryingGateway(gateway, self.config.retry)
        self.parser = CommandParser(self.config, interpreter)
        self.dispatcher = CommandDispatcher(self.gateway, self.config)

    def parse(self, text: str, context: ParseContext | None = None) -> Command:
        """Deterministic parse; never raises."""
        return self.parser.parse(text, context)

    async def resolve_and_execute(self, command: Command) -> ExecutionResult:
        return await self.dispatcher.resolve_and_execute(command)

    async def handle(self, text: str, context: ParseContext | None = None) -> ExecutionResult:
        """Parse (with the interpreter, if any) and execute.

        Commands flagged for clarification are not executed; the result
        carries the clarification question instead. Log lines emitted while
        handling carry a ``request_id`` (and ``user_id`` when the context has one).
        """
        user_id = context.user_id if context else None
        with request_context(user_id=user_id):
            command = await self.parser.parse_with_interpreter(text, context)
            ambiguity = command.parse_ambiguity()
            if ambiguity is not None:
                logger.info(
                    "clarification_needed",
                    confidence=round(command.confidence, 3),
                    missing=ambiguity.missing_information,
                )
                return ExecutionResult(
                    success=False,
                    action=command.action,
                    state=DispatchState.RECEIVED,
                    message=ambiguity.question,
                    clarification=ambiguity,
                    states=[DispatchState.RECEIVED],
                )
            return await self.resolve_and_execute(command)
