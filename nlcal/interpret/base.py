"""Interpreter capability interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from nlcal.models import Command, ParseContext


class Interpreter(ABC):
    """Turns request text into a Command by some non-deterministic means.

    Best-effort: returns None instead of raising when it cannot produce a
    command. The engine works without one.
    """

    @abstractmethod
    async def interpret(self, text: str, context: ParseContext) -> Command | None:
        """Interpret text relative to ``context.reference_time()``."""
