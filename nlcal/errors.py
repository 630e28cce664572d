"""Execution errors for scheduling commands.

Parsing never raises; these cover the execution side only. The dispatcher
catches the ``SchedulingError`` family and returns it on the result, so
callers decide whether to retry, ask the user, or give up.
"""

from __future__ import annotations

from typing import Any

from nlcal.models import ExternalEvent, TimeWindow


class SchedulingError(Exception):
    """Base class for typed execution failures."""

    code = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(SchedulingError):
    """A required field is missing; recoverable by asking the user."""

    code = "validation_error"

    def __init__(self, missing_fields: list[str], question: str | None = None):
        self.missing_fields = list(missing_fields)
        self.question = question or (
            "Could you tell me the " + ", ".join(self.missing_fields) + "?"
        )
        super().__init__(f"Missing required fields: {', '.join(self.missing_fields)}")

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["missing_fields"] = list(self.missing_fields)
        d["question"] = self.question
        return d


class Unavailable(SchedulingError):
    """The requested window conflicts with existing events."""

    code = "unavailable"

    def __init__(
        self,
        message: str,
        window: TimeWindow,
        conflicts: list[ExternalEvent] | None = None,
        alternatives: list[TimeWindow] | None = None,
    ):
        super().__init__(message)
        self.window = window
        self.conflicts = list(conflicts or [])
        self.alternatives = list(alternatives or [])

    @property
    def suggestion(self) -> TimeWindow | None:
        return self.alternatives[0] if self.alternatives else None

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["window"] = self.window.to_dict()
        d["conflicts"] = [e.to_dict() for e in self.conflicts]
        d["suggestion"] = self.suggestion.to_dict() if self.suggestion else None
        d["alternatives"] = [w.to_dict() for w in self.alternatives]
        return d


class NotFound(SchedulingError):
    """No event matched the update/delete target."""

    code = "not_found"

    def __init__(self, message: str, criteria: dict[str, Any] | None = None):
        super().__init__(message)
        self.criteria = dict(criteria or {})

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["criteria"] = self.criteria
        return d


class GatewayError(SchedulingError):
    """The calendar collaborator failed after all retry attempts."""

    code = "gateway_error"

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["attempts"] = self.attempts
        return d


__all__ = [
    "GatewayError",
    "NotFound",
    "SchedulingError",
    "Unavailable",
    "ValidationError",
]
