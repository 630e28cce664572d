"""Required-field checks per action."""

from __future__ import annotations

from nlcal.errors import ValidationError
from nlcal.models import (
    Command,
    CreateCommand,
    DeleteCommand,
    QueryCommand,
    UpdateCommand,
)

_QUESTIONS = {
    "title": "What should I call the event?",
    "start_time": "When should it start?",
    "duration": "How long should it be?",
    "target": "Which event do you mean? A time or title would help.",
    "query_type": "Are you asking whether you're free, or what's scheduled?",
}


def missing_fields(command: Command) -> list[str]:
    """Names of required fields the command lacks."""
    missing: list[str] = []

    if isinstance(command, (CreateCommand, UpdateCommand)):
        if not command.title or not command.title.strip():
            missing.append("title")
        if command.start_time is None:
            missing.append("start_time")
        if command.duration is None or command.duration <= 0:
            missing.append("duration")
        if isinstance(command, UpdateCommand) and not (
            command.target_time or command.target_title
        ):
            missing.append("target")

    elif isinstance(command, DeleteCommand):
        if not (command.target_time or command.target_title):
            missing.append("target")

    elif isinstance(command, QueryCommand):
        if command.start_time is None:
            missing.append("start_time")
        if command.query_type is None:
            missing.append("query_type")

    return missing


def validate_command(command: Command) -> None:
    """Raise ValidationError naming every missing field."""
    missing = missing_fields(command)
    if missing:
        question = " ".join(_QUESTIONS[f] for f in missing)
        raise ValidationError(missing, question)
