"""Scheduling: validation, conflict resolution, dispatch and result text.

Components:
    validator.py   Per-action required-field checks
    resolver.py    Overlap, suitability, alternative search, guarded write
    dispatcher.py  Command lifecycle and target matching
    formatting.py  Human-readable confirmations
"""

from nlcal.scheduling.dispatcher import CommandDispatcher
from nlcal.scheduling.resolver import Resolution, SchedulingResolver
from nlcal.scheduling.validator import validate_command

__all__ = [
    "CommandDispatcher",
    "SchedulingResolver",
    "Resolution",
    "validate_command",
]
