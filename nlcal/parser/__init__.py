"""Scheduling command parsing: intent, temporal and entity extraction, confidence."""

from nlcal.parser.command_parser import CommandParser, parse
from nlcal.parser.intent_classifier import classify_intent
from nlcal.parser.temporal_extractor import extract_temporal

__all__ = [
    "CommandParser",
    "classify_intent",
    "extract_temporal",
    "parse",
]
