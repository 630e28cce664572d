"""Probabilistic interpreters: optional second opinion on a request.

Components:
    base.py                   Interpreter capability interface
    anthropic_interpreter.py  Adapter over the Anthropic Messages API
"""

from nlcal.interpret.base import Interpreter

__all__ = ["Interpreter"]
