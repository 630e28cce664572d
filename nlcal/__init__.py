"""nlcal - Natural-language scheduling commands for a calendar

Philosophy:
    A scheduling request should turn into exactly one well-understood change
    to the calendar, or into a clear answer about why it can't. The parser is
    deterministic and never raises; the executor reports every failure as a
    typed result so the caller can retry, ask, or give up.

Components:
    models.py: Data models (Command variants, TimeWindow, ExternalEvent)
    errors.py: Execution error taxonomy
    config_models.py: Engine policy (business hours, durations, retries)
    parser/: Intent classification, temporal/entity extraction, confidence
    scheduling/: Validation, conflict resolution, dispatch, formatting
    gateway/: Calendar gateway interface, in-memory gateway, retry wrapper
    interpret/: Optional probabilistic interpreter (Anthropic adapter)
    engine.py: Facade tying parsing and execution together
    cli.py: Command-line entry point

Usage:
    from nlcal.engine import SchedulingEngine
    from nlcal.gateway.memory import InMemoryGateway

    engine = SchedulingEngine(InMemoryGateway())
    command = engine.parse("schedule lunch with Sara tomorrow at 12pm")
    result = await engine.resolve_and_execute(command)
"""

from pathlib import Path

# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
CONFIG_PATH = ARGS_DIR / "scheduling.yaml"

__version__ = "0.1.0"

__all__ = [
    "ARGS_DIR",
    "CONFIG_PATH",
    "PROJECT_ROOT",
    "__version__",
]
