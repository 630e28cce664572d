"""Calendar gateways: the narrow interface the engine talks to a calendar through.

Components:
    base.py     CalendarGateway abstract interface
    memory.py   InMemoryGateway, a complete in-process calendar
    retry.py    RetryingGateway, backoff-with-jitter wrapper (tenacity)
"""

from nlcal.gateway.base import CalendarGateway, TransientGatewayError
from nlcal.gateway.memory import InMemoryGateway
from nlcal.gateway.retry import RetryingGateway

__all__ = [
    "CalendarGateway",
    "InMemoryGateway",
    "RetryingGateway",
    "TransientGatewayError",
]
