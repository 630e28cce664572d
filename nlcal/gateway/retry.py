"""Retrying wrapper around any CalendarGateway.

Transport failures are retried with exponential backoff plus jitter, up to a
bounded number of attempts, then surface as ``GatewayError``. Domain errors
(``SchedulingError``) and programming errors are never retried.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from nlcal.config_models import RetryConfig
from nlcal.errors import GatewayError
from nlcal.gateway.base import CalendarGateway, TransientGatewayError
from nlcal.logging_config import get_logger
from nlcal.models import Command, ExternalEvent

logger = get_logger(__name__)


# Transport failures only
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    TransientGatewayError,
    OSError,
    TimeoutError,
    asyncio.TimeoutError,
)


def is_retryable(exception: BaseException) -> bool:
    """
    Check if a gateway failure is worth another attempt.

    Retryable:
    - TransientGatewayError (rate limits, 5xx from a provider)
    - OSError, including ConnectionError
    - TimeoutError

    Everything else (TypeError, KeyError, SchedulingError, ...) is raised
    on the first attempt.
    """
    return isinstance(exception, RETRYABLE_ERRORS)


class RetryingGateway(CalendarGateway):
    """Decorates a gateway with tenacity-driven retries."""

    def __init__(self, inner: CalendarGateway, config: RetryConfig | None = None):
        self.inner = inner
        self.config = config or RetryConfig()

    @property
    def name(self) -> str:
        return f"Retrying({self.inner.name})"

    def _log_retry(self, operation: str) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                "gateway_retry",
                gateway=self.inner.name,
                operation=operation,
                attempt=state.attempt_number,
                max_attempts=self.config.max_attempts,
                error=str(error),
            )
        return before_sleep

    async def _call(
        self, operation: str, fn: Callable[..., Awaitable[Any]], *args: Any
    ) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.config.initial_wait_seconds,
                max=self.config.max_wait_seconds,
                jitter=self.config.jitter_seconds,
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=self._log_retry(operation),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await fn(*args)
        except RetryError as e:
            last = e.last_attempt.exception()
            attempts = e.last_attempt.attempt_number
            logger.error(
                "gateway_failed",
                gateway=self.inner.name,
                operation=operation,
                attempts=attempts,
                error=str(last),
            )
            raise GatewayError(
                f"{operation} failed after {attempts} attempts: {last}", attempts=attempts
            ) from last

    async def list_events(self, start: datetime, end: datetime) -> list[ExternalEvent]:
        return await self._call("list_events", self.inner.list_events, start, end)

    async def check_free(self, start: datetime, end: datetime) -> bool:
        return await self._call("check_free", self.inner.check_free, start, end)

    async def create_event(self, command: Command) -> ExternalEvent:
        return await self._call("create_event", self.inner.create_event, command)

    async def update_event(self, event_id: str, command: Command) -> ExternalEvent:
        return await self._call("update_event", self.inner.update_event, event_id, command)

    async def delete_event(self, event_id: str) -> bool:
        return await self._call("delete_event", self.inner.delete_event, event_id)
