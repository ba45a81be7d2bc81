"""Bounded retry for stale prepared-statement / pooled-connection faults.

Pooled connections behind a transaction-mode pooler (pgbouncer, Supabase)
can end up out of sync with the server's prepared statements. Those faults
go away on a fresh connection, so the executor waits, resets the pool and
tries again. Every other error reaches the caller on the first attempt.
"""
import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# duplicate_prepared_statement, invalid_sql_statement_name
PREPARED_STATEMENT_SQLSTATES = frozenset({"42P05", "26000"})
PREPARED_STATEMENT_MARKER = "prepared statement"


def _error_chain(exc: BaseException):
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        # SQLAlchemy keeps the driver exception on ``orig``.
        pending.append(getattr(current, "orig", None))
        pending.append(current.__cause__)


def is_prepared_statement_error(exc: BaseException) -> bool:
    """True when ``exc`` carries the stale prepared-statement signature."""
    for error in _error_chain(exc):
        for attr in ("sqlstate", "pgcode", "code"):
            code = getattr(error, attr, None)
            if isinstance(code, str) and code.upper() in PREPARED_STATEMENT_SQLSTATES:
                return True
        if PREPARED_STATEMENT_MARKER in str(error).lower():
            return True
    return False


class QueryExecutor:
    """Runs datastore operations with linear-backoff retry on transient faults."""

    def __init__(
        self,
        reconnect: Callable[[], Awaitable[None]],
        is_transient: Callable[[BaseException], bool] = is_prepared_statement_error,
        max_attempts: int = 3,
        backoff_seconds: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._reconnect = reconnect
        self.is_transient = is_transient
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._reconnect_lock = asyncio.Lock()

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        max_attempts: Optional[int] = None,
    ) -> T:
        """Await ``operation()``; transient faults are retried, all else re-raised as is."""
        attempts = max_attempts or self.max_attempts

        def log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                "Transient datastore fault, retrying",
                operation=operation_name,
                attempt=retry_state.attempt_number,
                max_attempts=attempts,
                error=str(retry_state.outcome.exception()),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(start=self.backoff_seconds, increment=self.backoff_seconds),
            retry=retry_if_exception(self.is_transient),
            before_sleep=log_retry,
            sleep=self._pause_and_reconnect,
            reraise=True,
        )

        # AsyncRetrying only awaits coroutine functions; callers pass lambdas.
        async def attempt() -> T:
            return await operation()

        return await retrying(attempt)

    async def _pause_and_reconnect(self, seconds: float) -> None:
        await self._sleep(seconds)
        async with self._reconnect_lock:
            try:
                await self._reconnect()
            except Exception as e:
                # The next attempt reports its own failure.
                logger.error("Reconnection failed", error=str(e))
