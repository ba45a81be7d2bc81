"""Tests for the resilient query executor."""
import functools

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from eportfolio.core.retry import QueryExecutor, is_prepared_statement_error


class StaleStatement(Exception):
    sqlstate = "42P05"


class Recorder:
    """Collects sleeps and reconnects issued by the executor."""

    def __init__(self, fail_reconnect=False):
        self.sleeps = []
        self.reconnects = 0
        self.fail_reconnect = fail_reconnect

    async def sleep(self, seconds):
        self.sleeps.append(seconds)

    async def reconnect(self):
        self.reconnects += 1
        if self.fail_reconnect:
            raise ConnectionError("server closed the connection")

    def executor(self, **kwargs):
        return QueryExecutor(reconnect=self.reconnect, sleep=self.sleep, **kwargs)


def failing_operation(error):
    calls = []

    async def operation():
        calls.append(1)
        raise error

    return operation, calls


async def test_transient_fault_attempted_max_attempts_then_reraised():
    recorder = Recorder()
    error = StaleStatement("stale")
    operation, calls = failing_operation(error)

    with pytest.raises(StaleStatement) as exc_info:
        await recorder.executor(max_attempts=3).execute(operation, "find_user")

    assert exc_info.value is error
    assert len(calls) == 3
    assert recorder.reconnects == 2
    assert recorder.sleeps == pytest.approx([0.1, 0.2])


async def test_non_transient_error_attempted_once():
    recorder = Recorder()
    error = ValueError("user not found")
    operation, calls = failing_operation(error)

    with pytest.raises(ValueError) as exc_info:
        await recorder.executor().execute(operation, "find_user")

    assert exc_info.value is error
    assert len(calls) == 1
    assert recorder.reconnects == 0
    assert recorder.sleeps == []


async def test_recovers_after_transient_fault():
    recorder = Recorder()
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) == 1:
            raise StaleStatement("stale")
        return "user"

    result = await recorder.executor().execute(operation, "find_user")

    assert result == "user"
    assert len(calls) == 2
    assert recorder.reconnects == 1


async def test_per_call_max_attempts_override():
    recorder = Recorder()
    operation, calls = failing_operation(StaleStatement("stale"))

    with pytest.raises(StaleStatement):
        await recorder.executor(max_attempts=3).execute(operation, "find_user", max_attempts=5)

    assert len(calls) == 5
    assert recorder.sleeps == pytest.approx([0.1, 0.2, 0.3, 0.4])


async def test_failed_reconnect_does_not_stop_retries():
    recorder = Recorder(fail_reconnect=True)
    operation, calls = failing_operation(StaleStatement("stale"))

    with pytest.raises(StaleStatement):
        await recorder.executor(max_attempts=3).execute(operation, "find_user")

    assert len(calls) == 3
    assert recorder.reconnects == 2


async def test_lambda_operation_result_is_awaited():
    recorder = Recorder()

    async def lookup(email):
        return {"email": email}

    result = await recorder.executor().execute(lambda: lookup("ana@x.com"), "get_by_email")

    assert result == {"email": "ana@x.com"}


async def test_lambda_operation_retries_transient_fault():
    recorder = Recorder()
    calls = []

    async def lookup(email):
        calls.append(email)
        if len(calls) < 3:
            raise StaleStatement("stale")
        return email

    result = await recorder.executor(max_attempts=3).execute(
        functools.partial(lookup, "ana@x.com"), "get_by_email"
    )

    assert result == "ana@x.com"
    assert len(calls) == 3
    assert recorder.reconnects == 2


async def test_lambda_operation_exhausts_attempts():
    recorder = Recorder()
    error = StaleStatement("stale")
    operation, calls = failing_operation(error)

    with pytest.raises(StaleStatement) as exc_info:
        await recorder.executor(max_attempts=3).execute(lambda: operation(), "find_user")

    assert exc_info.value is error
    assert len(calls) == 3


def test_invalid_max_attempts():
    with pytest.raises(ValueError):
        QueryExecutor(reconnect=Recorder().reconnect, max_attempts=0)


class DriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


@pytest.mark.parametrize(
    "error,expected",
    [
        (StaleStatement("boom"), True),
        (DriverError("whatever", pgcode="26000"), True),
        (OperationalError("SELECT 1", None, DriverError('prepared statement "s4" already exists')), True),
        (OperationalError("SELECT 1", None, DriverError("connection refused")), False),
        (IntegrityError("INSERT", None, DriverError("duplicate key", pgcode="23505")), False),
        (ValueError("user not found"), False),
    ],
)
def test_prepared_statement_signature(error, expected):
    assert is_prepared_statement_error(error) is expected


def test_signature_found_through_cause_chain():
    try:
        try:
            raise StaleStatement("stale")
        except StaleStatement as inner:
            raise RuntimeError("query failed") from inner
    except RuntimeError as outer:
        assert is_prepared_statement_error(outer)
