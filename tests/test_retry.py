import asyncio
from unittest.mock import AsyncMock

import pytest

from errors import ProviderUnavailable
from retry import call_with_retry, is_transient_error


@pytest.mark.parametrize("message", [
    "503 Service Unavailable",
    "503 UNAVAILABLE. {'error': {'code': 503}}",
    "status: UNAVAILABLE",
    "The model is overloaded. Please try again later.",
    "Error code: 529 - {'type': 'overloaded_error'}",
    "Model OVERLOADED",
])
def test_transient_markers(message: str) -> None:
    assert is_transient_error(RuntimeError(message)) is True


@pytest.mark.parametrize("message", [
    "400 INVALID_ARGUMENT",
    "401 Unauthorized",
    "unavailable",  # status token is case-sensitive
    "Request payload size exceeds the limit",
])
def test_non_transient_errors(message: str) -> None:
    assert is_transient_error(RuntimeError(message)) is False


def test_returns_first_success_without_sleeping() -> None:
    operation = AsyncMock(return_value="ok")
    sleep = AsyncMock()

    assert asyncio.run(call_with_retry(operation, sleep=sleep)) == "ok"
    assert operation.await_count == 1
    sleep.assert_not_awaited()


def test_succeeds_after_two_transient_failures() -> None:
    operation = AsyncMock(side_effect=[
        RuntimeError("503 Service Unavailable"),
        RuntimeError("503 Service Unavailable"),
        "ok",
    ])
    sleep = AsyncMock()

    result = asyncio.run(call_with_retry(operation, max_retries=3, initial_delay=1.0, sleep=sleep))

    assert result == "ok"
    assert operation.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


def test_exhausted_transient_retries_raise_provider_unavailable() -> None:
    cause = RuntimeError("The model is overloaded")
    operation = AsyncMock(side_effect=cause)
    sleep = AsyncMock()

    with pytest.raises(ProviderUnavailable) as excinfo:
        asyncio.run(call_with_retry(operation, max_retries=4, initial_delay=0.5, sleep=sleep))

    assert operation.await_count == 4
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0, 2.0, 4.0]
    assert excinfo.value.attempts == 4
    assert excinfo.value.__cause__ is None
    assert excinfo.value.__suppress_context__ is True
    assert "temporarily unavailable" in str(excinfo.value)


def test_non_transient_error_fails_fast() -> None:
    operation = AsyncMock(side_effect=ValueError("400 INVALID_ARGUMENT: bad schema"))
    sleep = AsyncMock()

    with pytest.raises(ValueError, match="INVALID_ARGUMENT"):
        asyncio.run(call_with_retry(operation, sleep=sleep))

    assert operation.await_count == 1
    sleep.assert_not_awaited()


def test_non_transient_error_after_transient_one_propagates() -> None:
    operation = AsyncMock(side_effect=[RuntimeError("UNAVAILABLE"), KeyError("boom")])
    sleep = AsyncMock()

    with pytest.raises(KeyError):
        asyncio.run(call_with_retry(operation, sleep=sleep))

    assert operation.await_count == 2
    assert sleep.await_count == 1


def test_concurrent_invocations_are_independent() -> None:
    flaky = AsyncMock(side_effect=[RuntimeError("503"), "flaky-ok"])
    steady = AsyncMock(return_value="steady-ok")
    sleep = AsyncMock()

    async def both() -> list[str]:
        return await asyncio.gather(
            call_with_retry(flaky, sleep=sleep),
            call_with_retry(steady, sleep=sleep),
        )

    assert asyncio.run(both()) == ["flaky-ok", "steady-ok"]
    assert flaky.await_count == 2
    assert steady.await_count == 1


def test_three_overloaded_attempts_wait_after_each_failure() -> None:
    operation = AsyncMock(side_effect=RuntimeError("503 Service Unavailable"))
    sleep = AsyncMock()

    with pytest.raises(ProviderUnavailable):
        asyncio.run(call_with_retry(operation, max_retries=3, initial_delay=1.0, sleep=sleep))

    assert operation.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0]


def test_zero_retries_rejected_without_calling_operation() -> None:
    operation = AsyncMock(return_value="ok")

    with pytest.raises(ValueError, match="max_retries"):
        asyncio.run(call_with_retry(operation, max_retries=0, sleep=AsyncMock()))

    operation.assert_not_awaited()
