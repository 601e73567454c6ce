from __future__ import annotations

import pytest

from storyboard.ai.backoff import call_with_retry, countdown, overload_wait_seconds, parse_retry_delay, rate_limit_wait_seconds
from storyboard.config import RetryPolicy
from storyboard.core.exceptions import RemoteCallError
from tests.fakes import RecordingSleep

POLICY = RetryPolicy()


def test_rate_limit_wait_rounds_up_and_adds_margin() -> None:
  assert rate_limit_wait_seconds("429 RESOURCE_EXHAUSTED. Please retry in 12.3s.", POLICY) == 14


def test_rate_limit_wait_defaults_without_hint() -> None:
  assert rate_limit_wait_seconds("429 Too Many Requests", POLICY) == 30


def test_rate_limit_wait_reads_retry_delay_detail() -> None:
  message = "{'@type': 'type.googleapis.com/google.rpc.RetryInfo', 'retryDelay': '41s'}"

  assert parse_retry_delay(message) == 41.0
  assert rate_limit_wait_seconds(message, POLICY) == 42


def test_whole_second_delay_still_gets_margin() -> None:
  assert rate_limit_wait_seconds("retry in 5s", POLICY) == 6


def test_rate_limit_wait_uses_policy_values() -> None:
  policy = RetryPolicy(rate_limit_default_seconds=7, rate_limit_margin_seconds=3)

  assert rate_limit_wait_seconds("slow down", policy) == 7
  assert rate_limit_wait_seconds("retry in 0.2s", policy) == 4


@pytest.mark.parametrize(("attempt", "expected"), [(1, 5), (2, 10), (4, 20)])
def test_overload_wait_is_linear_in_attempt(attempt: int, expected: int) -> None:
  assert overload_wait_seconds(attempt, POLICY) == expected


@pytest.mark.anyio
async def test_countdown_ticks_once_per_second(fake_sleep: RecordingSleep) -> None:
  remaining: list[int] = []

  await countdown(3, remaining.append, sleep=fake_sleep)

  assert remaining == [3, 2, 1]
  assert fake_sleep.delays == [1, 1, 1]


@pytest.mark.anyio
async def test_countdown_of_zero_does_not_sleep(fake_sleep: RecordingSleep) -> None:
  await countdown(0, lambda _: None, sleep=fake_sleep)

  assert fake_sleep.delays == []


@pytest.mark.anyio
async def test_call_with_retry_retries_overload_with_doubling_delay(fake_sleep: RecordingSleep) -> None:
  calls = 0

  async def flaky() -> str:
    nonlocal calls
    calls += 1
    if calls < 3:
      raise RemoteCallError("The model is overloaded.", status_code=503)
    return "ok"

  assert await call_with_retry(flaky, sleep=fake_sleep) == "ok"
  assert calls == 3
  assert fake_sleep.delays == [2.0, 4.0]


@pytest.mark.anyio
async def test_call_with_retry_raises_non_overload_immediately(fake_sleep: RecordingSleep) -> None:
  calls = 0

  async def denied() -> str:
    nonlocal calls
    calls += 1
    raise RemoteCallError("403 PERMISSION_DENIED", status_code=403)

  with pytest.raises(RemoteCallError):
    await call_with_retry(denied, sleep=fake_sleep)
  assert calls == 1
  assert fake_sleep.delays == []


@pytest.mark.anyio
async def test_call_with_retry_gives_up_after_last_attempt(fake_sleep: RecordingSleep) -> None:
  async def overloaded() -> str:
    raise RemoteCallError("503 UNAVAILABLE")

  with pytest.raises(RemoteCallError):
    await call_with_retry(overloaded, retries=3, sleep=fake_sleep)
  assert fake_sleep.delays == [2.0, 4.0]
