"""Backoff timing helpers shared by the job driver and provider calls."""

from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import Awaitable, Callable
from typing import TypeVar

from storyboard.ai.errors import ErrorClassifier, FailureKind
from storyboard.config import RetryPolicy

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]
logger = logging.getLogger(__name__)

_RETRY_DELAY_PATTERNS: tuple[re.Pattern[str], ...] = (
  re.compile(r"retry in ([\d.]+)\s*s", re.IGNORECASE),
  re.compile(r"[\"']?retryDelay[\"']?\s*:\s*[\"']([\d.]+)s[\"']", re.IGNORECASE),
)


def parse_retry_delay(message: str) -> float | None:
  """Return the server-suggested retry delay in seconds, if the message carries one."""
  for pattern in _RETRY_DELAY_PATTERNS:
    match = pattern.search(message)
    if not match:
      continue
    try:
      return float(match.group(1))
    except ValueError:
      continue
  return None


def rate_limit_wait_seconds(message: str, policy: RetryPolicy) -> int:
  """Compute the rate-limit wait: suggested delay rounded up plus a margin, else the default."""
  suggested = parse_retry_delay(message)
  if suggested is None:
    return policy.rate_limit_default_seconds
  return math.ceil(suggested) + policy.rate_limit_margin_seconds


def overload_wait_seconds(attempt: int, policy: RetryPolicy) -> int:
  """Linear backoff for overloaded responses; ``attempt`` is 1-indexed."""
  return policy.overload_backoff_seconds * attempt


async def countdown(seconds: int, on_tick: Callable[[int], None], *, sleep: Sleep = asyncio.sleep) -> None:
  """Wait ``seconds`` as one-second ticks, reporting the remaining time before each tick."""
  for remaining in range(seconds, 0, -1):
    on_tick(remaining)
    await sleep(1)


async def call_with_retry(
  func: Callable[..., Awaitable[T]],
  *args,
  retries: int = 3,
  base_delay: float = 2.0,
  classifier: ErrorClassifier | None = None,
  sleep: Sleep = asyncio.sleep,
  **kwargs,
) -> T:
  """
  Execute a coroutine function, retrying only when the service reports overload.

  Delays double from ``base_delay``: 2s, 4s, 8s.
  """
  classifier = classifier or ErrorClassifier()
  for attempt in range(retries):
    try:
      return await func(*args, **kwargs)
    except Exception as exc:
      kind = classifier.classify_exception(exc)
      if attempt == retries - 1 or kind is not FailureKind.SERVICE_OVERLOADED:
        raise
      delay = base_delay * (2**attempt)
      logger.warning("Model overloaded (503). Retrying in %.0fs... (Attempt %d/%d)", delay, attempt + 1, retries)
      await sleep(delay)
  raise RuntimeError("call_with_retry requires at least one attempt.")
