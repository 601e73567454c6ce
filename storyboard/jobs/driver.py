"""Retry/backoff driver for a single scene image job."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from storyboard.ai.backoff import Sleep, countdown, overload_wait_seconds, rate_limit_wait_seconds
from storyboard.ai.errors import ErrorClassifier, FailureKind, FailureSignal, extract_signal
from storyboard.ai.providers.base import ImageModel
from storyboard.config import RetryPolicy
from storyboard.jobs.models import SceneJob
from storyboard.jobs.store import SceneJobStore

logger = logging.getLogger(__name__)

RETRYING_MESSAGE = "Retrying..."
RATE_LIMIT_COUNTDOWN = "Rate limit hit. Retrying in {remaining}s..."
OVERLOAD_COUNTDOWN = "Model busy (503). Retrying in {remaining}s..."


@dataclass(frozen=True)
class DriverOutcome:
  """Terminal result of one driver run."""

  job_id: int
  failure: FailureKind | None
  attempts: int

  @property
  def succeeded(self) -> bool:
    return self.failure is None


class SceneJobDriver:
  """
  Drives one job through the image call until success or a terminal failure.

  Rate-limited and overloaded responses are retried after a countdown that
  updates the job's status message once per second. Every other failure kind
  ends the run immediately. Remote-call failures never propagate to the caller.
  """

  def __init__(
    self,
    store: SceneJobStore,
    image_model: ImageModel,
    *,
    policy: RetryPolicy | None = None,
    classifier: ErrorClassifier | None = None,
    on_auth_denied: Callable[[str], None] | None = None,
    sleep: Sleep = asyncio.sleep,
  ) -> None:
    self._store = store
    self._image_model = image_model
    self._policy = policy or RetryPolicy()
    self._classifier = classifier or ErrorClassifier()
    self._on_auth_denied = on_auth_denied
    self._sleep = sleep

  @property
  def store(self) -> SceneJobStore:
    return self._store

  async def run(self, job_id: int) -> DriverOutcome | None:
    """Run the job to a terminal state; returns None when another driver already owns it."""
    if not self._store.claim(job_id):
      logger.info("Scene job %s is already running; skipping duplicate run.", job_id)
      return None
    epoch = self._store.epoch
    try:
      return await self._run_attempts(job_id, epoch)
    finally:
      self._store.release(job_id, epoch)

  async def _run_attempts(self, job_id: int, epoch: int) -> DriverOutcome | None:
    attempts = 0
    while attempts < self._policy.max_attempts:
      job = self._update(job_id, epoch, is_running=True, last_error=None, status_message=RETRYING_MESSAGE if attempts > 0 else None)
      if job is None:
        return None

      try:
        artifact = await self._image_model.generate_image(job.prompt)
      except Exception as exc:  # noqa: BLE001
        attempts += 1
        signal = extract_signal(exc)
        kind = self._classifier.classify(signal)

        if kind is FailureKind.RATE_LIMITED:
          wait_seconds = rate_limit_wait_seconds(signal.message, self._policy)
          template = RATE_LIMIT_COUNTDOWN
        elif kind is FailureKind.SERVICE_OVERLOADED:
          wait_seconds = overload_wait_seconds(attempts, self._policy)
          template = OVERLOAD_COUNTDOWN
        else:
          self._log_terminal(job_id, kind, signal, exc)
          return self._finish_failed(job_id, epoch, kind, attempts, signal)

        if attempts >= self._policy.max_attempts:
          break
        logger.warning("Scene job %s %s on attempt %d/%d; retrying in %ds.", job_id, kind.value, attempts, self._policy.max_attempts, wait_seconds)
        await countdown(wait_seconds, lambda remaining, template=template: self._update(job_id, epoch, status_message=template.format(remaining=remaining)), sleep=self._sleep)
        continue

      if self._update(job_id, epoch, result=artifact, last_error=None, status_message=None, is_running=False) is None:
        return None
      logger.info("Scene job %s generated after %d attempt(s).", job_id, attempts + 1)
      return DriverOutcome(job_id=job_id, failure=None, attempts=attempts + 1)

    logger.error("Scene job %s exhausted %d attempts.", job_id, attempts)
    return self._finish_failed(job_id, epoch, FailureKind.RETRIES_EXHAUSTED, attempts, None)

  def _finish_failed(self, job_id: int, epoch: int, kind: FailureKind, attempts: int, signal: FailureSignal | None) -> DriverOutcome:
    self._update(job_id, epoch, result=None, last_error=kind, status_message=None, is_running=False)
    if kind is FailureKind.AUTH_DENIED and self._on_auth_denied is not None:
      self._on_auth_denied(signal.message if signal else kind.label)
    return DriverOutcome(job_id=job_id, failure=kind, attempts=attempts)

  def _log_terminal(self, job_id: int, kind: FailureKind, signal: FailureSignal, exc: Exception) -> None:
    if kind is FailureKind.UNKNOWN:
      logger.error("Error generating scene %s.", job_id, exc_info=exc)
    else:
      logger.warning("Scene job %s stopped: %s (%s)", job_id, kind.label, signal.message)

  def _update(self, job_id: int, epoch: int, **changes: object) -> SceneJob | None:
    # The scene set can be replaced while a driver is mid-run.
    if epoch != self._store.epoch or job_id not in self._store:
      logger.info("Scene job %s left the store; dropping update.", job_id)
      return None
    return self._store.update(job_id, **changes)
