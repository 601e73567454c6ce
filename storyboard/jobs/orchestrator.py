"""Bulk entry points over the scheduler and the scene-set session around them."""

from __future__ import annotations

import asyncio
import logging

from storyboard.ai.backoff import Sleep
from storyboard.ai.errors import ErrorClassifier
from storyboard.ai.providers.base import ImageModel, SpeechModel, TextModel
from storyboard.config import RetryPolicy, Settings
from storyboard.core.credentials import CredentialState, CredentialStatus
from storyboard.core.exceptions import JobBusyError, RemoteCallError
from storyboard.jobs.driver import DriverOutcome, SceneJobDriver
from storyboard.jobs.models import SceneJob
from storyboard.jobs.scheduler import BatchScheduler
from storyboard.jobs.store import SceneJobStore

logger = logging.getLogger(__name__)

QUEUED_MESSAGE = "Queued..."
AUTH_DENIED_SESSION_ERROR = "Permission denied. Select API Key."


class BatchOrchestrator:
  """Selects which jobs to run and hands them to the scheduler or the driver."""

  def __init__(self, store: SceneJobStore, driver: SceneJobDriver, scheduler: BatchScheduler) -> None:
    self._store = store
    self._driver = driver
    self._scheduler = scheduler
    self._active_batches = 0
    # (epoch, job id) pairs handed to a batch that has not finished yet.
    self._queued: set[tuple[int, int]] = set()

  @property
  def is_generating_all(self) -> bool:
    return self._active_batches > 0

  def is_busy(self, job_id: int) -> bool:
    """True while the job is running or waiting in a batch queue."""
    return self._store.is_owned(job_id) or (self._store.epoch, job_id) in self._queued

  def pending_ids(self) -> list[int]:
    return [job.id for job in self._store.list() if job.result is None and not self.is_busy(job.id)]

  def failed_ids(self) -> list[int]:
    return [job.id for job in self._store.list() if job.last_error is not None and not self.is_busy(job.id)]

  async def generate_all(self) -> list[DriverOutcome]:
    """Run every job that has no result yet as one batch."""
    return await self._run_batch(self.pending_ids())

  async def retry_failed(self) -> list[DriverOutcome]:
    """Reset every failed job to queued and run them as one batch."""
    failed = self.failed_ids()
    for job_id in failed:
      self._store.update(job_id, last_error=None, status_message=QUEUED_MESSAGE)
    return await self._run_batch(failed)

  async def generate_one(self, job_id: int) -> DriverOutcome | None:
    """Regenerate a single scene without going through the scheduler."""
    self._store.get(job_id)
    if self.is_busy(job_id):
      raise JobBusyError(job_id)
    return await self._driver.run(job_id)

  async def _run_batch(self, job_ids: list[int]) -> list[DriverOutcome]:
    epoch = self._store.epoch
    entries = {(epoch, job_id) for job_id in job_ids}
    self._queued |= entries
    self._active_batches += 1
    try:
      return await self._scheduler.run_batch(job_ids, on_finished=lambda job_id: self._queued.discard((epoch, job_id)))
    finally:
      self._active_batches -= 1
      self._queued -= entries


class StoryboardSession:
  """
  One scene set plus the collaborators that act on it.

  Holds the session-level error message and reacts to credential
  invalidation raised by any job driver.
  """

  def __init__(
    self,
    *,
    image_model: ImageModel,
    text_model: TextModel,
    speech_model: SpeechModel | None = None,
    policy: RetryPolicy | None = None,
    concurrency: int = 3,
    text_overlay_batch_size: int = 5,
    classifier: ErrorClassifier | None = None,
    credentials: CredentialState | None = None,
    sleep: Sleep = asyncio.sleep,
  ) -> None:
    self.store = SceneJobStore()
    self.credentials = credentials or CredentialState()
    self.text_model = text_model
    self.speech_model = speech_model
    self.error: str | None = None
    self.is_analyzing = False
    self.is_generating_all_text = False
    self._text_overlay_batch_size = text_overlay_batch_size

    self.driver = SceneJobDriver(self.store, image_model, policy=policy, classifier=classifier, on_auth_denied=self.credentials.invalidate, sleep=sleep)
    self.orchestrator = BatchOrchestrator(self.store, self.driver, BatchScheduler(self.driver, concurrency=concurrency))
    self.credentials.subscribe(self._on_credentials_changed)

  @classmethod
  def from_settings(cls, settings: Settings, *, image_model: ImageModel, text_model: TextModel, speech_model: SpeechModel | None = None) -> StoryboardSession:
    return cls(
      image_model=image_model,
      text_model=text_model,
      speech_model=speech_model,
      policy=RetryPolicy.from_settings(settings),
      concurrency=settings.concurrency_limit,
      text_overlay_batch_size=settings.text_overlay_batch_size,
    )

  def _on_credentials_changed(self, status: CredentialStatus) -> None:
    if not status.valid:
      self.error = AUTH_DENIED_SESSION_ERROR
    elif self.error == AUTH_DENIED_SESSION_ERROR:
      self.error = None

  async def analyze(self, script: str) -> list[SceneJob]:
    """Decompose a script into a fresh scene set."""
    self.error = None
    self.is_analyzing = True
    self.store.replace_all([])
    try:
      drafts = await self.text_model.analyze_script(script)
    except Exception as exc:
      self.error = str(exc) or "Something went wrong."
      if isinstance(exc, RemoteCallError):
        raise
      raise RemoteCallError(self.error) from exc
    finally:
      self.is_analyzing = False

    self.store.replace_all(SceneJob.from_draft(index, draft) for index, draft in enumerate(drafts))
    logger.info("Scene set replaced with %d scenes.", len(drafts))
    return self.store.list()

  def update_prompt(self, job_id: int, prompt: str) -> SceneJob:
    return self.store.update(job_id, prompt=prompt)

  async def refine_prompt(self, job_id: int) -> SceneJob:
    """Ask the text model for a reworded prompt; keeps the old prompt when it fails."""
    job = self.store.update(job_id, is_refining=True)
    try:
      refined = await self.text_model.refine_prompt(job.prompt)
    except Exception:  # noqa: BLE001
      logger.error("Prompt refinement failed for scene %s.", job_id, exc_info=True)
      return self.store.update(job_id, is_refining=False)
    return self.store.update(job_id, prompt=refined, is_refining=False)

  async def generate_text_overlay(self, job_id: int) -> SceneJob:
    job = self.store.update(job_id, is_loading_text_overlay=True)
    try:
      overlay = await self.text_model.generate_text_overlay(job.narration)
    except Exception:  # noqa: BLE001
      logger.error("Text overlay generation failed for scene %s.", job_id, exc_info=True)
      return self.store.update(job_id, is_loading_text_overlay=False)
    return self.store.update(job_id, text_overlay=overlay, is_loading_text_overlay=False)

  async def generate_all_text_overlays(self) -> list[SceneJob]:
    """Fill in overlays for scenes that have none, a fixed-size group at a time."""
    pending = [job.id for job in self.store.list() if job.text_overlay is None]
    self.is_generating_all_text = True
    try:
      for start in range(0, len(pending), self._text_overlay_batch_size):
        group = pending[start : start + self._text_overlay_batch_size]
        await asyncio.gather(*(self.generate_text_overlay(job_id) for job_id in group))
    finally:
      self.is_generating_all_text = False
    return self.store.list()

  def select_credentials(self) -> CredentialStatus:
    """Record that the user picked a new credential."""
    self.credentials.restore()
    return self.credentials.status
