"""Bounded worker pool that runs job drivers across a batch."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from storyboard.ai.errors import FailureKind
from storyboard.jobs.driver import DriverOutcome, SceneJobDriver

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY_LIMIT = 3


class BatchScheduler:
  """
  Runs up to ``concurrency`` drivers at once over a FIFO queue of job ids.

  Each worker owns one job for its whole retry lifecycle before pulling the
  next id, so start order follows queue order while completion order does
  not. A failed job never stops the batch.
  """

  def __init__(self, driver: SceneJobDriver, *, concurrency: int = DEFAULT_CONCURRENCY_LIMIT) -> None:
    if concurrency < 1:
      raise ValueError("Concurrency limit must be at least 1.")
    self._driver = driver
    self._concurrency = concurrency

  @property
  def concurrency(self) -> int:
    return self._concurrency

  async def run_batch(self, job_ids: Iterable[int], *, on_finished: Callable[[int], None] | None = None) -> list[DriverOutcome]:
    """
    Run every job to a terminal state and return outcomes in completion order.

    ``on_finished`` is called with each job id once its worker is done with it.
    """
    queue: asyncio.Queue[int] = asyncio.Queue()
    for job_id in job_ids:
      queue.put_nowait(job_id)

    total = queue.qsize()
    worker_count = min(self._concurrency, total)
    if worker_count == 0:
      return []

    logger.info("Starting batch of %d scene jobs with %d workers.", total, worker_count)
    epoch = self._driver.store.epoch
    outcomes: list[DriverOutcome] = []
    await asyncio.gather(*(self._worker(index, epoch, queue, outcomes, on_finished) for index in range(worker_count)))

    failed = sum(1 for outcome in outcomes if not outcome.succeeded)
    logger.info("Batch finished: %d succeeded, %d failed.", len(outcomes) - failed, failed)
    return outcomes

  async def _worker(self, index: int, epoch: int, queue: asyncio.Queue[int], outcomes: list[DriverOutcome], on_finished: Callable[[int], None] | None) -> None:
    while True:
      try:
        job_id = queue.get_nowait()
      except asyncio.QueueEmpty:
        return

      logger.debug("Worker %d picked scene job %s.", index, job_id)
      try:
        # Ids queued before the scene set was replaced belong to the old set.
        outcome = await self._driver.run(job_id) if epoch == self._driver.store.epoch else None
      except Exception:  # noqa: BLE001
        # Drivers absorb remote failures; only local bugs reach here.
        logger.error("Worker %d crashed on scene job %s.", index, job_id, exc_info=True)
        outcome = self._mark_crashed(job_id, epoch)
      finally:
        queue.task_done()
        if on_finished is not None:
          on_finished(job_id)

      if outcome is not None:
        outcomes.append(outcome)

  def _mark_crashed(self, job_id: int, epoch: int) -> DriverOutcome | None:
    store = self._driver.store
    # A replaced scene set may reuse the id; leave the new record alone.
    if epoch != store.epoch or job_id not in store:
      return None
    store.release(job_id, epoch)
    store.update(job_id, last_error=FailureKind.UNKNOWN, status_message=None, is_running=False)
    return DriverOutcome(job_id=job_id, failure=FailureKind.UNKNOWN, attempts=0)
