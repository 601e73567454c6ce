"""In-memory, observable store of scene job records."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import fields, replace

from storyboard.core.exceptions import JobNotFoundError
from storyboard.jobs.models import SceneJob

logger = logging.getLogger(__name__)

JobListener = Callable[[SceneJob], None]

_MUTABLE_FIELDS = frozenset(f.name for f in fields(SceneJob)) - {"id"}


class SceneJobStore:
  """
  Holds one record per scene and notifies listeners on every change.

  All mutation happens on the event loop thread, so each update is applied
  atomically with respect to other tasks. Ownership (claim/release) keeps at
  most one driver per job id.
  """

  def __init__(self, jobs: Iterable[SceneJob] = ()) -> None:
    self._jobs: dict[int, SceneJob] = {}
    self._owned: set[int] = set()
    self._listeners: list[JobListener] = []
    self._epoch = 0
    self.replace_all(jobs)

  def replace_all(self, jobs: Iterable[SceneJob]) -> None:
    """Swap in a new scene set, dropping ownership of the old one."""
    jobs = list(jobs)
    ids = [job.id for job in jobs]
    if len(ids) != len(set(ids)):
      raise ValueError("Scene job ids must be unique.")
    self._jobs = {job.id: replace(job, is_running=False) for job in jobs}
    self._owned = set()
    self._epoch += 1
    for job in self.list():
      self._notify(job)

  @property
  def epoch(self) -> int:
    """Counter bumped whenever the scene set is replaced."""
    return self._epoch

  def get(self, job_id: int) -> SceneJob:
    try:
      return self._jobs[job_id]
    except KeyError:
      raise JobNotFoundError(job_id) from None

  def list(self) -> list[SceneJob]:
    """Return all records ordered by id."""
    return [self._jobs[job_id] for job_id in sorted(self._jobs)]

  def __len__(self) -> int:
    return len(self._jobs)

  def __contains__(self, job_id: object) -> bool:
    return job_id in self._jobs

  def update(self, job_id: int, **changes: object) -> SceneJob:
    """Apply a partial update and return the new snapshot."""
    current = self.get(job_id)
    unknown = set(changes) - _MUTABLE_FIELDS
    if unknown:
      raise TypeError(f"Cannot update scene job fields: {', '.join(sorted(unknown))}")
    updated = replace(current, **changes)
    self._jobs[job_id] = updated
    self._notify(updated)
    return updated

  def claim(self, job_id: int) -> bool:
    """Take ownership of a job for one driver; False when another driver holds it."""
    self.get(job_id)
    if job_id in self._owned:
      return False
    self._owned.add(job_id)
    self.update(job_id, is_running=True)
    return True

  def release(self, job_id: int, epoch: int | None = None) -> None:
    # Ownership from a replaced scene set is already gone.
    if epoch is not None and epoch != self._epoch:
      return
    self._owned.discard(job_id)
    if job_id in self._jobs and self._jobs[job_id].is_running:
      self.update(job_id, is_running=False)

  def is_owned(self, job_id: int) -> bool:
    return job_id in self._owned

  def running_count(self) -> int:
    return sum(1 for job in self._jobs.values() if job.is_running)

  def subscribe(self, listener: JobListener) -> Callable[[], None]:
    """Register a change listener and return a callable that removes it."""
    self._listeners.append(listener)

    def _unsubscribe() -> None:
      if listener in self._listeners:
        self._listeners.remove(listener)

    return _unsubscribe

  def _notify(self, job: SceneJob) -> None:
    for listener in list(self._listeners):
      try:
        listener(job)
      except Exception:  # noqa: BLE001
        logger.error("Scene job listener failed for job %s", job.id, exc_info=True)
