from __future__ import annotations

import pytest

from storyboard.ai.errors import FailureKind
from storyboard.core.exceptions import RemoteCallError
from storyboard.jobs.driver import SceneJobDriver
from storyboard.jobs.scheduler import BatchScheduler
from storyboard.jobs.store import SceneJobStore
from tests.fakes import FakeImageModel, RecordingSleep, make_jobs


class CrashingDriver(SceneJobDriver):
  """Driver with a local bug for one job id."""

  def __init__(self, *args, crash_on: int, **kwargs) -> None:
    super().__init__(*args, **kwargs)
    self._crash_on = crash_on

  async def run(self, job_id: int):
    if job_id == self._crash_on:
      self.store.claim(job_id)
      raise KeyError("bug")
    return await super().run(job_id)


@pytest.mark.anyio
async def test_never_more_than_limit_running(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore(make_jobs(7))
  peak = 0

  def track(_job) -> None:
    nonlocal peak
    peak = max(peak, store.running_count())

  store.subscribe(track)
  model = FakeImageModel(latency_ticks=3)
  scheduler = BatchScheduler(SceneJobDriver(store, model, sleep=fake_sleep), concurrency=3)

  outcomes = await scheduler.run_batch(range(7))

  assert peak == 3
  assert len(outcomes) == 7
  assert all(job.result is not None for job in store.list())


@pytest.mark.anyio
async def test_start_order_follows_queue_order(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore(make_jobs(5))
  model = FakeImageModel()
  scheduler = BatchScheduler(SceneJobDriver(store, model, sleep=fake_sleep), concurrency=3)

  await scheduler.run_batch([0, 1, 2, 3, 4])

  assert model.calls == ["prompt-0", "prompt-1", "prompt-2", "prompt-3", "prompt-4"]


@pytest.mark.anyio
async def test_fourth_job_waits_for_a_free_worker(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore(make_jobs(5))
  model = FakeImageModel({"prompt-0": [RemoteCallError("503 overloaded")]})
  scheduler = BatchScheduler(SceneJobDriver(store, model, sleep=fake_sleep), concurrency=3)

  outcomes = await scheduler.run_batch(range(5))

  # Job 0 holds its worker through the backoff while the other two workers drain the queue.
  assert [outcome.job_id for outcome in outcomes][-1] == 0
  assert model.calls[:5] == ["prompt-0", "prompt-1", "prompt-2", "prompt-3", "prompt-4"]
  assert model.calls[5] == "prompt-0"


@pytest.mark.anyio
async def test_failed_job_does_not_stop_the_batch(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore(make_jobs(4))
  model = FakeImageModel({"prompt-1": [RemoteCallError("403 PERMISSION_DENIED", status_code=403)]})
  scheduler = BatchScheduler(SceneJobDriver(store, model, sleep=fake_sleep), concurrency=2)

  outcomes = await scheduler.run_batch(range(4))

  by_id = {outcome.job_id: outcome for outcome in outcomes}
  assert by_id[1].failure is FailureKind.AUTH_DENIED
  assert all(by_id[job_id].succeeded for job_id in (0, 2, 3))
  assert store.running_count() == 0


@pytest.mark.anyio
async def test_local_driver_bug_marks_job_failed_and_batch_continues(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore(make_jobs(3))
  driver = CrashingDriver(store, FakeImageModel(), sleep=fake_sleep, crash_on=1)

  outcomes = await BatchScheduler(driver, concurrency=1).run_batch(range(3))

  assert [outcome.job_id for outcome in outcomes] == [0, 1, 2]
  assert store.get(1).last_error is FailureKind.UNKNOWN
  assert store.get(1).is_running is False
  assert not store.is_owned(1)
  assert store.get(2).result is not None


@pytest.mark.anyio
async def test_fewer_jobs_than_limit(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore(make_jobs(2))
  scheduler = BatchScheduler(SceneJobDriver(store, FakeImageModel(), sleep=fake_sleep), concurrency=3)

  outcomes = await scheduler.run_batch([1, 0])

  assert sorted(outcome.job_id for outcome in outcomes) == [0, 1]


@pytest.mark.anyio
async def test_empty_batch_returns_immediately(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore()
  scheduler = BatchScheduler(SceneJobDriver(store, FakeImageModel(), sleep=fake_sleep))

  assert await scheduler.run_batch([]) == []


def test_concurrency_must_be_positive() -> None:
  with pytest.raises(ValueError):
    BatchScheduler(SceneJobDriver(SceneJobStore(), FakeImageModel()), concurrency=0)


class ReplacingCrashDriver(SceneJobDriver):
  """Replaces the scene set, then hits a local bug."""

  async def run(self, job_id: int):
    self.store.claim(job_id)
    self.store.replace_all(make_jobs(2))
    raise KeyError("bug")


@pytest.mark.anyio
async def test_crash_after_scene_set_replaced_leaves_new_jobs_alone(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore(make_jobs(2))
  driver = ReplacingCrashDriver(store, FakeImageModel(), sleep=fake_sleep)

  outcomes = await BatchScheduler(driver, concurrency=1).run_batch([1, 0])

  assert outcomes == []
  assert store.get(1).last_error is None
  assert store.get(1).is_running is False


class ReplacingImageModel(FakeImageModel):
  def __init__(self, store: SceneJobStore) -> None:
    super().__init__()
    self._store = store

  async def generate_image(self, prompt: str) -> str:
    if prompt == "prompt-0":
      self._store.replace_all(make_jobs(3))
    return await super().generate_image(prompt)


@pytest.mark.anyio
async def test_batch_stops_taking_ids_once_scene_set_is_replaced(fake_sleep: RecordingSleep) -> None:
  store = SceneJobStore(make_jobs(3))
  model = ReplacingImageModel(store)
  finished: list[int] = []

  outcomes = await BatchScheduler(SceneJobDriver(store, model, sleep=fake_sleep), concurrency=1).run_batch(range(3), on_finished=finished.append)

  assert model.calls == ["prompt-0"]
  assert outcomes == []
  assert finished == [0, 1, 2]
  assert all(job.state == "pending" for job in store.list())
