from __future__ import annotations

import pytest

from storyboard.ai.errors import FailureKind
from storyboard.core.exceptions import RemoteCallError
from storyboard.jobs.models import SceneDraft, TextOverlay
from storyboard.jobs.orchestrator import AUTH_DENIED_SESSION_ERROR, StoryboardSession
from tests.fakes import FakeImageModel, FakeTextModel, RecordingSleep

DRAFTS = [SceneDraft(narration=f"line {index}", visual_description=f"view {index}", image_prompt=f"prompt-{index}") for index in range(7)]


def _session(image_model: FakeImageModel | None = None, text_model: FakeTextModel | None = None, **kwargs) -> StoryboardSession:
  return StoryboardSession(image_model=image_model or FakeImageModel(), text_model=text_model or FakeTextModel(DRAFTS), sleep=RecordingSleep(), **kwargs)


@pytest.mark.anyio
async def test_analyze_replaces_scene_set() -> None:
  session = _session()

  jobs = await session.analyze("A story about lighthouses.")

  assert [job.id for job in jobs] == list(range(7))
  assert jobs[2].prompt == "prompt-2"
  assert jobs[2].narration == "line 2"
  assert jobs[2].visual_description == "view 2"
  assert all(job.state == "pending" for job in jobs)
  assert session.is_analyzing is False


@pytest.mark.anyio
async def test_analyze_failure_sets_session_error_and_leaves_store_empty() -> None:
  text_model = FakeTextModel(DRAFTS)
  session = _session(text_model=text_model)
  await session.analyze("first")
  text_model.analyze_error = RuntimeError("Model returned malformed JSON")

  with pytest.raises(RemoteCallError):
    await session.analyze("second")

  assert session.error == "Model returned malformed JSON"
  assert len(session.store) == 0
  assert session.is_analyzing is False


@pytest.mark.anyio
async def test_auth_denied_job_sets_session_error_until_reselected() -> None:
  image_model = FakeImageModel({"prompt-1": [RemoteCallError("403 PERMISSION_DENIED", status_code=403)]})
  session = _session(image_model=image_model)
  await session.analyze("script")

  await session.orchestrator.generate_all()

  assert session.store.get(1).last_error is FailureKind.AUTH_DENIED
  assert session.credentials.valid is False
  assert session.error == AUTH_DENIED_SESSION_ERROR

  status = session.select_credentials()

  assert status.valid is True
  assert session.error is None


@pytest.mark.anyio
async def test_refine_prompt_replaces_prompt() -> None:
  session = _session()
  await session.analyze("script")

  job = await session.refine_prompt(0)

  assert job.prompt == "prompt-0 (refined)"
  assert job.is_refining is False


@pytest.mark.anyio
async def test_refine_failure_keeps_prompt() -> None:
  text_model = FakeTextModel(DRAFTS)
  text_model.refine_error = RuntimeError("boom")
  session = _session(text_model=text_model)
  await session.analyze("script")

  job = await session.refine_prompt(0)

  assert job.prompt == "prompt-0"
  assert job.is_refining is False


@pytest.mark.anyio
async def test_update_prompt_is_used_by_next_generation() -> None:
  image_model = FakeImageModel()
  session = _session(image_model=image_model)
  await session.analyze("script")

  session.update_prompt(4, "a brighter sky")
  await session.orchestrator.generate_one(4)

  assert image_model.calls == ["a brighter sky"]


@pytest.mark.anyio
async def test_text_overlays_run_in_groups() -> None:
  text_model = FakeTextModel(DRAFTS)
  session = _session(text_model=text_model)
  await session.analyze("script")
  session.store.update(3, text_overlay=TextOverlay(heading="KEEP"))

  jobs = await session.generate_all_text_overlays()

  assert text_model.max_active_overlays == 5
  assert sorted(text_model.overlay_calls) == sorted(f"line {index}" for index in range(7) if index != 3)
  assert jobs[3].text_overlay == TextOverlay(heading="KEEP")
  assert jobs[0].text_overlay == TextOverlay(heading="LINE 0", points=("A > B",))
  assert session.is_generating_all_text is False


@pytest.mark.anyio
async def test_text_overlay_group_size_is_configurable() -> None:
  text_model = FakeTextModel(DRAFTS)
  session = _session(text_model=text_model, text_overlay_batch_size=2)
  await session.analyze("script")

  await session.generate_all_text_overlays()

  assert text_model.max_active_overlays == 2
  assert all(not job.is_loading_text_overlay for job in session.store.list())
