from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from storyboard.config import get_settings
from storyboard.jobs.models import SceneDraft
from storyboard.jobs.orchestrator import StoryboardSession
from storyboard.main import create_app
from tests.fakes import FakeImageModel, FakeSpeechModel, FakeTextModel, RecordingSleep

DRAFTS = [SceneDraft(narration=f"line {index}", visual_description=f"view {index}", image_prompt=f"prompt-{index}") for index in range(5)]


@pytest.fixture
def image_model() -> FakeImageModel:
  return FakeImageModel()


@pytest.fixture
def text_model() -> FakeTextModel:
  return FakeTextModel(DRAFTS)


@pytest.fixture
def speech_model() -> FakeSpeechModel:
  return FakeSpeechModel()


@pytest.fixture
def session(image_model: FakeImageModel, text_model: FakeTextModel, speech_model: FakeSpeechModel, fake_sleep: RecordingSleep) -> StoryboardSession:
  return StoryboardSession(image_model=image_model, text_model=text_model, speech_model=speech_model, sleep=fake_sleep)


@pytest.fixture
async def async_client(session: StoryboardSession):
  app = create_app(settings=get_settings(), session=session)
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
