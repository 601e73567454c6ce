"""Test configuration shared by unit and integration tests."""

from __future__ import annotations

import pytest

from tests.fakes import RecordingSleep


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def fake_sleep() -> RecordingSleep:
  return RecordingSleep()
