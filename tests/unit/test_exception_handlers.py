"""Unit tests for API error mapping and log formatting."""

from __future__ import annotations

import json
import logging
import sys

import pytest
from fastapi import Request

from storyboard.core.exceptions import JobBusyError, RemoteCallError, global_exception_handler, job_busy_handler, remote_call_exception_handler
from storyboard.core.logging import TruncatedFormatter, _backup_namer


def _request() -> Request:
  return Request({"type": "http", "method": "POST", "path": "/v1/scenes/1/generate", "headers": [(b"x-request-id", b"req-1")], "query_string": b""})


@pytest.mark.anyio
async def test_busy_job_maps_to_conflict() -> None:
  response = await job_busy_handler(_request(), JobBusyError(1))

  assert response.status_code == 409
  assert json.loads(response.body) == {"detail": "Scene job 1 is already running."}


@pytest.mark.anyio
async def test_remote_failure_maps_to_bad_gateway() -> None:
  response = await remote_call_exception_handler(_request(), RemoteCallError("No image generated"))

  assert response.status_code == 502
  assert json.loads(response.body)["detail"] == "No image generated"


@pytest.mark.anyio
async def test_unhandled_error_hides_details_and_echoes_request_id() -> None:
  response = await global_exception_handler(_request(), KeyError("secret"))

  assert response.status_code == 500
  assert json.loads(response.body) == {"detail": "Internal Server Error", "requestId": "req-1"}


def test_truncated_formatter_keeps_header_and_tail() -> None:
  def deep(level: int) -> None:
    if level == 0:
      raise ValueError("bottom")
    deep(level - 1)

  try:
    deep(10)
  except ValueError:
    record = logging.LogRecord("test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

  formatted = TruncatedFormatter().format(record)

  assert "    ...\n" in formatted
  assert formatted.rstrip().endswith("ValueError: bottom")


def test_backup_namer() -> None:
  assert _backup_namer("logs/storyboard.log.3") == "logs/storyboard.log-3"
  assert _backup_namer("logs/storyboard.log") == "logs/storyboard.log"
