import logging
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse


class RemoteCallError(Exception):
  """Raised when a remote generation service call fails."""

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.status_code = status_code


class JobNotFoundError(LookupError):
  """Raised when a scene job id is not present in the store."""

  def __init__(self, job_id: int) -> None:
    super().__init__(f"Scene job {job_id} not found.")
    self.job_id = job_id


class JobBusyError(RuntimeError):
  """Raised when a driver already owns the requested job."""

  def __init__(self, job_id: int) -> None:
    super().__init__(f"Scene job {job_id} is already running.")
    self.job_id = job_id


def _error_payload(detail: Any, *, request_id: str | None = None) -> dict[str, Any]:
  payload: dict[str, Any] = {"detail": detail}
  if request_id:
    payload["requestId"] = request_id
  return payload


async def job_not_found_handler(request: Request, exc: JobNotFoundError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_payload(str(exc)))


async def job_busy_handler(request: Request, exc: JobBusyError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_payload(str(exc)))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger = logging.getLogger("storyboard.core.exceptions")
  request_id = request.headers.get("x-request-id")
  logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def remote_call_exception_handler(request: Request, exc: RemoteCallError) -> JSONResponse:
  """Surface collaborator failures as a bad gateway response."""
  logger = logging.getLogger("storyboard.core.exceptions")
  logger.warning("Remote call failed on %s %s: %s", request.method, request.url.path, exc.message)
  return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=_error_payload(exc.message))
