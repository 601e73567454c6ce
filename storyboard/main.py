from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storyboard.api.routes import scenes
from storyboard.api.routes import session as session_routes
from storyboard.config import Settings, get_settings
from storyboard.core.exceptions import JobBusyError, JobNotFoundError, RemoteCallError, global_exception_handler, job_busy_handler, job_not_found_handler, remote_call_exception_handler
from storyboard.core.logging import initialize_logging
from storyboard.jobs.orchestrator import StoryboardSession


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging once the server starts."""
  initialize_logging(app.state.settings)
  logging.getLogger("storyboard.main").info("Startup complete - concurrency limit %d.", app.state.settings.concurrency_limit)
  yield


def create_app(settings: Settings | None = None, session: StoryboardSession | None = None) -> FastAPI:
  """Build the FastAPI application; ``session`` overrides the default Gemini-backed one."""
  settings = settings or get_settings()
  app = FastAPI(title="storyboard-engine", lifespan=lifespan)
  app.state.settings = settings
  app.state.session = session

  app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "PATCH", "OPTIONS"], allow_headers=["content-type", "authorization"])

  app.add_exception_handler(Exception, global_exception_handler)
  app.add_exception_handler(JobNotFoundError, job_not_found_handler)
  app.add_exception_handler(JobBusyError, job_busy_handler)
  app.add_exception_handler(RemoteCallError, remote_call_exception_handler)

  @app.get("/health", include_in_schema=False)
  async def health_check() -> dict[str, str]:
    """Return a simple health status."""
    return {"status": "ok", "version": "0.1.0"}

  app.include_router(scenes.router, prefix="/v1", tags=["scenes"])
  app.include_router(session_routes.router, prefix="/v1", tags=["session"])
  return app


app = create_app()
