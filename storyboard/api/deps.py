"""Shared FastAPI dependencies."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from storyboard.ai.providers.base import SpeechModel
from storyboard.ai.providers.elevenlabs import ElevenLabsSpeechModel
from storyboard.ai.providers.gemini import build_gemini_models
from storyboard.config import get_settings
from storyboard.jobs.orchestrator import StoryboardSession

logger = logging.getLogger(__name__)


def build_default_session() -> StoryboardSession:
  """Build a session wired to the Gemini and ElevenLabs services."""
  settings = get_settings()
  image_model, text_model = build_gemini_models(settings)
  speech_model = ElevenLabsSpeechModel(settings.elevenlabs_api_key) if settings.elevenlabs_api_key else None
  return StoryboardSession.from_settings(settings, image_model=image_model, text_model=text_model, speech_model=speech_model)


def get_session(request: Request) -> StoryboardSession:
  """Return the process-wide storyboard session, building it on first use."""
  session = getattr(request.app.state, "session", None)
  if session is None:
    try:
      session = build_default_session()
    except ValueError as exc:
      logger.error("Storyboard session is not configured: %s", exc)
      raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    request.app.state.session = session
  return session


def get_speech_model(request: Request) -> SpeechModel:
  session = get_session(request)
  if session.speech_model is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="ELEVENLABS_API_KEY environment variable is required")
  return session.speech_model
