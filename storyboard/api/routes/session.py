import logging

from fastapi import APIRouter, Depends, Response

from storyboard.ai.providers.base import SpeechModel, VoiceSettings
from storyboard.api.deps import get_session, get_speech_model
from storyboard.api.models import RewriteTextRequest, ScriptFromTopicRequest, ScriptResponse, SessionResponse, SpeechRequest, VoiceResponse
from storyboard.jobs.orchestrator import StoryboardSession

router = APIRouter()
logger = logging.getLogger("storyboard.api.routes.session")


def _session_response(session: StoryboardSession) -> SessionResponse:
  status = session.credentials.status
  return SessionResponse(
    credentials_valid=status.valid,
    credentials_reason=status.reason,
    error=session.error,
    is_analyzing=session.is_analyzing,
    is_generating_all=session.orchestrator.is_generating_all,
    is_generating_all_text=session.is_generating_all_text,
    scene_count=len(session.store),
  )


@router.get("/session", response_model=SessionResponse)
async def get_session_state(session: StoryboardSession = Depends(get_session)) -> SessionResponse:  # noqa: B008
  """Return credential validity, the session error and bulk-work flags."""
  return _session_response(session)


@router.post("/session/credentials", response_model=SessionResponse)
async def select_credentials(session: StoryboardSession = Depends(get_session)) -> SessionResponse:  # noqa: B008
  """Mark a newly selected credential as valid after an auth failure."""
  session.select_credentials()
  return _session_response(session)


@router.post("/scripts/from-topic", response_model=ScriptResponse)
async def script_from_topic(payload: ScriptFromTopicRequest, session: StoryboardSession = Depends(get_session)) -> ScriptResponse:  # noqa: B008
  return ScriptResponse(text=await session.text_model.generate_script_from_topic(payload.topic, payload.duration))


@router.post("/scripts/rewrite", response_model=ScriptResponse)
async def rewrite_text(payload: RewriteTextRequest, session: StoryboardSession = Depends(get_session)) -> ScriptResponse:  # noqa: B008
  return ScriptResponse(text=await session.text_model.rewrite_text(payload.text, payload.mode))


@router.get("/speech/voices", response_model=list[VoiceResponse])
async def list_voices(speech_model: SpeechModel = Depends(get_speech_model)) -> list[VoiceResponse]:  # noqa: B008
  voices = await speech_model.list_voices()
  return [VoiceResponse(voice_id=voice.voice_id, name=voice.name, category=voice.category, preview_url=voice.preview_url) for voice in voices]


@router.post("/speech")
async def generate_speech(payload: SpeechRequest, speech_model: SpeechModel = Depends(get_speech_model)) -> Response:  # noqa: B008
  """Synthesize narration audio."""
  settings = VoiceSettings(stability=payload.stability, similarity_boost=payload.similarity_boost, speed=payload.speed)
  audio = await speech_model.generate_speech(payload.text, payload.voice_id, settings)
  return Response(content=audio, media_type="audio/mpeg")
