from __future__ import annotations

import logging

import httpx

from storyboard.ai.providers.base import SpeechModel, Voice, VoiceSettings
from storyboard.core.exceptions import RemoteCallError

logger = logging.getLogger(__name__)

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
ELEVENLABS_MODEL_ID = "eleven_multilingual_v2"


class ElevenLabsSpeechModel(SpeechModel):
  """Narration-to-speech through the ElevenLabs HTTP API."""

  def __init__(self, api_key: str, *, base_url: str = ELEVENLABS_BASE_URL, transport: httpx.AsyncBaseTransport | None = None, timeout: float = 120.0) -> None:
    if not api_key:
      raise ValueError("ELEVENLABS_API_KEY environment variable is required")
    self._api_key = api_key
    self._base_url = base_url.rstrip("/")
    self._transport = transport
    self._timeout = timeout

  def _build_client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=self._base_url, headers={"xi-api-key": self._api_key}, transport=self._transport, timeout=self._timeout, trust_env=False)

  async def list_voices(self) -> list[Voice]:
    async with self._build_client() as client:
      response = await client.get("/voices")
    if response.status_code >= 400:
      raise RemoteCallError(f"Failed to fetch voices: {response.status_code}", status_code=response.status_code)
    voices = response.json().get("voices") or []
    return [
      Voice(voice_id=str(item["voice_id"]), name=str(item.get("name") or ""), category=str(item.get("category") or ""), labels=dict(item.get("labels") or {}), preview_url=item.get("preview_url"))
      for item in voices
    ]

  async def generate_speech(self, text: str, voice_id: str, settings: VoiceSettings | None = None) -> bytes:
    """Synthesize ``text`` with the given voice and return the audio bytes."""
    settings = settings or VoiceSettings()
    payload = {"text": text, "model_id": ELEVENLABS_MODEL_ID, "voice_settings": {"stability": settings.stability, "similarity_boost": settings.similarity_boost, "speed": settings.speed}}
    async with self._build_client() as client:
      response = await client.post(f"/text-to-speech/{voice_id}", json=payload)
    if response.status_code >= 400:
      logger.error("ElevenLabs speech request failed status=%s body=%s", response.status_code, response.text)
      raise RemoteCallError(f"ElevenLabs API error ({response.status_code}): {response.text}", status_code=response.status_code)
    return response.content
