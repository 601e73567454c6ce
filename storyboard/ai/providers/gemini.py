"""Gemini implementations of the image and text collaborators using the google-genai SDK."""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any

from google import genai

from storyboard.ai import prompts
from storyboard.ai.backoff import call_with_retry
from storyboard.ai.providers.base import ImageModel, RewriteMode, TextModel, parse_scene_drafts, parse_text_overlay
from storyboard.config import Settings
from storyboard.core.exceptions import RemoteCallError
from storyboard.jobs.models import SceneDraft, TextOverlay

logger = logging.getLogger(__name__)

FALLBACK_TEXT_OVERLAY = TextOverlay(heading="ERROR", points=("Try again",))

_JSON_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def build_client(api_key: str | None) -> genai.Client:
  """Create the shared google-genai client."""
  if not api_key:
    raise ValueError("GEMINI_API_KEY environment variable is required")
  return genai.Client(api_key=api_key)


def parse_json_response(raw: str | None) -> Any:
  """Parse a JSON response, tolerating code fences and surrounding prose."""
  if not raw:
    raise RemoteCallError("No response from Gemini")
  cleaned = _JSON_FENCE_RE.sub("", raw.strip())
  try:
    return json.loads(cleaned)
  except json.JSONDecodeError:
    # Fall back to the outermost object in the text.
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
      raise
    return json.loads(cleaned[start : end + 1])


class GeminiImageModel(ImageModel):
  """Scene image generation through a Gemini image model."""

  def __init__(self, client: genai.Client, name: str, aspect_ratio: str = "16:9") -> None:
    self._client = client
    self.name = name
    self._aspect_ratio = aspect_ratio

  async def generate_image(self, prompt: str) -> str:
    """Generate one image and return it as a data URI."""
    response = await self._client.aio.models.generate_content(
      model=self.name,
      contents=prompts.build_image_prompt(prompt),
      config={"image_config": {"aspect_ratio": self._aspect_ratio}},
    )

    candidates = response.candidates or []
    parts = candidates[0].content.parts if candidates and candidates[0].content else None
    if not parts:
      raise RemoteCallError("No image generated")

    for part in parts:
      inline = part.inline_data
      if inline is not None and inline.data:
        encoded = base64.b64encode(inline.data).decode("ascii")
        return f"data:{inline.mime_type or 'image/png'};base64,{encoded}"

    raise RemoteCallError("No image data found")


class GeminiTextModel(TextModel):
  """Script decomposition, overlay and rewrite calls through a Gemini text model."""

  def __init__(self, client: genai.Client, name: str) -> None:
    self._client = client
    self.name = name

  async def _generate(self, contents: str, config: dict[str, Any] | None = None) -> str | None:
    response = await self._client.aio.models.generate_content(model=self.name, contents=contents, config=config)
    return response.text

  async def analyze_script(self, script: str) -> list[SceneDraft]:
    config = {"system_instruction": prompts.ANALYZE_SYSTEM_INSTRUCTION, "response_mime_type": "application/json", "response_schema": prompts.ANALYZE_RESPONSE_SCHEMA}
    try:
      text = await call_with_retry(self._generate, prompts.build_analyze_prompt(script), config)
      drafts = parse_scene_drafts(parse_json_response(text))
    except Exception:
      logger.error("Error analyzing script.", exc_info=True)
      raise
    logger.info("Script analysis produced %d scenes.", len(drafts))
    return drafts

  async def generate_text_overlay(self, narration: str) -> TextOverlay:
    config = {"response_mime_type": "application/json", "response_schema": prompts.TEXT_OVERLAY_RESPONSE_SCHEMA}
    try:
      text = await call_with_retry(self._generate, prompts.build_text_overlay_prompt(narration), config)
      return parse_text_overlay(parse_json_response(text))
    except Exception:  # noqa: BLE001
      logger.error("Failed to generate text overlay.", exc_info=True)
      return FALLBACK_TEXT_OVERLAY

  async def refine_prompt(self, prompt: str) -> str:
    try:
      text = await self._generate(prompts.build_refine_prompt(prompt), {"response_mime_type": "text/plain"})
    except Exception:  # noqa: BLE001
      logger.error("Failed to refine prompt.", exc_info=True)
      return prompt
    return (text or "").strip() or prompt

  async def rewrite_text(self, text: str, mode: RewriteMode) -> str:
    if mode not in prompts.REWRITE_INSTRUCTIONS:
      raise ValueError(f"Unsupported rewrite mode '{mode}'.")
    try:
      rewritten = await self._generate(prompts.build_rewrite_prompt(text, mode))
    except Exception:
      logger.error("Failed to rewrite text.", exc_info=True)
      raise
    return (rewritten or "").strip() or text

  async def generate_script_from_topic(self, topic: str, duration: str) -> str:
    try:
      script = await call_with_retry(self._generate, prompts.build_script_prompt(topic, duration))
    except Exception:
      logger.error("Failed to generate script from topic.", exc_info=True)
      raise
    return (script or "").strip()


def build_gemini_models(settings: Settings) -> tuple[GeminiImageModel, GeminiTextModel]:
  """Build image and text models that share one client."""
  client = build_client(settings.gemini_api_key)
  return GeminiImageModel(client, settings.image_model), GeminiTextModel(client, settings.text_model)
