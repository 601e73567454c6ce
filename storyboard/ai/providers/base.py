"""Base interfaces for the remote generation collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

from storyboard.jobs.models import SceneDraft, TextOverlay

RewriteMode = Literal["funny", "concise", "detailed", "professional"]


class ImageModel(ABC):
  """Produces one image artifact per prompt."""

  name: str

  @abstractmethod
  async def generate_image(self, prompt: str) -> str:
    """Return an artifact reference (data URI) or raise on failure."""


class TextModel(ABC):
  """Text-side collaborators: decomposition, overlays and prompt rewriting."""

  name: str

  @abstractmethod
  async def analyze_script(self, script: str) -> list[SceneDraft]:
    """Break a script into scene drafts."""

  @abstractmethod
  async def generate_text_overlay(self, narration: str) -> TextOverlay:
    """Condense narration into a slide heading and one or two short lines."""

  @abstractmethod
  async def refine_prompt(self, prompt: str) -> str:
    """Rewrite an image prompt; implementations return the input on failure."""

  @abstractmethod
  async def rewrite_text(self, text: str, mode: RewriteMode) -> str:
    """Rewrite a script segment in the requested tone."""

  @abstractmethod
  async def generate_script_from_topic(self, topic: str, duration: str) -> str:
    """Write a voiceover script for a topic."""


@dataclass(frozen=True)
class VoiceSettings:
  """Voice tuning passed to the speech service."""

  stability: float = 0.5
  similarity_boost: float = 0.75
  speed: float = 1.0


@dataclass(frozen=True)
class Voice:
  voice_id: str
  name: str
  category: str = ""
  labels: dict[str, str] | None = None
  preview_url: str | None = None


class SpeechModel(ABC):
  """Text-to-speech collaborator."""

  @abstractmethod
  async def list_voices(self) -> list[Voice]:
    """Return the voices available to the active credential."""

  @abstractmethod
  async def generate_speech(self, text: str, voice_id: str, settings: VoiceSettings | None = None) -> bytes:
    """Return encoded audio for ``text``."""


def parse_scene_drafts(payload: Any) -> list[SceneDraft]:
  """Validate the decomposition payload shape and build scene drafts."""
  if not isinstance(payload, dict) or not isinstance(payload.get("scenes"), list):
    raise ValueError("Script analysis response must contain a 'scenes' list.")
  drafts: list[SceneDraft] = []
  for index, raw_scene in enumerate(payload["scenes"]):
    if not isinstance(raw_scene, dict):
      raise ValueError(f"Scene {index} is not an object.")
    try:
      drafts.append(SceneDraft(narration=str(raw_scene["narration"]), visual_description=str(raw_scene["visualDescription"]), image_prompt=str(raw_scene["imagePrompt"])))
    except KeyError as exc:
      raise ValueError(f"Scene {index} is missing field {exc.args[0]!r}.") from exc
  return drafts


def parse_text_overlay(payload: Any) -> TextOverlay:
  if not isinstance(payload, dict) or "heading" not in payload:
    raise ValueError("Text overlay response must contain a heading.")
  points = payload.get("points") or []
  if not isinstance(points, list):
    raise ValueError("Text overlay points must be a list.")
  return TextOverlay(heading=str(payload["heading"]), points=tuple(str(point) for point in points))
