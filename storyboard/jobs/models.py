"""Domain models for per-scene image generation jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from storyboard.ai.errors import FailureKind

JobState = Literal["pending", "running", "done", "failed"]


@dataclass(frozen=True)
class TextOverlay:
  """Heading and short bullet lines rendered over a scene."""

  heading: str
  points: tuple[str, ...] = ()


@dataclass(frozen=True)
class SceneDraft:
  """One scene as returned by script decomposition."""

  narration: str
  visual_description: str
  image_prompt: str


@dataclass(frozen=True)
class SceneJob:
  """Immutable snapshot of one scene's generation state."""

  id: int
  prompt: str
  narration: str = ""
  visual_description: str = ""
  result: str | None = None
  is_running: bool = False
  last_error: FailureKind | None = None
  status_message: str | None = None
  text_overlay: TextOverlay | None = None
  is_loading_text_overlay: bool = False
  is_refining: bool = False

  @property
  def state(self) -> JobState:
    if self.is_running:
      return "running"
    if self.last_error is not None:
      return "failed"
    if self.result is not None:
      return "done"
    return "pending"

  @classmethod
  def from_draft(cls, job_id: int, draft: SceneDraft) -> SceneJob:
    return cls(id=job_id, prompt=draft.image_prompt, narration=draft.narration, visual_description=draft.visual_description)
