from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from storyboard.ai.errors import FailureKind
from storyboard.jobs.models import JobState, SceneJob


class TextOverlayModel(BaseModel):
  heading: str
  points: list[str]


class SceneResponse(BaseModel):
  """Observable state of one scene job."""

  id: int
  prompt: str
  narration: str
  visual_description: str
  state: JobState
  result: str | None = None
  is_running: bool
  last_error: FailureKind | None = None
  error_label: str | None = Field(default=None, description="Short failure tag shown next to a failed scene.")
  status_message: str | None = None
  text_overlay: TextOverlayModel | None = None
  is_loading_text_overlay: bool = False
  is_refining: bool = False

  @classmethod
  def from_job(cls, job: SceneJob) -> SceneResponse:
    overlay = TextOverlayModel(heading=job.text_overlay.heading, points=list(job.text_overlay.points)) if job.text_overlay else None
    return cls(
      id=job.id,
      prompt=job.prompt,
      narration=job.narration,
      visual_description=job.visual_description,
      state=job.state,
      result=job.result,
      is_running=job.is_running,
      last_error=job.last_error,
      error_label=job.last_error.label if job.last_error else None,
      status_message=job.status_message,
      text_overlay=overlay,
      is_loading_text_overlay=job.is_loading_text_overlay,
      is_refining=job.is_refining,
    )


class SceneListResponse(BaseModel):
  scenes: list[SceneResponse]


class AnalyzeScriptRequest(BaseModel):
  script: StrictStr = Field(min_length=1, description="Full voiceover script to break into scenes.")
  model_config = ConfigDict(extra="forbid")


class UpdatePromptRequest(BaseModel):
  prompt: StrictStr = Field(min_length=1)
  model_config = ConfigDict(extra="forbid")


class BatchAcceptedResponse(BaseModel):
  """Returned when bulk or single-scene work has been scheduled."""

  job_ids: list[int]


class SessionResponse(BaseModel):
  credentials_valid: bool
  credentials_reason: str | None = None
  error: str | None = None
  is_analyzing: bool
  is_generating_all: bool
  is_generating_all_text: bool
  scene_count: int


class ScriptFromTopicRequest(BaseModel):
  topic: StrictStr = Field(min_length=1)
  duration: Literal["1 min", "8-12 min", "15 min"] = "1 min"
  model_config = ConfigDict(extra="forbid")


class RewriteTextRequest(BaseModel):
  text: StrictStr = Field(min_length=1)
  mode: Literal["funny", "concise", "detailed", "professional"]
  model_config = ConfigDict(extra="forbid")


class ScriptResponse(BaseModel):
  text: str


class SpeechRequest(BaseModel):
  text: StrictStr = Field(min_length=1)
  voice_id: StrictStr = Field(min_length=1)
  stability: float = Field(default=0.5, ge=0.0, le=1.0)
  similarity_boost: float = Field(default=0.75, ge=0.0, le=1.0)
  speed: float = Field(default=1.0, ge=0.7, le=1.2)
  model_config = ConfigDict(extra="forbid")


class VoiceResponse(BaseModel):
  voice_id: str
  name: str
  category: str
  preview_url: str | None = None
