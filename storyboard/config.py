"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from storyboard.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the storyboard service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_max_bytes: int
  log_backup_count: int
  concurrency_limit: int
  max_attempts: int
  rate_limit_default_seconds: int
  rate_limit_margin_seconds: int
  overload_backoff_seconds: int
  text_overlay_batch_size: int
  text_model: str
  image_model: str
  gemini_api_key: str | None
  elevenlabs_api_key: str | None


@dataclass(frozen=True)
class RetryPolicy:
  """Attempt cap and backoff constants consumed by the job driver."""

  max_attempts: int = 5
  rate_limit_default_seconds: int = 30
  rate_limit_margin_seconds: int = 1
  overload_backoff_seconds: int = 5

  @classmethod
  def from_settings(cls, settings: Settings) -> RetryPolicy:
    return cls(
      max_attempts=settings.max_attempts,
      rate_limit_default_seconds=settings.rate_limit_default_seconds,
      rate_limit_margin_seconds=settings.rate_limit_margin_seconds,
      overload_backoff_seconds=settings.overload_backoff_seconds,
    )


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  origins = [origin.strip() for origin in (raw or DEFAULT_ALLOWED_ORIGINS).split(",") if origin.strip()]

  if not origins:
    raise ValueError("STORYBOARD_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("STORYBOARD_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  cleaned = raw.strip()
  return cleaned or None


def _parse_int(name: str, default: str, *, minimum: int) -> int:
  """Read an integer env var and enforce a lower bound."""

  raw = os.getenv(name, default)
  try:
    value = int(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc
  if value < minimum:
    raise ValueError(f"{name} must be at least {minimum}.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("STORYBOARD_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("STORYBOARD_DEBUG"))

  log_max_bytes = _parse_int("STORYBOARD_LOG_MAX_BYTES", "5242880", minimum=1)  # 5MB default
  log_backup_count = _parse_int("STORYBOARD_LOG_BACKUP_COUNT", "10", minimum=0)

  # Scheduler and retry driver knobs.
  concurrency_limit = _parse_int("STORYBOARD_CONCURRENCY_LIMIT", "3", minimum=1)
  max_attempts = _parse_int("STORYBOARD_MAX_ATTEMPTS", "5", minimum=1)
  rate_limit_default_seconds = _parse_int("STORYBOARD_RATE_LIMIT_DEFAULT_SECONDS", "30", minimum=0)
  rate_limit_margin_seconds = _parse_int("STORYBOARD_RATE_LIMIT_MARGIN_SECONDS", "1", minimum=0)
  overload_backoff_seconds = _parse_int("STORYBOARD_OVERLOAD_BACKOFF_SECONDS", "5", minimum=0)
  text_overlay_batch_size = _parse_int("STORYBOARD_TEXT_OVERLAY_BATCH_SIZE", "5", minimum=1)

  text_model = (os.getenv("STORYBOARD_TEXT_MODEL") or "gemini-3-flash-preview").strip()
  image_model = (os.getenv("STORYBOARD_IMAGE_MODEL") or "gemini-3-pro-image-preview").strip()

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("STORYBOARD_ALLOWED_ORIGINS")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    concurrency_limit=concurrency_limit,
    max_attempts=max_attempts,
    rate_limit_default_seconds=rate_limit_default_seconds,
    rate_limit_margin_seconds=rate_limit_margin_seconds,
    overload_backoff_seconds=overload_backoff_seconds,
    text_overlay_batch_size=text_overlay_batch_size,
    text_model=text_model,
    image_model=image_model,
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    elevenlabs_api_key=_optional_str(os.getenv("ELEVENLABS_API_KEY")),
  )
