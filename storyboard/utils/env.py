"""Minimal .env support so local runs pick up API keys without exporting them."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

_QUOTES = {'"', "'"}


def default_env_path() -> Path:
  """Repo-root ``.env`` (two levels above this package)."""
  return Path(__file__).resolve().parents[2] / ".env"


def parse_env_lines(lines: list[str]) -> Iterator[tuple[str, str]]:
  """Yield ``(key, value)`` pairs, skipping comments, blanks and malformed lines."""
  for raw in lines:
    line = raw.strip()
    if not line or line.startswith("#"):
      continue
    line = line.removeprefix("export ").lstrip()
    key, sep, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if not sep or not key:
      continue
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
      value = value[1:-1]
    yield key, value


def load_env_file(path: Path, *, override: bool = False) -> dict[str, str]:
  """Copy pairs from ``path`` into ``os.environ`` and return the ones applied."""
  if not path.is_file():
    return {}
  applied: dict[str, str] = {}
  for key, value in parse_env_lines(path.read_text(encoding="utf-8").splitlines()):
    if key in os.environ and not override:
      continue
    os.environ[key] = value
    applied[key] = value
  return applied
