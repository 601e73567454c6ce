"""Process-wide logging: stdout for operators, a rotating file for later inspection."""

from __future__ import annotations

import logging
import logging.handlers
import sys
import traceback
from datetime import datetime
from pathlib import Path
from types import TracebackType

from storyboard.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
DEFAULT_LOG_DIR = Path(__file__).resolve().parents[2] / "logs"

# Library loggers that flood DEBUG with request/response dumps.
_QUIET_LOGGERS = ("httpx", "httpcore", "google_genai")
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")

_active_log_path: Path | None = None

ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]


class TruncatedFormatter(logging.Formatter):
  """Keeps the exception header and only the innermost frames of a traceback."""

  def __init__(self, fmt: str | None = None, datefmt: str | None = None, *, tail_lines: int = 5) -> None:
    super().__init__(fmt, datefmt)
    self.tail_lines = tail_lines

  def formatException(self, ei: ExcInfo) -> str:  # noqa: N802
    lines = traceback.format_exception(*ei)
    if len(lines) <= self.tail_lines + 1:
      return "".join(lines)
    return "".join([lines[0], "    ...\n", *lines[-self.tail_lines :]])


def _backup_namer(default_name: str) -> str:
  """``storyboard.log.2`` becomes ``storyboard.log-2`` so rotated files keep one suffix."""
  stem, _, index = default_name.rpartition(".")
  return f"{stem}-{index}" if stem and index.isdigit() else default_name


def _stream_handler() -> logging.Handler:
  handler = logging.StreamHandler(sys.stdout)
  handler.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return handler


def _file_handler(settings: Settings, log_dir: Path) -> tuple[logging.Handler, Path]:
  log_path = log_dir / f"storyboard_{datetime.now():%Y%m%d_%H%M%S}.log"
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  except OSError as exc:
    raise RuntimeError(f"Cannot open log file {log_path}: {exc}") from exc
  handler.namer = _backup_namer
  handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return handler, log_path


def setup_logging(settings: Settings, log_dir: Path | None = None) -> Path:
  """Route root, uvicorn and fastapi loggers to stdout and a rotating file; returns the file path."""
  handlers = [_stream_handler()]
  file_handler, log_path = _file_handler(settings, log_dir or DEFAULT_LOG_DIR)
  handlers.append(file_handler)

  logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO, handlers=handlers, force=True)
  for name in _SERVER_LOGGERS:
    server_logger = logging.getLogger(name)
    server_logger.handlers = list(handlers)
    server_logger.propagate = False
  for name in _QUIET_LOGGERS:
    logging.getLogger(name).setLevel(logging.WARNING)
  return log_path


def initialize_logging(settings: Settings, log_dir: Path | None = None) -> Path:
  """Configure logging on first call; later calls return the existing log file."""
  global _active_log_path
  if _active_log_path is None:
    _active_log_path = setup_logging(settings, log_dir)
    logging.getLogger(__name__).info("Logging initialized. Writing to %s", _active_log_path)
  return _active_log_path
