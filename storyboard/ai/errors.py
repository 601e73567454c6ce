"""Failure classification for remote generation calls."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import httpx
from google.genai import errors as genai_errors

from storyboard.core.exceptions import RemoteCallError


class FailureKind(str, Enum):
  """Classification tag attached to a failed remote call."""

  DAILY_QUOTA_EXCEEDED = "daily_quota_exceeded"
  RATE_LIMITED = "rate_limited"
  SERVICE_OVERLOADED = "service_overloaded"
  AUTH_DENIED = "auth_denied"
  UNKNOWN = "unknown"
  RETRIES_EXHAUSTED = "retries_exhausted"

  @property
  def label(self) -> str:
    """Short tag shown next to a failed scene."""
    return _LABELS[self]

  @property
  def retryable(self) -> bool:
    return self in {FailureKind.RATE_LIMITED, FailureKind.SERVICE_OVERLOADED}


_LABELS: dict[FailureKind, str] = {
  FailureKind.DAILY_QUOTA_EXCEEDED: "Daily Quota Exceeded",
  FailureKind.RATE_LIMITED: "Rate Limited",
  FailureKind.SERVICE_OVERLOADED: "Model Busy",
  FailureKind.AUTH_DENIED: "Auth Failed",
  FailureKind.UNKNOWN: "Failed",
  FailureKind.RETRIES_EXHAUSTED: "Max Retries Exceeded",
}


@dataclass(frozen=True)
class FailureSignal:
  """Machine-inspectable parts of a failed call."""

  message: str
  status_code: int | None = None


@dataclass(frozen=True)
class ClassificationRule:
  """Maps status codes or message substrings to one failure kind."""

  kind: FailureKind
  hints: tuple[str, ...] = ()
  status_codes: frozenset[int] = frozenset()

  def matches(self, signal: FailureSignal, normalized_message: str) -> bool:
    if signal.status_code is not None and signal.status_code in self.status_codes:
      return True
    return any(hint.lower() in normalized_message for hint in self.hints)


# Order matters: the daily quota message also carries 429 and "quota".
DEFAULT_RULES: tuple[ClassificationRule, ...] = (
  ClassificationRule(FailureKind.DAILY_QUOTA_EXCEEDED, hints=("per_day", "perday", "per day")),
  ClassificationRule(FailureKind.RATE_LIMITED, hints=("429", "quota", "resource_exhausted", "rate limit", "too many requests"), status_codes=frozenset({429})),
  ClassificationRule(FailureKind.SERVICE_OVERLOADED, hints=("503", "overloaded", "unavailable"), status_codes=frozenset({503})),
  ClassificationRule(FailureKind.AUTH_DENIED, hints=("403", "permission_denied", "permission denied"), status_codes=frozenset({403})),
)


class ErrorClassifier:
  """Classifies failures using an ordered list of rules; the first match wins."""

  def __init__(self, rules: Iterable[ClassificationRule] = DEFAULT_RULES) -> None:
    self._rules = tuple(rules)

  def classify(self, signal: FailureSignal) -> FailureKind:
    normalized = signal.message.lower()
    for rule in self._rules:
      if rule.matches(signal, normalized):
        return rule.kind
    return FailureKind.UNKNOWN

  def classify_exception(self, exc: BaseException) -> FailureKind:
    return self.classify(extract_signal(exc))


def extract_signal(exc: BaseException) -> FailureSignal:
  """Pull a status code and message text out of a provider exception."""
  if isinstance(exc, genai_errors.APIError):
    parts = [str(exc)]
    if exc.status:
      parts.append(str(exc.status))
    if exc.details:
      parts.append(json.dumps(exc.details, default=str))
    return FailureSignal(message=" ".join(parts), status_code=exc.code)
  if isinstance(exc, httpx.HTTPStatusError):
    return FailureSignal(message=f"{exc} {exc.response.text}", status_code=exc.response.status_code)
  if isinstance(exc, RemoteCallError):
    return FailureSignal(message=exc.message, status_code=exc.status_code)
  message = str(exc) or type(exc).__name__
  return FailureSignal(message=message)


_default_classifier = ErrorClassifier()


def classify_failure(message: str, status_code: int | None = None) -> FailureKind:
  """Classify a failure with the default rules."""
  return _default_classifier.classify(FailureSignal(message=message, status_code=status_code))


def classify_exception(exc: BaseException) -> FailureKind:
  return _default_classifier.classify_exception(exc)
