"""Session credential state and the invalidation side channel."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CredentialListener = Callable[["CredentialStatus"], None]


@dataclass(frozen=True)
class CredentialStatus:
  """Snapshot of whether the active API credential is usable."""

  valid: bool
  reason: str | None = None


class CredentialState:
  """Tracks the active credential and notifies listeners when it is rejected."""

  def __init__(self) -> None:
    self._status = CredentialStatus(valid=True)
    self._listeners: list[CredentialListener] = []

  @property
  def status(self) -> CredentialStatus:
    return self._status

  @property
  def valid(self) -> bool:
    return self._status.valid

  def subscribe(self, listener: CredentialListener) -> Callable[[], None]:
    """Register a listener and return a callable that removes it."""
    self._listeners.append(listener)

    def _unsubscribe() -> None:
      if listener in self._listeners:
        self._listeners.remove(listener)

    return _unsubscribe

  def invalidate(self, reason: str) -> None:
    """Mark the credential as rejected so the session prompts for re-selection."""
    # Repeated denials from concurrent jobs collapse into one notification.
    if not self._status.valid:
      return
    logger.warning("Credential invalidated: %s", reason)
    self._set(CredentialStatus(valid=False, reason=reason))

  def restore(self) -> None:
    """Mark a newly selected credential as valid."""
    if self._status.valid:
      return
    logger.info("Credential re-selected.")
    self._set(CredentialStatus(valid=True))

  def _set(self, status: CredentialStatus) -> None:
    self._status = status
    for listener in list(self._listeners):
      listener(status)
