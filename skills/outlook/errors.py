"""
Error taxonomy for the Outlook sync engine.

Every error raised across component boundaries derives from OutlookError
and carries a short ``kind`` plus whether the next cycle may succeed
without user action. The worker turns these into sync-error events.
"""

from __future__ import annotations

from typing import Any


class OutlookError(Exception):
  """Base error for the Outlook skill."""

  kind = "internal"
  retryable = False

  def __init__(self, message: str):
    self.message = message
    super().__init__(message)

  def to_event(self) -> dict[str, Any]:
    return {"kind": self.kind, "message": self.message, "retryable": self.retryable}


class UnauthenticatedError(OutlookError):
  """Refresh token rejected or missing. The user must reconnect."""

  kind = "unauthenticated"


class TransportError(OutlookError):
  """Network, TLS, timeout, or 5xx after all retries."""

  kind = "transport"
  retryable = True


class ProviderError(OutlookError):
  """Structured 4xx from Microsoft Graph or the token endpoint."""

  kind = "provider"

  def __init__(self, status: int, message: str, code: str | None = None):
    self.status = status
    self.code = code
    super().__init__(f"Graph API error {status}: {message}")


class CursorExpiredError(ProviderError):
  """410 Gone on a delta request."""

  kind = "cursor_expired"
  retryable = True

  def __init__(self, message: str = "delta cursor expired", code: str | None = None):
    super().__init__(410, message, code)


class StorageError(OutlookError):
  """Metadata store could not be opened or written."""

  kind = "storage"
  retryable = True


class ClassifierInputError(OutlookError):
  """Provider payload is missing a field the classifier needs."""

  kind = "classifier_input"


class SyncInProgressError(OutlookError):
  """Another task already holds the single-writer lane."""

  kind = "in_progress"
  retryable = True

  def __init__(self, message: str = "a sync is already in progress"):
    super().__init__(message)
