"""
In-process state store for the Outlook skill.

Uses immutable Pydantic models. After each mutation, listeners are notified.
One StateStore is owned by each OutlookRuntime.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

from .types import OutlookConnectionStatus, OutlookState, initial_state

if TYPE_CHECKING:
  from collections.abc import Callable

  from .types import MessageStats


class StateStore:
  def __init__(self) -> None:
    self._state: OutlookState = initial_state()
    self._listeners: list[Callable[[], None]] = []

  # -------------------------------------------------------------------------
  # Public API
  # -------------------------------------------------------------------------

  def get_state(self) -> OutlookState:
    return self._state

  def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
    self._listeners.append(listener)

    def unsubscribe() -> None:
      with contextlib.suppress(ValueError):
        self._listeners.remove(listener)

    return unsubscribe

  def _update(self, updates: dict[str, Any]) -> None:
    self._state = self._state.model_copy(update=updates)
    for fn in list(self._listeners):
      fn()

  def reset_state(self) -> None:
    self._update(initial_state().model_dump())

  # -------------------------------------------------------------------------
  # Connection
  # -------------------------------------------------------------------------

  def set_connection_status(self, status: OutlookConnectionStatus) -> None:
    updates: dict[str, Any] = {"connection_status": status}
    if status != "error":
      updates["connection_error"] = None
    self._update(updates)

  def set_connection_error(self, error: str | None) -> None:
    updates: dict[str, Any] = {"connection_error": error}
    if error:
      updates["connection_status"] = "error"
    self._update(updates)

  def set_mailbox(self, mailbox: str | None) -> None:
    self._update({"mailbox": mailbox})

  def set_is_initialized(self, value: bool) -> None:
    self._update({"is_initialized": value})

  # -------------------------------------------------------------------------
  # Sync
  # -------------------------------------------------------------------------

  def set_syncing(self, value: bool) -> None:
    self._update({"is_syncing": value})

  def set_sync_result(
    self,
    *,
    last_sync: float | None = None,
    count: int | None = None,
    error: str | None = None,
    initial_sync_done: bool | None = None,
  ) -> None:
    updates: dict[str, Any] = {"is_syncing": False, "last_error": error}
    if last_sync is not None:
      updates["last_sync"] = last_sync
    if count is not None:
      updates["last_sync_count"] = count
    if initial_sync_done is not None:
      updates["initial_sync_done"] = initial_sync_done
    self._update(updates)

  def set_stats(self, stats: MessageStats) -> None:
    self._update(
      {
        "total_messages": stats.total,
        "unread_messages": stats.unread,
        "action_required": stats.action_required,
      }
    )
