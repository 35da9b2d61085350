"""
Push state summary to the host via reverse RPC.

Debounced to avoid flooding the host with updates.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

from .types import OutlookHostState

if TYPE_CHECKING:
  from collections.abc import Callable

  from .store import StateStore

log = logging.getLogger("skill.outlook.state.sync")

DEBOUNCE_S = 0.1


class HostStateSync:
  """Mirror a StateStore into the host's skill state."""

  def __init__(self, store: StateStore, set_state: Callable[[dict[str, Any]], Any]) -> None:
    self._store = store
    self._set_state = set_state
    self._debounce_handle: asyncio.TimerHandle | None = None
    self._unsubscribe: Callable[[], None] | None = None

  def start(self) -> None:
    self._unsubscribe = self._store.subscribe(self._on_state_change)
    loop = asyncio.get_running_loop()
    loop.call_soon(lambda: asyncio.ensure_future(self.push()))

  def stop(self) -> None:
    if self._unsubscribe is not None:
      self._unsubscribe()
      self._unsubscribe = None
    if self._debounce_handle is not None:
      self._debounce_handle.cancel()
      self._debounce_handle = None

  def _on_state_change(self) -> None:
    try:
      loop = asyncio.get_running_loop()
    except RuntimeError:
      return
    if self._debounce_handle is not None:
      self._debounce_handle.cancel()
    self._debounce_handle = loop.call_later(
      DEBOUNCE_S, lambda: asyncio.ensure_future(self.push())
    )

  def build_host_state(self) -> OutlookHostState:
    s = self._store.get_state()
    return OutlookHostState(
      connection_status=s.connection_status,
      mailbox=s.mailbox,
      is_initialized=s.is_initialized,
      is_syncing=s.is_syncing,
      initial_sync_done=s.initial_sync_done,
      last_sync=s.last_sync,
      last_error=s.last_error,
      total_messages=s.total_messages,
      unread_messages=s.unread_messages,
      action_required=s.action_required,
    )

  async def push(self) -> None:
    try:
      result = self._set_state(self.build_host_state().model_dump())
      if inspect.isawaitable(result):
        await result
    except Exception:
      log.exception("Failed to push state to host")
