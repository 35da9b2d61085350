"""
Background sync worker.

One task per runtime: wait WARMUP_S after start, then every INTERVAL_S
run an incremental sync if the initial snapshot exists. Results go out as
sync-done / sync-error events. An authentication failure pauses the loop
until resume() is called after the user reconnects.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING

from ..errors import OutlookError, StorageError, SyncInProgressError, UnauthenticatedError
from ..state import events

if TYPE_CHECKING:
  from ..db.store import MetadataStore
  from ..state.events import EventSink
  from ..state.store import StateStore
  from .orchestrator import SyncOrchestrator, SyncResult

log = logging.getLogger("skill.outlook.sync.worker")

WARMUP_S = 10.0
INTERVAL_S = 300.0
STORE_RETRY_S = 300.0
SHUTDOWN_TIMEOUT_S = 30.0


class BackgroundWorker:
  def __init__(
    self,
    orchestrator: SyncOrchestrator,
    store: MetadataStore,
    sink: EventSink | None = None,
    state: StateStore | None = None,
    *,
    warmup: float = WARMUP_S,
    interval: float = INTERVAL_S,
    store_retry: float = STORE_RETRY_S,
    shutdown_timeout: float = SHUTDOWN_TIMEOUT_S,
  ) -> None:
    self._orchestrator = orchestrator
    self._store = store
    self._sink = sink
    self._state = state
    self._warmup = warmup
    self._interval = interval
    self._store_retry = store_retry
    self._shutdown_timeout = shutdown_timeout

    self._stop = asyncio.Event()
    self._task: asyncio.Task | None = None
    self._paused = False
    self.cycles = 0

  @property
  def is_running(self) -> bool:
    return self._task is not None and not self._task.done()

  @property
  def is_paused(self) -> bool:
    return self._paused

  # ------------------------------------------------------------------
  # Lifecycle
  # ------------------------------------------------------------------

  def start(self) -> None:
    if self.is_running:
      return
    self._stop = asyncio.Event()
    self._task = asyncio.create_task(self.run_forever(), name="outlook-sync-worker")

  async def stop(self) -> None:
    """Signal shutdown and wait up to the shutdown timeout before cancelling."""
    self._stop.set()
    task, self._task = self._task, None
    if task is None:
      return
    try:
      await asyncio.wait_for(asyncio.shield(task), timeout=self._shutdown_timeout)
    except TimeoutError:
      log.warning("Sync worker did not stop within %.0fs, cancelling", self._shutdown_timeout)
      task.cancel()
      with contextlib.suppress(asyncio.CancelledError):
        await task

  def resume(self) -> None:
    if self._paused:
      log.info("Sync worker resumed")
    self._paused = False

  async def _wait(self, delay: float) -> bool:
    """Sleep for ``delay`` seconds. False if shutdown was requested meanwhile."""
    with contextlib.suppress(TimeoutError):
      await asyncio.wait_for(self._stop.wait(), timeout=delay)
    return not self._stop.is_set()

  # ------------------------------------------------------------------
  # Loop
  # ------------------------------------------------------------------

  async def run_forever(self) -> None:
    log.info("Sync worker starting in %.0fs", self._warmup)
    if not await self._wait(self._warmup):
      return

    while not self._stop.is_set():
      delay = self._interval
      if not self._paused:
        try:
          await self._store.open()
        except StorageError as e:
          log.error("Metadata store unavailable: %s", e)
          self._emit_error(e)
          delay = self._store_retry
        else:
          await self.run_once()
      self.cycles += 1
      if not await self._wait(delay):
        break
    log.info("Sync worker stopped")

  async def run_once(self, *, user_triggered: bool = False, full: bool = False) -> SyncResult | None:
    """Run one sync cycle.

    Background cycles stay idle until the initial sync has been done, and
    never raise. User-triggered cycles run the initial sync when needed and
    re-raise after emitting the error event.
    """
    done = await self._orchestrator.is_initial_sync_done()
    if not done and not user_triggered:
      log.debug("Initial sync not done yet, waiting for a user-triggered sync")
      return None

    if self._state is not None:
      self._state.set_syncing(True)
    try:
      if full or not done:
        result = await self._orchestrator.run_initial_sync()
      else:
        result = await self._orchestrator.run_incremental_sync()
    except SyncInProgressError:
      log.info("Sync already running, skipping this cycle")
      if self._state is not None:
        self._state.set_syncing(False)
      if user_triggered:
        raise
      return None
    except UnauthenticatedError as e:
      if self._state is not None:
        self._state.set_syncing(False)
      self._on_unauthenticated(e)
      if user_triggered:
        raise
      return None
    except OutlookError as e:
      log.warning("Sync failed: %s", e)
      self._emit_error(e)
      if user_triggered:
        raise
      return None
    except Exception as e:
      log.exception("Unexpected sync failure")
      self._emit_error(e)
      if user_triggered:
        raise
      return None

    events.emit(self._sink, events.SYNC_DONE, {"count": result.count})
    await self._publish_result(result)
    return result

  # ------------------------------------------------------------------
  # Reporting
  # ------------------------------------------------------------------

  def _emit_error(self, exc: Exception) -> None:
    if isinstance(exc, OutlookError):
      data = exc.to_event()
    else:
      data = {"kind": "internal", "message": str(exc) or exc.__class__.__name__, "retryable": True}
    events.emit(self._sink, events.SYNC_ERROR, data)
    if self._state is not None:
      self._state.set_sync_result(error=data["message"])

  def _on_unauthenticated(self, exc: UnauthenticatedError) -> None:
    if self._paused:
      return
    log.error("Authentication lost, pausing sync worker: %s", exc)
    self._paused = True
    self._emit_error(exc)
    if self._state is not None:
      self._state.set_connection_status("unauthenticated")

  async def _publish_result(self, result: SyncResult) -> None:
    if self._state is None:
      return
    self._state.set_sync_result(
      last_sync=time.time(), count=result.count, error=None, initial_sync_done=True
    )
    try:
      self._state.set_stats(await self._store.get_stats())
    except StorageError:
      log.warning("Could not refresh message stats", exc_info=True)
