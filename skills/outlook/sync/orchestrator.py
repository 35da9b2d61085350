"""
Mailbox sync: initial snapshot and delta-based incremental updates.

run_initial_sync() pulls up to INITIAL_SYNC_CEILING recent headers, one
transaction per page, then initialises a delta round and stores its
cursor. run_incremental_sync() applies one delta round and the new cursor
in a single transaction, so a failed cycle leaves the old cursor in place.
A 410 on the stored cursor drops it and falls back to a full initial sync.

Both entry points hold the store's single-writer lane for their whole run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import aiosqlite

from ..classify import classify_email
from ..db import queries
from ..errors import ClassifierInputError, CursorExpiredError, OutlookError, StorageError
from ..scoring import calculate_priority, is_action_required
from ..state import events
from ..state.types import (
  SYNC_DELTA_CURSOR,
  SYNC_INITIAL_DONE,
  SYNC_LAST_AT,
  SYNC_LAST_ATTEMPT_AT,
  SYNC_LAST_ERROR,
  Message,
  MessageHeader,
)

if TYPE_CHECKING:
  from collections.abc import Awaitable, Callable

  from ..classify import ContactRuleSet
  from ..client.graph_client import GraphClient
  from ..db.store import MetadataStore
  from ..state.events import EventSink
  from ..state.types import MessageBody

log = logging.getLogger("skill.outlook.sync")

INITIAL_SYNC_CEILING = 10_000
PROGRESS_EVERY = 50
SLOW_SYNC_S = 60.0

_HEADER_FIELDS = set(MessageHeader.model_fields) - {"removed"}


@dataclass
class SyncResult:
  mode: str
  upserted: int = 0
  deleted: int = 0
  skipped: int = 0
  duration_s: float = 0.0

  @property
  def count(self) -> int:
    return self.upserted + self.deleted


def build_message(header: MessageHeader, rules: ContactRuleSet, now: datetime) -> Message:
  """Classify and score a header into a storable Message."""
  if header.received_at is None:
    raise ClassifierInputError(f"Message {header.id} has no receivedDateTime")
  c = classify_email(header.from_email, header.subject, header.body_preview, rules)
  p = calculate_priority(c.category, header.received_at, header.is_read, header.importance, now)
  return Message(
    **header.model_dump(include=_HEADER_FIELDS),
    category=c.category,
    confidence=c.confidence,
    entity_name=c.entity_name,
    entity_path=c.entity_path,
    priority_score=p.score,
    priority_level=p.level,
    action_required=is_action_required(c.category, p.score),
  )


class _Progress:
  def __init__(self, sink: EventSink | None, phase: str, total: int | None) -> None:
    self._sink = sink
    self._phase = phase
    self._total = total
    self.processed = 0
    self._last_bucket = 0

  def advance(self, n: int = 1) -> None:
    self.processed += n
    bucket = self.processed // PROGRESS_EVERY
    if bucket > self._last_bucket:
      self._last_bucket = bucket
      self.emit()

  def emit(self) -> None:
    data: dict[str, Any] = {"phase": self._phase, "processed": self.processed}
    if self._total is not None:
      data["total"] = self._total
    events.emit(self._sink, events.SYNC_PROGRESS, data)


class SyncOrchestrator:
  def __init__(
    self,
    client: GraphClient,
    store: MetadataStore,
    sink: EventSink | None = None,
    *,
    max_initial: int = INITIAL_SYNC_CEILING,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
    monotonic: Callable[[], float] = time.monotonic,
  ) -> None:
    self._client = client
    self._store = store
    self._sink = sink
    self._max_initial = max_initial
    self._now = now
    self._monotonic = monotonic

  # ------------------------------------------------------------------
  # Public entry points
  # ------------------------------------------------------------------

  async def run_initial_sync(self) -> SyncResult:
    async with self._store.sync_lane():
      return await self._run(self._initial)

  async def run_incremental_sync(self) -> SyncResult:
    async with self._store.sync_lane():
      return await self._run(self._incremental)

  async def reclassify_all(self) -> int:
    """Re-run classifier and scorer over every stored message."""
    async with self._store.sync_lane():
      rules = await self._store.load_contact_rules()
      now = self._now()
      messages = await self._store.all_messages()
      async with self._store.transaction() as db:
        for msg in messages:
          await queries.upsert_email(db, build_message(msg, rules, now))
    log.info("Reclassified %d messages against %d rules", len(messages), len(rules))
    return len(messages)

  async def fetch_body(self, message_id: str) -> MessageBody:
    return await self._client.fetch_body(message_id)

  async def is_initial_sync_done(self) -> bool:
    return await self._store.get_sync_state(SYNC_INITIAL_DONE) == "true"

  # ------------------------------------------------------------------
  # Failure bookkeeping
  # ------------------------------------------------------------------

  async def _run(self, fn: Callable[[], Awaitable[SyncResult]]) -> SyncResult:
    started = self._monotonic()
    try:
      result = await fn()
    except aiosqlite.Error as e:
      err = StorageError(f"Metadata store error: {e}")
      await self._record_failure(err)
      raise err from e
    except Exception as e:
      await self._record_failure(e)
      raise

    result.duration_s = self._monotonic() - started
    if result.mode == "incremental" and result.duration_s > SLOW_SYNC_S:
      log.warning(
        "Incremental sync took %.1fs (soft limit %.0fs)", result.duration_s, SLOW_SYNC_S
      )
    log.info(
      "%s sync done: %d upserted, %d deleted, %d skipped",
      result.mode.capitalize(),
      result.upserted,
      result.deleted,
      result.skipped,
    )
    return result

  async def _record_failure(self, exc: Exception) -> None:
    message = exc.message if isinstance(exc, OutlookError) else str(exc)
    try:
      async with self._store.transaction() as db:
        await queries.set_sync_state(db, SYNC_LAST_ATTEMPT_AT, self._now().isoformat())
        await queries.set_sync_state(db, SYNC_LAST_ERROR, message or exc.__class__.__name__)
    except Exception:
      log.exception("Could not record sync failure")

  async def _mark_success(self, db: aiosqlite.Connection, cursor: str) -> None:
    stamp = self._now().isoformat()
    await queries.set_sync_state(db, SYNC_DELTA_CURSOR, cursor)
    await queries.set_sync_state(db, SYNC_INITIAL_DONE, "true")
    await queries.set_sync_state(db, SYNC_LAST_AT, stamp)
    await queries.set_sync_state(db, SYNC_LAST_ATTEMPT_AT, stamp)
    await queries.delete_sync_state(db, SYNC_LAST_ERROR)

  # ------------------------------------------------------------------
  # Initial sync
  # ------------------------------------------------------------------

  async def _initial(self) -> SyncResult:
    events.emit(self._sink, events.SYNC_STARTED, {"mode": "initial"})
    result = SyncResult(mode="initial")

    folders = await self._client.list_folders()
    await self._store.upsert_folders(folders)
    log.info("Synced %d folders", len(folders))

    rules = await self._store.load_contact_rules()
    now = self._now()
    progress = _Progress(self._sink, "initial", None)

    stored: set[str] = set()
    async for page in self._client.iter_message_pages(self._max_initial):
      async with self._store.transaction() as db:
        for header in page.messages:
          if header.removed:
            continue
          await queries.upsert_email(db, build_message(header, rules, now))
          stored.add(header.id)
      progress.advance(len(page.messages) + page.skipped)

    # The delta round holds the newest state of every message, and its cursor
    # marks that state as seen, so every header in it is written. It covers the
    # whole mailbox, so malformed messages are counted from this round only.
    batch = await self._client.delta_messages(None)
    result.skipped = batch.skipped
    async with self._store.transaction() as db:
      for header in batch.messages:
        if header.removed:
          result.deleted += await queries.delete_email(db, header.id)
          stored.discard(header.id)
        else:
          await queries.upsert_email(db, build_message(header, rules, now))
          stored.add(header.id)
      await self._mark_success(db, batch.cursor)
    result.upserted = len(stored)

    progress.emit()
    return result

  # ------------------------------------------------------------------
  # Incremental sync
  # ------------------------------------------------------------------

  async def _incremental(self) -> SyncResult:
    cursor = await self._store.get_sync_state(SYNC_DELTA_CURSOR)
    if not cursor:
      log.info("No delta cursor stored, running initial sync")
      return await self._initial()

    events.emit(self._sink, events.SYNC_STARTED, {"mode": "incremental"})
    try:
      batch = await self._client.delta_messages(cursor)
    except CursorExpiredError:
      log.warning("Delta cursor expired, falling back to initial sync")
      async with self._store.transaction() as db:
        await queries.delete_sync_state(db, SYNC_DELTA_CURSOR)
        await queries.set_sync_state(db, SYNC_INITIAL_DONE, "false")
      return await self._initial()

    result = SyncResult(mode="incremental", skipped=batch.skipped)
    rules = await self._store.load_contact_rules()
    now = self._now()
    progress = _Progress(self._sink, "incremental", len(batch.messages))

    async with self._store.transaction() as db:
      for header in batch.messages:
        if header.removed:
          result.deleted += await queries.delete_email(db, header.id)
        else:
          await queries.upsert_email(db, build_message(header, rules, now))
          result.upserted += 1
        progress.advance()
      await self._mark_success(db, batch.cursor)

    return result
