"""
Metadata store: the embedded SQLite database behind the Outlook skill.

Two aiosqlite connections are kept open in WAL mode. The writer is only
used inside transaction(), which runs BEGIN IMMEDIATE ... COMMIT so a
sync batch lands all at once or not at all. The reader serves queries
and only ever observes committed state.

Writes are serialised through a single-writer lane. A sync holds the lane
for its whole run; a write from any other task while the lane is held
raises SyncInProgressError instead of waiting.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import aiosqlite

from ..classify import ContactRuleSet
from ..errors import StorageError, SyncInProgressError
from ..state.types import MatchType
from . import queries
from .schema import PRAGMA_SQL, SCHEMA_SQL

if TYPE_CHECKING:
  from collections.abc import AsyncIterator

  from ..state.types import ContactRule, Folder, Message, MessageQuery, MessageStats

log = logging.getLogger("skill.outlook.db")

DB_FILENAME = "emails.db"
FALLBACK_DIR = os.path.join("~", ".alphahuman", "outlook")


def default_db_path(data_dir: str | None = None) -> str:
  base = data_dir or os.path.expanduser(FALLBACK_DIR)
  return os.path.join(base, DB_FILENAME)


class MetadataStore:
  def __init__(self, path: str) -> None:
    self.path = path
    self._writer: aiosqlite.Connection | None = None
    self._reader: aiosqlite.Connection | None = None
    self._lane = asyncio.Lock()
    self._lane_owner: asyncio.Task | None = None

  # ------------------------------------------------------------------
  # Lifecycle
  # ------------------------------------------------------------------

  @property
  def is_open(self) -> bool:
    return self._writer is not None and self._reader is not None

  async def open(self) -> None:
    if self.is_open:
      return
    log.info("Opening database at %s", self.path)
    try:
      os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
      self._writer = await self._connect()
      await self._writer.executescript(SCHEMA_SQL)
      self._reader = await self._connect()
      await self._reader.execute("PRAGMA query_only=1")
    except (OSError, aiosqlite.Error) as e:
      await self.close()
      raise StorageError(f"Cannot open metadata store at {self.path}: {e}") from e
    log.info("Database initialized")

  async def _connect(self) -> aiosqlite.Connection:
    # Autocommit mode; transactions are opened explicitly.
    db = await aiosqlite.connect(self.path, isolation_level=None)
    db.row_factory = aiosqlite.Row
    for line in PRAGMA_SQL.strip().splitlines():
      line = line.strip()
      if line and not line.startswith("--"):
        await db.execute(line)
    return db

  async def close(self) -> None:
    for db in (self._reader, self._writer):
      if db is not None:
        try:
          await db.close()
        except aiosqlite.Error:
          log.warning("Error closing database connection", exc_info=True)
    self._reader = None
    self._writer = None

  def _read_db(self) -> aiosqlite.Connection:
    if self._reader is None:
      raise StorageError("Metadata store is not open")
    return self._reader

  # ------------------------------------------------------------------
  # Single-writer lane & transactions
  # ------------------------------------------------------------------

  @property
  def sync_running(self) -> bool:
    return self._lane.locked()

  def _owns_lane(self) -> bool:
    return self._lane_owner is not None and self._lane_owner is asyncio.current_task()

  @asynccontextmanager
  async def sync_lane(self) -> AsyncIterator[None]:
    """Hold the writer lane. Raises SyncInProgressError if it is taken."""
    if self._owns_lane():
      yield
      return
    if self._lane.locked():
      raise SyncInProgressError()
    async with self._lane:
      self._lane_owner = asyncio.current_task()
      try:
        yield
      finally:
        self._lane_owner = None

  @asynccontextmanager
  async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
    """Run the enclosed writes atomically on the writer connection."""
    async with self.sync_lane():
      db = self._writer
      if db is None:
        raise StorageError("Metadata store is not open")
      try:
        await db.execute("BEGIN IMMEDIATE")
      except aiosqlite.Error as e:
        raise StorageError(f"Cannot begin transaction: {e}") from e
      try:
        yield db
      except BaseException:
        try:
          await db.execute("ROLLBACK")
        except aiosqlite.Error:
          log.exception("Rollback failed")
        raise
      try:
        await db.execute("COMMIT")
      except aiosqlite.Error as e:
        await db.execute("ROLLBACK")
        raise StorageError(f"Commit failed: {e}") from e

  # ------------------------------------------------------------------
  # Messages
  # ------------------------------------------------------------------

  async def upsert_message(self, msg: Message) -> None:
    async with self.transaction() as db:
      await queries.upsert_email(db, msg)

  async def delete_message(self, message_id: str) -> bool:
    async with self.transaction() as db:
      return await queries.delete_email(db, message_id) > 0

  async def get_message(self, message_id: str) -> Message | None:
    return await queries.get_email(self._read_db(), message_id)

  async def query_messages(self, query: MessageQuery) -> list[Message]:
    return await queries.query_emails(self._read_db(), query)

  async def all_messages(self) -> list[Message]:
    return await queries.iter_all_emails(self._read_db())

  async def count_messages(self) -> int:
    return await queries.count_emails(self._read_db())

  async def get_stats(self) -> MessageStats:
    return await queries.get_stats(self._read_db())

  async def mark_read(self, message_id: str) -> bool:
    async with self.transaction() as db:
      return await queries.set_email_flag(db, message_id, "is_read", True)

  async def set_archived(self, message_id: str, archived: bool = True) -> bool:
    async with self.transaction() as db:
      return await queries.set_email_flag(db, message_id, "archived_locally", archived)

  # ------------------------------------------------------------------
  # Folders
  # ------------------------------------------------------------------

  async def upsert_folders(self, folders: list[Folder]) -> None:
    async with self.transaction() as db:
      for folder in folders:
        await queries.upsert_folder(db, folder)

  async def list_folders(self) -> list[Folder]:
    return await queries.list_folders(self._read_db())

  # ------------------------------------------------------------------
  # Contacts
  # ------------------------------------------------------------------

  async def upsert_contact(self, rule: ContactRule) -> None:
    async with self.transaction() as db:
      await queries.upsert_contact(db, rule)

  async def list_contacts(self, match_type: MatchType | None = None) -> list[ContactRule]:
    return await queries.list_contacts(self._read_db(), match_type)

  async def find_contact_by_email(self, address: str) -> ContactRule | None:
    return await queries.find_contact(self._read_db(), MatchType.EMAIL, address)

  async def find_contact_by_domain(self, domain: str) -> ContactRule | None:
    return await queries.find_contact(self._read_db(), MatchType.DOMAIN, domain)

  async def is_noise_domain(self, domain: str) -> bool:
    return await queries.is_noise_domain(self._read_db(), domain)

  async def load_contact_rules(self) -> ContactRuleSet:
    return ContactRuleSet(await self.list_contacts())

  # ------------------------------------------------------------------
  # Sync state
  # ------------------------------------------------------------------

  async def get_sync_state(self, key: str) -> str | None:
    return await queries.get_sync_state(self._read_db(), key)

  async def set_sync_state(self, key: str, value: str) -> None:
    async with self.transaction() as db:
      await queries.set_sync_state(db, key, value)

  async def get_all_sync_state(self) -> dict[str, str]:
    return await queries.get_all_sync_state(self._read_db())
