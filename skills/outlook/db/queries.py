"""
Read/write query functions for the Outlook SQLite database.

Writers expect to run inside MetadataStore.transaction(); none of them
commit on their own.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ..state.types import (
  Category,
  ContactRule,
  EmailAddress,
  Folder,
  Importance,
  MatchType,
  Message,
  MessageQuery,
  MessageStats,
  PriorityLevel,
)

if TYPE_CHECKING:
  import aiosqlite

log = logging.getLogger("skill.outlook.db.queries")


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------


def format_ts(value: datetime) -> str:
  """Canonical text form for timestamps: UTC, second precision."""
  if value.tzinfo is None:
    value = value.replace(tzinfo=UTC)
  return value.astimezone(UTC).isoformat(timespec="seconds")


def _dump_addresses(addrs: list[EmailAddress]) -> str:
  return json.dumps([{"name": a.name, "email": a.email} for a in addrs])


def _load_addresses(raw: str | None) -> list[EmailAddress]:
  if not raw:
    return []
  return [EmailAddress(**a) for a in json.loads(raw)]


def _opt_bool(value: Any) -> bool | None:
  return None if value is None else bool(value)


def row_to_message(row: Any) -> Message:
  r = dict(row)
  return Message(
    id=r["id"],
    conversation_id=r["conversation_id"],
    subject=r["subject"],
    from_email=r["from_email"],
    from_name=r["from_name"],
    to=_load_addresses(r["to_json"]),
    cc=_load_addresses(r["cc_json"]),
    received_at=datetime.fromisoformat(r["received_at"]),
    importance=Importance(r["importance"]),
    is_read=bool(r["is_read"]),
    has_attachments=bool(r["has_attachments"]),
    body_preview=r["body_preview"],
    parent_folder_id=r["parent_folder_id"],
    categories=json.loads(r["categories_json"] or "[]"),
    category=Category(r["category"]) if r["category"] else None,
    confidence=r["confidence"],
    entity_name=r["entity_name"],
    entity_path=r["entity_path"],
    priority_score=r["priority_score"],
    priority_level=PriorityLevel(r["priority_level"]) if r["priority_level"] else None,
    action_required=_opt_bool(r["action_required"]),
    archived_locally=bool(r["archived_locally"]),
  )


# ---------------------------------------------------------------------------
# Emails
# ---------------------------------------------------------------------------

_UPSERT_EMAIL_SQL = """
INSERT INTO emails (
    id, conversation_id, subject, from_email, from_name, to_json, cc_json,
    received_at, importance, is_read, has_attachments, body_preview,
    parent_folder_id, categories_json, category, confidence, entity_name,
    entity_path, priority_score, priority_level, action_required
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    conversation_id = excluded.conversation_id,
    subject = excluded.subject,
    from_email = excluded.from_email,
    from_name = excluded.from_name,
    to_json = excluded.to_json,
    cc_json = excluded.cc_json,
    received_at = excluded.received_at,
    importance = excluded.importance,
    is_read = excluded.is_read,
    has_attachments = excluded.has_attachments,
    body_preview = excluded.body_preview,
    parent_folder_id = excluded.parent_folder_id,
    categories_json = excluded.categories_json,
    category = COALESCE(excluded.category, emails.category),
    confidence = COALESCE(excluded.confidence, emails.confidence),
    entity_name = CASE WHEN excluded.category IS NULL THEN emails.entity_name
                       ELSE excluded.entity_name END,
    entity_path = CASE WHEN excluded.category IS NULL THEN emails.entity_path
                       ELSE excluded.entity_path END,
    priority_score = COALESCE(excluded.priority_score, emails.priority_score),
    priority_level = COALESCE(excluded.priority_level, emails.priority_level),
    action_required = COALESCE(excluded.action_required, emails.action_required)
"""


async def upsert_email(db: aiosqlite.Connection, msg: Message) -> None:
  if msg.received_at is None:
    raise ValueError(f"message {msg.id} has no received_at")
  await db.execute(
    _UPSERT_EMAIL_SQL,
    (
      msg.id,
      msg.conversation_id,
      msg.subject,
      msg.from_email.strip().lower(),
      msg.from_name,
      _dump_addresses(msg.to),
      _dump_addresses(msg.cc),
      format_ts(msg.received_at),
      msg.importance.value,
      int(msg.is_read),
      int(msg.has_attachments),
      msg.body_preview,
      msg.parent_folder_id,
      json.dumps(msg.categories),
      msg.category.value if msg.category else None,
      msg.confidence,
      msg.entity_name,
      msg.entity_path,
      msg.priority_score,
      msg.priority_level.value if msg.priority_level else None,
      None if msg.action_required is None else int(msg.action_required),
    ),
  )


async def delete_email(db: aiosqlite.Connection, message_id: str) -> int:
  cursor = await db.execute("DELETE FROM emails WHERE id = ?", (message_id,))
  return cursor.rowcount


async def get_email(db: aiosqlite.Connection, message_id: str) -> Message | None:
  cursor = await db.execute("SELECT * FROM emails WHERE id = ?", (message_id,))
  row = await cursor.fetchone()
  return row_to_message(row) if row else None


async def iter_all_emails(db: aiosqlite.Connection) -> list[Message]:
  cursor = await db.execute("SELECT * FROM emails ORDER BY received_at DESC")
  rows = await cursor.fetchall()
  return [row_to_message(r) for r in rows]


async def set_email_flag(
  db: aiosqlite.Connection, message_id: str, column: str, value: bool
) -> bool:
  if column not in ("is_read", "archived_locally"):
    raise ValueError(f"not a flag column: {column}")
  cursor = await db.execute(f"UPDATE emails SET {column} = ? WHERE id = ?", (int(value), message_id))
  return cursor.rowcount > 0


def _escape_like(value: str) -> str:
  return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


_ORDER_SQL = {
  "received_desc": "received_at DESC, id",
  "received_asc": "received_at ASC, id",
  "priority_desc": "priority_score DESC, received_at DESC, id",
}


async def query_emails(db: aiosqlite.Connection, q: MessageQuery) -> list[Message]:
  clauses: list[str] = []
  params: list[Any] = []

  if q.categories:
    clauses.append(f"category IN ({', '.join('?' for _ in q.categories)})")
    params.extend(c.value for c in q.categories)
  if q.min_priority is not None:
    clauses.append("priority_score >= ?")
    params.append(q.min_priority)
  if q.is_read is not None:
    clauses.append("is_read = ?")
    params.append(int(q.is_read))
  if q.folder_id:
    clauses.append("parent_folder_id = ?")
    params.append(q.folder_id)
  if q.sender_domain:
    clauses.append("from_email LIKE ? ESCAPE '\\'")
    params.append("%@" + _escape_like(q.sender_domain.strip().lower().lstrip("@")))
  if q.received_after is not None:
    clauses.append("received_at >= ?")
    params.append(format_ts(q.received_after))
  if q.received_before is not None:
    clauses.append("received_at < ?")
    params.append(format_ts(q.received_before))
  if q.text:
    pattern = f"%{_escape_like(q.text)}%"
    clauses.append("(subject LIKE ? ESCAPE '\\' OR body_preview LIKE ? ESCAPE '\\')")
    params.extend([pattern, pattern])
  if not q.include_archived:
    clauses.append("archived_locally = 0")

  where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
  sql = f"SELECT * FROM emails {where} ORDER BY {_ORDER_SQL[q.order]} LIMIT ? OFFSET ?"
  params.extend([q.limit, q.offset])

  cursor = await db.execute(sql, params)
  rows = await cursor.fetchall()
  return [row_to_message(r) for r in rows]


async def count_emails(db: aiosqlite.Connection) -> int:
  cursor = await db.execute("SELECT COUNT(*) FROM emails")
  row = await cursor.fetchone()
  return row[0] if row else 0


async def get_stats(db: aiosqlite.Connection) -> MessageStats:
  cursor = await db.execute(
    """SELECT COUNT(*),
              COALESCE(SUM(is_read = 0), 0),
              COALESCE(SUM(action_required = 1), 0),
              COALESCE(SUM(archived_locally = 1), 0)
       FROM emails"""
  )
  total, unread, action_required, archived = await cursor.fetchone()

  cursor = await db.execute(
    "SELECT COALESCE(category, 'unclassified'), COUNT(*) FROM emails GROUP BY 1"
  )
  by_category = {row[0]: row[1] for row in await cursor.fetchall()}

  cursor = await db.execute(
    "SELECT COALESCE(priority_level, 'unscored'), COUNT(*) FROM emails GROUP BY 1"
  )
  by_level = {row[0]: row[1] for row in await cursor.fetchall()}

  return MessageStats(
    total=total,
    unread=unread,
    action_required=action_required,
    archived=archived,
    by_category=by_category,
    by_priority_level=by_level,
  )


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------


async def upsert_folder(db: aiosqlite.Connection, folder: Folder) -> None:
  await db.execute(
    """INSERT OR REPLACE INTO folders
           (id, display_name, parent_id, child_count, unread_count, total_count)
           VALUES (?, ?, ?, ?, ?, ?)""",
    (
      folder.id,
      folder.display_name,
      folder.parent_id,
      folder.child_count,
      folder.unread_count,
      folder.total_count,
    ),
  )


async def list_folders(db: aiosqlite.Connection) -> list[Folder]:
  cursor = await db.execute("SELECT * FROM folders ORDER BY display_name")
  rows = await cursor.fetchall()
  return [Folder(**dict(r)) for r in rows]


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


async def upsert_contact(db: aiosqlite.Connection, rule: ContactRule) -> None:
  await db.execute(
    """INSERT INTO contacts (match_type, match_value, entity_type, entity_name, entity_path)
           VALUES (?, ?, ?, ?, ?)
           ON CONFLICT(match_type, match_value) DO UPDATE SET
               entity_type = excluded.entity_type,
               entity_name = excluded.entity_name,
               entity_path = excluded.entity_path""",
    (
      rule.match_type.value,
      rule.match_value,
      rule.entity_type.value,
      rule.entity_name,
      rule.entity_path,
    ),
  )


def _row_to_rule(row: Any) -> ContactRule:
  r = dict(row)
  return ContactRule(
    match_type=MatchType(r["match_type"]),
    match_value=r["match_value"],
    entity_type=Category(r["entity_type"]),
    entity_name=r["entity_name"],
    entity_path=r["entity_path"],
  )


async def list_contacts(
  db: aiosqlite.Connection, match_type: MatchType | None = None
) -> list[ContactRule]:
  if match_type is None:
    cursor = await db.execute("SELECT * FROM contacts ORDER BY match_type, match_value")
  else:
    cursor = await db.execute(
      "SELECT * FROM contacts WHERE match_type = ? ORDER BY match_value", (match_type.value,)
    )
  rows = await cursor.fetchall()
  return [_row_to_rule(r) for r in rows]


async def find_contact(
  db: aiosqlite.Connection, match_type: MatchType, value: str
) -> ContactRule | None:
  cursor = await db.execute(
    "SELECT * FROM contacts WHERE match_type = ? AND match_value = ?",
    (match_type.value, value.strip().lower()),
  )
  row = await cursor.fetchone()
  return _row_to_rule(row) if row else None


async def is_noise_domain(db: aiosqlite.Connection, domain: str) -> bool:
  domain = domain.strip().lower()
  if not domain:
    return False
  cursor = await db.execute(
    """SELECT COUNT(*) FROM contacts
       WHERE match_type = 'noise_domain' AND instr(?, match_value) > 0""",
    (domain,),
  )
  row = await cursor.fetchone()
  return bool(row and row[0])


# ---------------------------------------------------------------------------
# Sync state
# ---------------------------------------------------------------------------


async def get_sync_state(db: aiosqlite.Connection, key: str) -> str | None:
  cursor = await db.execute("SELECT value FROM sync_state WHERE key = ?", (key,))
  row = await cursor.fetchone()
  return row[0] if row else None


async def set_sync_state(db: aiosqlite.Connection, key: str, value: str) -> None:
  await db.execute(
    """INSERT INTO sync_state (key, value, updated_at) VALUES (?, ?, ?)
       ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at""",
    (key, value, format_ts(datetime.now(UTC))),
  )


async def delete_sync_state(db: aiosqlite.Connection, key: str) -> None:
  await db.execute("DELETE FROM sync_state WHERE key = ?", (key,))


async def get_all_sync_state(db: aiosqlite.Connection) -> dict[str, str]:
  cursor = await db.execute("SELECT key, value FROM sync_state")
  rows = await cursor.fetchall()
  return {row[0]: row[1] for row in rows}
