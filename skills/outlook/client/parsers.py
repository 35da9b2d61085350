"""
Convert Microsoft Graph JSON payloads into typed records.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from ..errors import ClassifierInputError
from ..state.types import EmailAddress, Folder, Importance, MessageHeader

MESSAGE_SELECT = (
  "id,conversationId,subject,from,toRecipients,ccRecipients,receivedDateTime,"
  "importance,isRead,hasAttachments,bodyPreview,parentFolderId,categories"
)


def parse_datetime(value: str | None) -> datetime | None:
  """Parse a Graph ISO-8601 timestamp into an aware UTC datetime."""
  if not value:
    return None
  text = value.strip()
  if text.endswith("Z"):
    text = text[:-1] + "+00:00"
  # Graph sends up to 7 fractional digits; fromisoformat accepts at most 6.
  if "." in text:
    head, _, rest = text.partition(".")
    digits = ""
    tail = ""
    for i, ch in enumerate(rest):
      if not ch.isdigit():
        tail = rest[i:]
        break
      digits += ch
    text = f"{head}.{digits[:6].ljust(6, '0')}{tail}"
  try:
    parsed = datetime.fromisoformat(text)
  except ValueError:
    return None
  if parsed.tzinfo is None:
    parsed = parsed.replace(tzinfo=UTC)
  return parsed.astimezone(UTC)


def _parse_recipient(raw: Any) -> EmailAddress | None:
  if not isinstance(raw, dict):
    return None
  addr = raw.get("emailAddress") or {}
  email = (addr.get("address") or "").strip()
  name = (addr.get("name") or "").strip()
  if not email and not name:
    return None
  return EmailAddress(name=name, email=email.lower())


def _parse_recipients(raw: Any) -> list[EmailAddress]:
  if not isinstance(raw, list):
    return []
  parsed = (_parse_recipient(r) for r in raw)
  return [r for r in parsed if r is not None]


def _parse_importance(value: Any) -> Importance:
  try:
    return Importance(str(value).lower())
  except ValueError:
    return Importance.NORMAL


def parse_message(raw: dict[str, Any]) -> MessageHeader:
  """Parse a message or delta entry.

  Delta tombstones carry ``@removed`` and only the id. Messages without an
  id, or live messages without a receivedDateTime, raise ClassifierInputError.
  """
  message_id = raw.get("id")
  if not message_id:
    raise ClassifierInputError("message payload has no id")

  if "@removed" in raw:
    return MessageHeader(id=message_id, removed=True)

  received_at = parse_datetime(raw.get("receivedDateTime"))
  if received_at is None:
    raise ClassifierInputError(f"message {message_id} has no usable receivedDateTime")

  sender = _parse_recipient(raw.get("from"))
  categories = raw.get("categories")

  return MessageHeader(
    id=message_id,
    conversation_id=raw.get("conversationId"),
    subject=raw.get("subject") or "",
    # Delivery failures arrive without a sender; keep that as "".
    from_email=sender.email if sender else "",
    from_name=(sender.name or None) if sender else None,
    to=_parse_recipients(raw.get("toRecipients")),
    cc=_parse_recipients(raw.get("ccRecipients")),
    received_at=received_at,
    importance=_parse_importance(raw.get("importance", "normal")),
    is_read=bool(raw.get("isRead", False)),
    has_attachments=bool(raw.get("hasAttachments", False)),
    body_preview=raw.get("bodyPreview") or "",
    parent_folder_id=raw.get("parentFolderId") or "",
    categories=[str(c) for c in categories] if isinstance(categories, list) else [],
  )


def parse_folder(raw: dict[str, Any]) -> Folder:
  return Folder(
    id=raw.get("id", ""),
    display_name=raw.get("displayName") or "",
    parent_id=raw.get("parentFolderId"),
    child_count=int(raw.get("childFolderCount") or 0),
    unread_count=int(raw.get("unreadItemCount") or 0),
    total_count=int(raw.get("totalItemCount") or 0),
  )
