"""
Shared formatting and error handling helpers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
  from .state.types import ContactRule, EmailAddress, Folder, Message, MessageStats

log = logging.getLogger("skill.outlook.helpers")


# ---------------------------------------------------------------------------
# Tool result
# ---------------------------------------------------------------------------


@dataclass
class ToolResult:
  content: str
  is_error: bool = False


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_address(addr: EmailAddress) -> str:
  if addr.name and addr.name != addr.email:
    return f"{addr.name} <{addr.email}>"
  return addr.email


def format_message_summary(msg: Message) -> str:
  """Format a single message as a summary line."""
  date_str = msg.received_at.strftime("%Y-%m-%d %H:%M") if msg.received_at else ""
  sender = msg.from_name or msg.from_email or "(no sender)"
  read_flag = "" if msg.is_read else "[UNREAD] "
  action_flag = "[ACTION] " if msg.action_required else ""
  attach_flag = " [+att]" if msg.has_attachments else ""
  category = msg.category.value if msg.category else "unclassified"
  score = msg.priority_score if msg.priority_score is not None else "-"
  return (
    f"{read_flag}{action_flag}{msg.id} | {date_str} | {category}/{score} | "
    f"From: {sender} | Subject: {msg.subject or '(no subject)'}{attach_flag}"
  )


def format_message_detail(msg: Message) -> str:
  """Format stored message metadata for display."""
  lines = [f"ID: {msg.id}"]
  if msg.conversation_id:
    lines.append(f"Conversation: {msg.conversation_id}")
  sender = f"{msg.from_name} <{msg.from_email}>" if msg.from_name else msg.from_email
  lines.append(f"From: {sender or '(no sender)'}")
  if msg.to:
    lines.append(f"To: {', '.join(format_address(a) for a in msg.to)}")
  if msg.cc:
    lines.append(f"CC: {', '.join(format_address(a) for a in msg.cc)}")
  lines.append(f"Subject: {msg.subject}")
  if msg.received_at:
    lines.append(f"Received: {msg.received_at.isoformat()}")
  lines.append(f"Importance: {msg.importance.value}")

  flags = []
  if not msg.is_read:
    flags.append("UNREAD")
  if msg.has_attachments:
    flags.append("ATTACHMENTS")
  if msg.archived_locally:
    flags.append("ARCHIVED")
  if msg.action_required:
    flags.append("ACTION REQUIRED")
  if flags:
    lines.append(f"Flags: {', '.join(flags)}")

  if msg.category:
    lines.append(f"Category: {msg.category.value} (confidence {msg.confidence:.2f})")
  if msg.entity_name:
    entity = msg.entity_name + (f" [{msg.entity_path}]" if msg.entity_path else "")
    lines.append(f"Entity: {entity}")
  if msg.priority_score is not None and msg.priority_level is not None:
    lines.append(f"Priority: {msg.priority_score} ({msg.priority_level.value})")
  if msg.categories:
    lines.append(f"Outlook categories: {', '.join(msg.categories)}")

  lines.append("")
  lines.append(f"[Preview] {msg.body_preview}")
  return "\n".join(lines)


def format_stats(stats: MessageStats) -> str:
  lines = [
    f"Total: {stats.total}",
    f"Unread: {stats.unread}",
    f"Action required: {stats.action_required}",
    f"Archived: {stats.archived}",
  ]
  if stats.by_category:
    lines.append("By category:")
    lines.extend(f"  {k}: {v}" for k, v in sorted(stats.by_category.items()))
  if stats.by_priority_level:
    lines.append("By priority:")
    lines.extend(f"  {k}: {v}" for k, v in sorted(stats.by_priority_level.items()))
  return "\n".join(lines)


def format_folder(folder: Folder) -> str:
  unread = f" ({folder.unread_count} unread)" if folder.unread_count else ""
  return f"{folder.display_name}: {folder.total_count} messages{unread} [id: {folder.id}]"


def format_rule(rule: ContactRule) -> str:
  path = f" [{rule.entity_path}]" if rule.entity_path else ""
  return (
    f"{rule.match_type.value}: {rule.match_value} -> "
    f"{rule.entity_type.value} ({rule.entity_name}){path}"
  )


def format_status(status: dict[str, Any]) -> str:
  return "\n".join(f"{k}: {v}" for k, v in status.items() if v is not None)


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


class ErrorCategory(str, Enum):
  MSG = "MSG"
  SEND = "SEND"
  FOLDER = "FOLDER"
  CONTACT = "CONTACT"
  SYNC = "SYNC"


def log_and_format_error(
  function_name: str,
  error: Exception,
  category: str | ErrorCategory | None = None,
) -> ToolResult:
  prefix = category.value if isinstance(category, ErrorCategory) else (category or "GEN")
  hash_val = sum(ord(c) for c in function_name) % 1000
  error_code = f"{prefix}-ERR-{hash_val:03d}"

  log.error("[MCP] Error in %s - Code: %s - %s", function_name, error_code, error)

  from .errors import OutlookError
  from .validation import ValidationError

  if isinstance(error, ValidationError):
    user_message = str(error)
  elif isinstance(error, OutlookError):
    user_message = f"{error.message} (code: {error_code})"
  else:
    user_message = f"An error occurred (code: {error_code}). Check logs for details."

  return ToolResult(content=user_message, is_error=True)
