"""
Message read/list/state tool handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..helpers import (
  ErrorCategory,
  ToolResult,
  format_folder,
  format_message_detail,
  format_message_summary,
  format_stats,
  log_and_format_error,
)
from ..state.types import Category, MessageQuery
from ..validation import (
  opt_boolean,
  opt_datetime,
  opt_enum_list,
  opt_number,
  opt_string,
  req_string,
)

if TYPE_CHECKING:
  from ..runtime import OutlookRuntime

_SORTS = ("received_desc", "received_asc", "priority_desc")


async def list_emails(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    sort = opt_string(args, "sort") or "received_desc"
    if sort not in _SORTS:
      sort = "received_desc"
    unread_only = opt_boolean(args, "unread_only")
    query = MessageQuery(
      categories=opt_enum_list(args, "categories", Category),
      min_priority=opt_number(args, "min_priority", 0, hi=100) if "min_priority" in args else None,
      is_read=False if unread_only else None,
      folder_id=opt_string(args, "folder_id"),
      sender_domain=opt_string(args, "sender_domain"),
      received_after=opt_datetime(args, "since"),
      received_before=opt_datetime(args, "before"),
      text=opt_string(args, "query"),
      include_archived=opt_boolean(args, "include_archived") or False,
      order=sort,
      limit=opt_number(args, "limit", 20, lo=1, hi=200),
      offset=opt_number(args, "offset", 0),
    )

    messages = await rt.store.query_messages(query)
    if not messages:
      return ToolResult(content="No emails match.")

    lines = [format_message_summary(m) for m in messages]
    header = f"Emails ({len(messages)} shown):\n"
    return ToolResult(content=header + "\n".join(lines))
  except Exception as e:
    return log_and_format_error("list_emails", e, ErrorCategory.MSG)


async def get_email(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    message_id = req_string(args, "message_id")
    msg = await rt.store.get_message(message_id)
    if msg is None:
      return ToolResult(content=f"Email {message_id} not found.", is_error=True)
    return ToolResult(content=format_message_detail(msg))
  except Exception as e:
    return log_and_format_error("get_email", e, ErrorCategory.MSG)


async def get_email_body(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    message_id = req_string(args, "message_id")
    body = await rt.fetch_body(message_id)
    return ToolResult(content=f"Content-Type: {body.content_type}\n\n{body.content}")
  except Exception as e:
    return log_and_format_error("get_email_body", e, ErrorCategory.MSG)


async def get_email_stats(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    stats = await rt.store.get_stats()
    return ToolResult(content=format_stats(stats))
  except Exception as e:
    return log_and_format_error("get_email_stats", e, ErrorCategory.MSG)


async def mark_email_read(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    message_id = req_string(args, "message_id")
    found = await rt.mark_read(message_id)
    suffix = "" if found else " (not in local store)"
    return ToolResult(content=f"Marked {message_id} as read{suffix}.")
  except Exception as e:
    return log_and_format_error("mark_email_read", e, ErrorCategory.MSG)


async def archive_email(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    message_id = req_string(args, "message_id")
    archived = opt_boolean(args, "archived")
    archived = True if archived is None else archived
    if not await rt.archive(message_id, archived):
      return ToolResult(content=f"Email {message_id} not found.", is_error=True)
    verb = "Archived" if archived else "Unarchived"
    return ToolResult(content=f"{verb} {message_id}.")
  except Exception as e:
    return log_and_format_error("archive_email", e, ErrorCategory.MSG)


async def list_mail_folders(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    folders = await rt.store.list_folders()
    if not folders:
      return ToolResult(content="No folders synced yet.")
    return ToolResult(content="\n".join(format_folder(f) for f in folders))
  except Exception as e:
    return log_and_format_error("list_mail_folders", e, ErrorCategory.FOLDER)
