"""
Tool dispatch: routes tool names to handler functions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..helpers import ToolResult
from .contact import (
  add_contact_rule,
  bootstrap_contacts,
  list_contact_rules,
  reclassify_emails,
)
from .message import (
  archive_email,
  get_email,
  get_email_body,
  get_email_stats,
  list_emails,
  list_mail_folders,
  mark_email_read,
)
from .send import reply_to_email, send_email
from .sync import get_sync_status, sync_mailbox

if TYPE_CHECKING:
  from ..runtime import OutlookRuntime

log = logging.getLogger("skill.outlook.handlers")

# Map tool names to handler functions
HANDLERS: dict[str, Any] = {
  # Message tools
  "list_emails": list_emails,
  "get_email": get_email,
  "get_email_body": get_email_body,
  "get_email_stats": get_email_stats,
  "mark_email_read": mark_email_read,
  "archive_email": archive_email,
  "list_mail_folders": list_mail_folders,
  # Send tools
  "send_email": send_email,
  "reply_to_email": reply_to_email,
  # Sync tools
  "sync_mailbox": sync_mailbox,
  "get_sync_status": get_sync_status,
  # Contact tools
  "bootstrap_contacts": bootstrap_contacts,
  "list_contact_rules": list_contact_rules,
  "add_contact_rule": add_contact_rule,
  "reclassify_emails": reclassify_emails,
}


async def dispatch_tool(
  runtime: OutlookRuntime | None, tool_name: str, args: dict[str, Any]
) -> ToolResult:
  """Dispatch a tool call to the appropriate handler."""
  handler = HANDLERS.get(tool_name)
  if not handler:
    log.error("Unknown tool: %s", tool_name)
    return ToolResult(content=f"Unknown tool: {tool_name}", is_error=True)
  if runtime is None:
    return ToolResult(content="Outlook is not connected. Run setup first.", is_error=True)

  try:
    return await handler(runtime, args)
  except Exception as e:
    log.exception("Error executing tool %s: %s", tool_name, e)
    return ToolResult(content=f"Error: {e!s}", is_error=True)
