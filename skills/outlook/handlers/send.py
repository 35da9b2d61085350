"""
Send and reply tool handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..helpers import ErrorCategory, ToolResult, log_and_format_error
from ..validation import req_string, validate_email_list

if TYPE_CHECKING:
  from ..runtime import OutlookRuntime


async def send_email(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    to = validate_email_list(args.get("to"), "to")
    cc = validate_email_list(args.get("cc"), "cc", required=False)
    subject = req_string(args, "subject")
    body = req_string(args, "body")

    await rt.send_email(to, cc, subject, body)
    return ToolResult(content=f"Email sent to {', '.join(to)}.")
  except Exception as e:
    return log_and_format_error("send_email", e, ErrorCategory.SEND)


async def reply_to_email(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    message_id = req_string(args, "message_id")
    body = req_string(args, "body")

    await rt.reply(message_id, body)
    return ToolResult(content=f"Reply sent for {message_id}.")
  except Exception as e:
    return log_and_format_error("reply_to_email", e, ErrorCategory.SEND)
