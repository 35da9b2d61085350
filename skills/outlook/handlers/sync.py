"""
Sync tool handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..helpers import ErrorCategory, ToolResult, format_status, log_and_format_error
from ..validation import opt_boolean

if TYPE_CHECKING:
  from ..runtime import OutlookRuntime


async def sync_mailbox(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    result = await rt.sync_now(full=opt_boolean(args, "full") or False)
    if result is None:
      return ToolResult(content="Sync skipped.")
    return ToolResult(
      content=(
        f"{result.mode.capitalize()} sync complete: {result.upserted} new or changed, "
        f"{result.deleted} removed, {result.skipped} skipped."
      )
    )
  except Exception as e:
    return log_and_format_error("sync_mailbox", e, ErrorCategory.SYNC)


async def get_sync_status(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    return ToolResult(content=format_status(await rt.status()))
  except Exception as e:
    return log_and_format_error("get_sync_status", e, ErrorCategory.SYNC)
