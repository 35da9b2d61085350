"""
Sync tools (2 tools).
"""

from __future__ import annotations

from mcp.types import Tool

sync_tools: list[Tool] = [
  Tool(
    name="sync_mailbox",
    description=(
      "Sync Outlook now. Runs the initial sync if it has never completed, "
      "otherwise fetches changes since the last sync."
    ),
    inputSchema={
      "type": "object",
      "properties": {
        "full": {
          "type": "boolean",
          "description": "Force a full initial sync",
          "default": False,
        },
      },
    },
  ),
  Tool(
    name="get_sync_status",
    description="Connection and sync status of the Outlook mailbox",
    inputSchema={"type": "object", "properties": {}},
  ),
]
