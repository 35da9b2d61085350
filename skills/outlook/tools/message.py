"""
Message read tools (7 tools).
"""

from __future__ import annotations

from mcp.types import Tool

_CATEGORIES = ["client", "deal", "lead", "internal", "vendor", "noise", "unknown"]

message_tools: list[Tool] = [
  Tool(
    name="list_emails",
    description=(
      "List synced Outlook emails with their category and priority, newest first. "
      "Filters can be combined."
    ),
    inputSchema={
      "type": "object",
      "properties": {
        "categories": {
          "type": "array",
          "items": {"type": "string", "enum": _CATEGORIES},
          "description": "Only these categories",
        },
        "min_priority": {"type": "number", "description": "Minimum priority score (0-100)"},
        "unread_only": {"type": "boolean", "description": "Only unread messages"},
        "folder_id": {"type": "string", "description": "Only messages in this folder"},
        "sender_domain": {"type": "string", "description": "Only senders from this domain"},
        "since": {"type": "string", "description": "Received on/after (ISO date)"},
        "before": {"type": "string", "description": "Received before (ISO date)"},
        "query": {"type": "string", "description": "Substring of subject or preview"},
        "include_archived": {
          "type": "boolean",
          "description": "Include locally archived messages",
          "default": False,
        },
        "sort": {
          "type": "string",
          "enum": ["received_desc", "received_asc", "priority_desc"],
          "default": "received_desc",
        },
        "limit": {"type": "number", "description": "Maximum messages to return", "default": 20},
        "offset": {"type": "number", "description": "Offset for pagination", "default": 0},
      },
    },
  ),
  Tool(
    name="get_email",
    description="Get stored metadata, classification and priority for one email",
    inputSchema={
      "type": "object",
      "properties": {"message_id": {"type": "string", "description": "Graph message id"}},
      "required": ["message_id"],
    },
  ),
  Tool(
    name="get_email_body",
    description="Fetch the full body of an email from Outlook (not stored locally)",
    inputSchema={
      "type": "object",
      "properties": {"message_id": {"type": "string", "description": "Graph message id"}},
      "required": ["message_id"],
    },
  ),
  Tool(
    name="get_email_stats",
    description="Counts of synced emails by category and priority level",
    inputSchema={"type": "object", "properties": {}},
  ),
  Tool(
    name="mark_email_read",
    description="Mark an email as read locally and in Outlook",
    inputSchema={
      "type": "object",
      "properties": {"message_id": {"type": "string", "description": "Graph message id"}},
      "required": ["message_id"],
    },
  ),
  Tool(
    name="archive_email",
    description="Hide an email from the default listing (local only)",
    inputSchema={
      "type": "object",
      "properties": {
        "message_id": {"type": "string", "description": "Graph message id"},
        "archived": {"type": "boolean", "description": "False to unarchive", "default": True},
      },
      "required": ["message_id"],
    },
  ),
  Tool(
    name="list_mail_folders",
    description="List Outlook mail folders seen by the last initial sync",
    inputSchema={"type": "object", "properties": {}},
  ),
]
