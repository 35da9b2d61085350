"""
Send and reply tools (2 tools).
"""

from __future__ import annotations

from mcp.types import Tool

send_tools: list[Tool] = [
  Tool(
    name="send_email",
    description="Send a new HTML email from the connected Outlook mailbox",
    inputSchema={
      "type": "object",
      "properties": {
        "to": {
          "type": "array",
          "items": {"type": "string"},
          "description": "Recipient addresses",
        },
        "cc": {
          "type": "array",
          "items": {"type": "string"},
          "description": "CC addresses",
        },
        "subject": {"type": "string", "description": "Subject line"},
        "body": {"type": "string", "description": "HTML body"},
      },
      "required": ["to", "subject", "body"],
    },
  ),
  Tool(
    name="reply_to_email",
    description="Reply to an email; the comment is placed above the quoted original",
    inputSchema={
      "type": "object",
      "properties": {
        "message_id": {"type": "string", "description": "Graph message id"},
        "body": {"type": "string", "description": "HTML reply text"},
      },
      "required": ["message_id", "body"],
    },
  ),
]
