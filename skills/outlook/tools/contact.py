"""
Contact rule tools (4 tools).
"""

from __future__ import annotations

from mcp.types import Tool

contact_tools: list[Tool] = [
  Tool(
    name="bootstrap_contacts",
    description=(
      "Seed contact rules (noise, internal, vendor domains) and derive client domains "
      "from the knowledge base folder 3_Clients/by_industry"
    ),
    inputSchema={
      "type": "object",
      "properties": {
        "knowledge_base_path": {
          "type": "string",
          "description": "Knowledge base root (defaults to the configured one)",
        },
      },
    },
  ),
  Tool(
    name="list_contact_rules",
    description="List contact rules used to classify senders",
    inputSchema={
      "type": "object",
      "properties": {
        "match_type": {"type": "string", "enum": ["email", "domain", "noise_domain"]},
      },
    },
  ),
  Tool(
    name="add_contact_rule",
    description=(
      "Add or replace a contact rule. Existing emails keep their category until "
      "reclassify_emails is run."
    ),
    inputSchema={
      "type": "object",
      "properties": {
        "match_type": {"type": "string", "enum": ["email", "domain", "noise_domain"]},
        "match_value": {"type": "string", "description": "Email address or domain"},
        "entity_type": {
          "type": "string",
          "enum": ["client", "deal", "lead", "internal", "vendor", "noise"],
        },
        "entity_name": {"type": "string", "description": "Display name of the entity"},
        "entity_path": {"type": "string", "description": "Knowledge base path of the entity"},
      },
      "required": ["match_type", "match_value", "entity_type", "entity_name"],
    },
  ),
  Tool(
    name="reclassify_emails",
    description="Re-run classification and priority scoring on every stored email",
    inputSchema={"type": "object", "properties": {}},
  ),
]
