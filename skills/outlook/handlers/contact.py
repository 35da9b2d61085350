"""
Contact rule tool handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as ModelValidationError

from ..helpers import ErrorCategory, ToolResult, format_rule, log_and_format_error
from ..state.types import Category, ContactRule, MatchType
from ..validation import ValidationError, opt_enum, opt_string, req_string

if TYPE_CHECKING:
  from ..runtime import OutlookRuntime


async def bootstrap_contacts(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    count = await rt.bootstrap_contacts(opt_string(args, "knowledge_base_path"))
    return ToolResult(content=f"Bootstrapped {count} contact rules.")
  except Exception as e:
    return log_and_format_error("bootstrap_contacts", e, ErrorCategory.CONTACT)


async def list_contact_rules(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    rules = await rt.store.list_contacts(opt_enum(args, "match_type", MatchType))
    if not rules:
      return ToolResult(content="No contact rules.")
    return ToolResult(content="\n".join(format_rule(r) for r in rules))
  except Exception as e:
    return log_and_format_error("list_contact_rules", e, ErrorCategory.CONTACT)


async def add_contact_rule(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    match_type = opt_enum(args, "match_type", MatchType)
    entity_type = opt_enum(args, "entity_type", Category)
    if match_type is None:
      raise ValidationError("Missing required parameter: match_type")
    if entity_type is None:
      raise ValidationError("Missing required parameter: entity_type")
    try:
      rule = ContactRule(
        match_type=match_type,
        match_value=req_string(args, "match_value"),
        entity_type=entity_type,
        entity_name=req_string(args, "entity_name"),
        entity_path=opt_string(args, "entity_path"),
      )
    except ModelValidationError as e:
      raise ValidationError(f"Invalid contact rule: {e.errors()[0]['msg']}") from e

    await rt.add_contact_rule(rule)
    return ToolResult(content=f"Saved rule {format_rule(rule)}")
  except Exception as e:
    return log_and_format_error("add_contact_rule", e, ErrorCategory.CONTACT)


async def reclassify_emails(rt: OutlookRuntime, args: dict[str, Any]) -> ToolResult:
  try:
    count = await rt.reclassify()
    return ToolResult(content=f"Reclassified {count} emails.")
  except Exception as e:
    return log_and_format_error("reclassify_emails", e, ErrorCategory.CONTACT)
