"""
Outlook SkillDefinition: wires setup, tools, and lifecycle hooks
into the host skill protocol.

build_skill() returns a fresh definition whose hooks and tools share one
runtime slot; the module-level ``skill`` is what the host imports.

Usage:
    from skills.outlook.skill import skill
"""

from __future__ import annotations

import logging
from typing import Any

from dev.types.skill_types import (
  SkillDefinition,
  SkillHooks,
  SkillTool,
  ToolDefinition,
)
from dev.types.skill_types import (
  ToolResult as SkillToolResult,
)

from .handlers import dispatch_tool
from .runtime import OutlookRuntime
from .setup import SetupFlow
from .tools import ALL_TOOLS

log = logging.getLogger("skill.outlook.skill")


class _RuntimeSlot:
  """Holds the runtime between on_load and on_unload."""

  def __init__(self) -> None:
    self.runtime: OutlookRuntime | None = None


def _convert_tools(slot: _RuntimeSlot) -> list[SkillTool]:
  """Convert MCP Tool definitions to SkillTool objects."""

  def make_execute(tool_name: str):
    async def execute(args: dict[str, Any]) -> SkillToolResult:
      result = await dispatch_tool(slot.runtime, tool_name, args)
      return SkillToolResult(content=result.content, is_error=result.is_error)

    return execute

  skill_tools: list[SkillTool] = []
  for mcp_tool in ALL_TOOLS:
    schema = mcp_tool.inputSchema if isinstance(mcp_tool.inputSchema, dict) else {}
    definition = ToolDefinition(
      name=mcp_tool.name,
      description=mcp_tool.description or "",
      parameters=schema,
    )
    skill_tools.append(SkillTool(definition=definition, execute=make_execute(mcp_tool.name)))
  return skill_tools


def build_skill(**runtime_options: Any) -> SkillDefinition:
  """Build the Outlook skill. ``runtime_options`` are passed to OutlookRuntime."""
  slot = _RuntimeSlot()
  setup = SetupFlow(token_url=runtime_options.get("token_url"))

  async def on_load(ctx: Any) -> None:
    if slot.runtime is not None:
      await slot.runtime.stop()
      slot.runtime = None
    runtime = OutlookRuntime(ctx, **runtime_options)
    if not await runtime.start():
      await runtime.stop()
      return
    slot.runtime = runtime
    log.info("Outlook skill loaded")

  async def on_unload(ctx: Any) -> None:
    runtime, slot.runtime = slot.runtime, None
    if runtime is not None:
      await runtime.stop()
    log.info("Outlook skill unloaded")

  async def on_status(ctx: Any) -> dict[str, Any]:
    if slot.runtime is None:
      return {"connection_status": "disconnected", "is_initialized": False}
    return await slot.runtime.status()

  async def on_disconnect(ctx: Any) -> None:
    runtime, slot.runtime = slot.runtime, None
    if runtime is None:
      runtime = OutlookRuntime(ctx, **runtime_options)
    await runtime.disconnect()
    log.info("Outlook disconnected, stored tokens cleared")

  return SkillDefinition(
    name="outlook",
    description=(
      "Outlook mailbox sync: classifies incoming email against your client and vendor "
      "contacts, scores priority, and keeps a local searchable index."
    ),
    version="1.0.0",
    has_setup=True,
    has_disconnect=True,
    tools=_convert_tools(slot),
    hooks=SkillHooks(
      on_load=on_load,
      on_unload=on_unload,
      on_status=on_status,
      on_disconnect=on_disconnect,
      on_setup_start=setup.on_setup_start,
      on_setup_submit=setup.on_setup_submit,
      on_setup_cancel=setup.on_setup_cancel,
    ),
  )


skill = build_skill()
