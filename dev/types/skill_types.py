"""
Host skill types (Pydantic v2).

The contract between a skill package and the host process that loads it:
tool definitions, the context object handed to every lifecycle hook, and
the SkillDefinition each skill exports.

Usage:
    from dev.types.skill_types import SkillDefinition, SkillContext, SkillTool
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from dev.types.setup_types import SetupResult, SetupStep


# ---------------------------------------------------------------------------
# Tool Definition & Result
# ---------------------------------------------------------------------------


class ToolDefinition(BaseModel):
    """Schema for an AI-callable tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Tool name (snake_case, unique per skill)")
    description: str = Field(description="Human-readable description")
    parameters: dict[str, Any] = Field(
        description="JSON Schema for tool parameters",
        default_factory=lambda: {"type": "object", "properties": {}},
    )


class ToolResult(BaseModel):
    """Result returned by a tool's execute function."""

    content: str
    is_error: bool = False


class SkillTool(BaseModel):
    """A tool the skill exposes to the AI."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    definition: ToolDefinition
    execute: Callable[..., Awaitable[ToolResult]] = Field(
        description="Async function that executes the tool"
    )


# ---------------------------------------------------------------------------
# Skill Context (Protocol, passed to every hook)
# ---------------------------------------------------------------------------


@runtime_checkable
class SkillContext(Protocol):
    """Context object passed to skill lifecycle hooks.

    ``read_data``/``write_data`` address files in the skill's private data
    directory; ``emit_event`` forwards named events to the host UI.
    """

    data_dir: str

    async def read_data(self, filename: str) -> str: ...
    async def write_data(self, filename: str, content: str) -> None: ...
    def log(self, message: str) -> None: ...
    def get_state(self) -> Any: ...
    def set_state(self, partial: dict[str, Any]) -> None: ...
    def emit_event(self, event_name: str, data: Any) -> None: ...


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------

LoadHook = Callable[[SkillContext], Awaitable[None]]
UnloadHook = Callable[[SkillContext], Awaitable[None]]
StatusHook = Callable[[SkillContext], Awaitable[dict[str, Any]]]
DisconnectHook = Callable[[SkillContext], Awaitable[None]]

SetupStartHandler = Callable[[SkillContext], Awaitable[SetupStep]]
SetupSubmitHandler = Callable[[SkillContext, str, dict[str, Any]], Awaitable[SetupResult]]
SetupCancelHandler = Callable[[SkillContext], Awaitable[None]]


class SkillHooks(BaseModel):
    """Lifecycle hooks for a skill."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    on_load: Optional[LoadHook] = None
    on_unload: Optional[UnloadHook] = None
    on_status: StatusHook = Field(description="Returns current skill status information")
    on_disconnect: Optional[DisconnectHook] = None
    on_setup_start: Optional[SetupStartHandler] = None
    on_setup_submit: Optional[SetupSubmitHandler] = None
    on_setup_cancel: Optional[SetupCancelHandler] = None


# ---------------------------------------------------------------------------
# Skill Definition (the main export from skill.py)
# ---------------------------------------------------------------------------


class SkillDefinition(BaseModel):
    """Top-level skill definition: the `skill` object exported by skill.py."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(description="Skill name (lowercase-hyphens, matches directory)")
    description: str = Field(description="Brief description")
    version: str = Field(default="1.0.0", description="Semver version string")
    hooks: SkillHooks | None = None
    tools: list[SkillTool] = Field(default_factory=list)
    has_setup: bool = Field(
        default=False,
        description="Whether this skill has an interactive setup flow",
    )
    has_disconnect: bool = Field(
        default=False,
        description="Whether the host should offer a disconnect action",
    )
