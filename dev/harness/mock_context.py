"""
In-memory SkillContext for exercising a skill without the host process.

Data files live in a dict, state updates are merged the way the host
merges them, and emitted events are recorded in order. The returned
inspector exposes all of it to test assertions.

Usage:
    from dev.harness.mock_context import create_mock_context

    ctx, inspect = create_mock_context()
    await skill.hooks.on_load(ctx)
    assert inspect.get_event_names() == [...]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class MockContextOptions:
  initial_data: dict[str, str] = field(default_factory=dict)
  initial_state: dict[str, Any] = field(default_factory=dict)
  data_dir: str = "/mock/data"


@dataclass
class _Recorded:
  files: dict[str, str]
  state: dict[str, Any]
  writes: list[str] = field(default_factory=list)
  events: list[dict[str, Any]] = field(default_factory=list)
  logs: list[str] = field(default_factory=list)
  state_pushes: int = 0


class MockSkillContext:
  """Implements the SkillContext protocol over a _Recorded instance."""

  def __init__(self, recorded: _Recorded, data_dir: str) -> None:
    self._rec = recorded
    self.data_dir = data_dir

  async def read_data(self, filename: str) -> str:
    try:
      return self._rec.files[filename]
    except KeyError:
      raise FileNotFoundError(filename) from None

  async def write_data(self, filename: str, content: str) -> None:
    self._rec.files[filename] = content
    self._rec.writes.append(filename)

  def log(self, message: str) -> None:
    self._rec.logs.append(message)

  def get_state(self) -> Any:
    return self._rec.state

  def set_state(self, partial: dict[str, Any]) -> None:
    self._rec.state = {**self._rec.state, **partial}
    self._rec.state_pushes += 1

  def emit_event(self, event_name: str, data: Any) -> None:
    self._rec.events.append({"name": event_name, "data": data})


class MockInspector:
  """Read-only view of what a MockSkillContext has recorded."""

  def __init__(self, recorded: _Recorded) -> None:
    self._rec = recorded

  def get_data(self) -> dict[str, str]:
    return dict(self._rec.files)

  def get_data_writes(self) -> list[str]:
    """Filenames in write order, repeats included."""
    return list(self._rec.writes)

  def get_state(self) -> dict[str, Any]:
    return dict(self._rec.state)

  def get_state_push_count(self) -> int:
    return self._rec.state_pushes

  def get_emitted_events(self) -> list[dict[str, Any]]:
    return list(self._rec.events)

  def get_event_names(self) -> list[str]:
    return [e["name"] for e in self._rec.events]

  def get_logs(self) -> list[str]:
    return list(self._rec.logs)


def create_mock_context(
  options: MockContextOptions | None = None,
) -> tuple[MockSkillContext, MockInspector]:
  opts = options or MockContextOptions()
  recorded = _Recorded(files=dict(opts.initial_data), state=dict(opts.initial_state))
  return MockSkillContext(recorded, opts.data_dir), MockInspector(recorded)
