"""
Host event surface for sync progress.

Events are best-effort: a sink that raises is logged and ignored, the
durable record of a sync lives in the metadata store.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

log = logging.getLogger("skill.outlook.events")

SYNC_STARTED = "sync-started"
SYNC_PROGRESS = "sync-progress"
SYNC_DONE = "sync-done"
SYNC_ERROR = "sync-error"


@runtime_checkable
class EventSink(Protocol):
  """Anything with the SkillContext.emit_event signature."""

  def emit_event(self, event_name: str, data: Any) -> None: ...


class RecordingSink:
  """Keeps emitted events in memory. Used when no host sink is attached."""

  def __init__(self) -> None:
    self.events: list[dict[str, Any]] = []

  def emit_event(self, event_name: str, data: Any) -> None:
    self.events.append({"name": event_name, "data": data})

  def names(self) -> list[str]:
    return [e["name"] for e in self.events]


def emit(sink: EventSink | None, event_name: str, data: dict[str, Any] | None = None) -> None:
  if sink is None:
    return
  try:
    sink.emit_event(event_name, data or {})
  except Exception:
    log.warning("Dropped %s event", event_name, exc_info=True)
