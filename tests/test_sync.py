from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import aiosqlite
import pytest
from fake_graph import graph_message

from skills.outlook.db import queries
from skills.outlook.errors import (
  ClassifierInputError,
  ProviderError,
  StorageError,
  SyncInProgressError,
)
from skills.outlook.state import events
from skills.outlook.state.types import (
  SYNC_DELTA_CURSOR,
  SYNC_INITIAL_DONE,
  SYNC_LAST_AT,
  SYNC_LAST_ATTEMPT_AT,
  SYNC_LAST_ERROR,
  Category,
  ContactRule,
  MatchType,
  MessageHeader,
)
from skills.outlook.sync.orchestrator import SyncOrchestrator, build_message

ACME = ContactRule(
  match_type=MatchType.DOMAIN,
  match_value="acme.com",
  entity_type=Category.CLIENT,
  entity_name="Acme",
  entity_path="3_Clients/by_industry/retail/Acme",
)


@pytest.fixture
def orchestrator(client, store, sink):
  return SyncOrchestrator(client, store, sink)


def seed_mailbox(graph, n: int = 4) -> None:
  graph.seed(
    graph_message("acme-1", "procurement@acme.com", "Order #42", preview="Please find"),
    *(graph_message(f"m{i}", f"person{i}@example.org", minutes_ago=20 + i) for i in range(n - 1)),
  )


async def test_initial_sync_stores_classified_headers(graph, store, orchestrator, sink):
  await store.upsert_contact(ACME)
  seed_mailbox(graph)

  result = await orchestrator.run_initial_sync()

  assert result.mode == "initial"
  assert result.upserted == 4
  assert result.deleted == 0
  assert await store.count_messages() == 4

  acme = await store.get_message("acme-1")
  assert acme.category == Category.CLIENT
  assert acme.entity_name == "Acme"
  assert acme.priority_score == 95
  assert acme.action_required is True

  state = await store.get_all_sync_state()
  assert state[SYNC_INITIAL_DONE] == "true"
  assert state[SYNC_DELTA_CURSOR]
  assert SYNC_LAST_AT in state
  assert SYNC_LAST_ERROR not in state
  assert [f.id for f in await store.list_folders()] == ["archive", "inbox"]

  assert sink.names()[0] == events.SYNC_STARTED
  assert sink.events[0]["data"] == {"mode": "initial"}
  assert sink.names()[-1] == events.SYNC_PROGRESS
  assert await orchestrator.is_initial_sync_done()


async def test_initial_progress_has_no_total(graph, orchestrator, sink):
  graph.seed(*(graph_message(f"m{i:03d}", minutes_ago=i) for i in range(120)))
  await orchestrator.run_initial_sync()

  progress = [e["data"] for e in sink.events if e["name"] == events.SYNC_PROGRESS]
  assert [p["processed"] for p in progress] == [100, 120]
  assert all("total" not in p for p in progress)


async def test_initial_sync_respects_ceiling(graph, client, store, sink):
  graph.seed(*(graph_message(f"m{i:03d}", minutes_ago=i) for i in range(30)))
  result = await SyncOrchestrator(client, store, sink, max_initial=10).run_initial_sync()
  # Headers past the ceiling still arrive through the delta round.
  assert result.upserted == 30
  assert await store.count_messages() == 30


async def test_change_before_delta_round_survives_initial_sync(
  graph, client, store, orchestrator, monkeypatch
):
  graph.seed(graph_message("a1"), graph_message("a2", minutes_ago=30))
  delta_messages = client.delta_messages

  async def read_remotely_then_delta(cursor):
    if cursor is None:
      graph.messages["a1"]["isRead"] = True
    return await delta_messages(cursor)

  monkeypatch.setattr(client, "delta_messages", read_remotely_then_delta)
  result = await orchestrator.run_initial_sync()

  assert result.upserted == 2
  assert (await store.get_message("a1")).is_read is True

  await orchestrator.run_incremental_sync()
  assert (await store.get_message("a1")).is_read is True


async def test_incremental_applies_changes_and_tombstones(graph, store, orchestrator, sink):
  seed_mailbox(graph)
  await orchestrator.run_initial_sync()
  old_cursor = await store.get_sync_state(SYNC_DELTA_CURSOR)
  sink.events.clear()

  graph.add(graph_message("new", "cfo@example-corp.com", "pricing for your demo"))
  updated = dict(graph.messages["m0"], isRead=True)
  graph.add(updated)
  graph.remove("m1")
  graph.remove("never-seen")

  result = await orchestrator.run_incremental_sync()

  assert result.mode == "incremental"
  assert result.upserted == 2
  assert result.deleted == 1
  assert result.count == 3
  assert await store.get_message("m1") is None
  assert (await store.get_message("m0")).is_read is True
  assert (await store.get_message("new")).category == Category.LEAD
  assert await store.get_sync_state(SYNC_DELTA_CURSOR) != old_cursor

  assert sink.events[0] == {"name": events.SYNC_STARTED, "data": {"mode": "incremental"}}


async def test_incremental_without_cursor_runs_initial(graph, orchestrator):
  seed_mailbox(graph)
  result = await orchestrator.run_incremental_sync()
  assert result.mode == "initial"
  assert result.upserted == 4


async def test_expired_cursor_falls_back_to_initial_sync(graph, store, orchestrator):
  seed_mailbox(graph)
  await orchestrator.run_initial_sync()
  await store.set_archived("m0")
  old_cursor = await store.get_sync_state(SYNC_DELTA_CURSOR)
  graph.expired_cursors.add(old_cursor.rsplit("=", 1)[1])
  graph.seed(graph_message("late", minutes_ago=1))

  result = await orchestrator.run_incremental_sync()

  assert result.mode == "initial"
  new_cursor = await store.get_sync_state(SYNC_DELTA_CURSOR)
  assert new_cursor and new_cursor != old_cursor
  assert await store.get_sync_state(SYNC_INITIAL_DONE) == "true"
  assert await store.count_messages() == 5
  assert (await store.get_message("m0")).archived_locally is True


async def test_failed_batch_leaves_cursor(graph, store, orchestrator):
  seed_mailbox(graph)
  await orchestrator.run_initial_sync()
  cursor = await store.get_sync_state(SYNC_DELTA_CURSOR)
  last_ok = await store.get_sync_state(SYNC_LAST_AT)

  graph.add(graph_message("new"))
  graph.fail_next(403, body={"error": {"code": "ErrorAccessDenied", "message": "denied"}})
  with pytest.raises(ProviderError):
    await orchestrator.run_incremental_sync()

  state = await store.get_all_sync_state()
  assert state[SYNC_DELTA_CURSOR] == cursor
  assert state[SYNC_LAST_AT] == last_ok
  assert "denied" in state[SYNC_LAST_ERROR]
  assert SYNC_LAST_ATTEMPT_AT in state
  assert await store.get_message("new") is None

  result = await orchestrator.run_incremental_sync()
  assert result.upserted == 1
  assert SYNC_LAST_ERROR not in await store.get_all_sync_state()


def failing_upsert(monkeypatch, fail_on: int, action):
  """Replace queries.upsert_email so that call number ``fail_on`` runs ``action``."""
  upsert_email = queries.upsert_email
  calls = 0

  async def upsert(db, msg):
    nonlocal calls
    calls += 1
    if calls == fail_on:
      await action()
    await upsert_email(db, msg)

  monkeypatch.setattr(queries, "upsert_email", upsert)


async def test_storage_error_mid_batch_rolls_back(graph, store, orchestrator, monkeypatch):
  seed_mailbox(graph)
  await orchestrator.run_initial_sync()
  cursor = await store.get_sync_state(SYNC_DELTA_CURSOR)

  async def disk_error():
    raise aiosqlite.OperationalError("disk I/O error")

  graph.add(graph_message("n1"))
  graph.add(graph_message("n2"))
  failing_upsert(monkeypatch, 2, disk_error)
  with pytest.raises(StorageError):
    await orchestrator.run_incremental_sync()

  assert await store.get_sync_state(SYNC_DELTA_CURSOR) == cursor
  assert await store.get_message("n1") is None
  assert await store.get_message("n2") is None
  assert "disk I/O error" in await store.get_sync_state(SYNC_LAST_ERROR)


async def test_cancelled_batch_rolls_back(graph, store, orchestrator, monkeypatch):
  seed_mailbox(graph)
  await orchestrator.run_initial_sync()
  cursor = await store.get_sync_state(SYNC_DELTA_CURSOR)

  reached = asyncio.Event()

  async def stall():
    reached.set()
    await asyncio.Event().wait()

  graph.add(graph_message("n1"))
  graph.add(graph_message("n2"))
  failing_upsert(monkeypatch, 2, stall)
  task = asyncio.create_task(orchestrator.run_incremental_sync())
  await asyncio.wait_for(reached.wait(), 5)
  task.cancel()
  with pytest.raises(asyncio.CancelledError):
    await task

  assert await store.get_sync_state(SYNC_DELTA_CURSOR) == cursor
  assert await store.get_message("n1") is None
  assert await store.get_message("n2") is None

  monkeypatch.undo()
  acme = await store.get_message("acme-1")
  await store.upsert_message(acme)
  assert await store.get_message("acme-1") == acme


async def test_malformed_headers_are_counted_not_stored(graph, store, orchestrator):
  broken = graph_message("broken")
  del broken["receivedDateTime"]
  graph.seed(graph_message("ok"), broken)
  result = await orchestrator.run_initial_sync()
  assert result.upserted == 1
  assert result.skipped == 1
  assert await store.count_messages() == 1
  assert await store.get_message("broken") is None


async def test_reclassify_applies_new_rules(graph, store, orchestrator):
  seed_mailbox(graph)
  await orchestrator.run_initial_sync()
  await store.set_archived("acme-1")
  assert (await store.get_message("acme-1")).category == Category.UNKNOWN

  await store.upsert_contact(ACME)
  assert await orchestrator.reclassify_all() == 4

  acme = await store.get_message("acme-1")
  assert acme.category == Category.CLIENT
  assert acme.archived_locally is True


async def test_second_sync_is_rejected_while_one_runs(graph, store, orchestrator):
  seed_mailbox(graph)
  graph.token_delay = 0.1
  first = asyncio.create_task(orchestrator.run_initial_sync())
  await asyncio.sleep(0.02)
  with pytest.raises(SyncInProgressError):
    await orchestrator.run_incremental_sync()
  await first


def test_build_message_rejects_header_without_date(rules):
  with pytest.raises(ClassifierInputError, match="no receivedDateTime"):
    build_message(MessageHeader(id="x", from_email="a@b.com"), rules, datetime.now(UTC))
