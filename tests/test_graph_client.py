from __future__ import annotations

import pytest
from fake_graph import graph_message

from skills.outlook.errors import CursorExpiredError, ProviderError, TransportError
from skills.outlook.state.types import EmailAddress


async def test_profile_and_folders(graph, client):
  assert await client.get_profile() == "me@example.com"
  folders = await client.list_folders()
  assert [f.display_name for f in folders] == ["Inbox", "Archive"]
  assert folders[0].unread_count == 1


async def test_message_pages_follow_next_link(graph, client):
  graph.seed(*(graph_message(f"m{i:03d}", minutes_ago=i) for i in range(150)))
  pages = [page async for page in client.iter_message_pages(1000)]
  assert [len(p.messages) for p in pages] == [100, 50]
  assert pages[0].messages[0].id == "m000"

  truncated = await client.fetch_messages(120)
  assert len(truncated) == 120


async def test_malformed_messages_are_skipped(graph, client):
  broken = graph_message("bad")
  del broken["receivedDateTime"]
  graph.seed(graph_message("good"), broken)
  pages = [page async for page in client.iter_message_pages(10)]
  assert [m.id for m in pages[0].messages] == ["good"]
  assert pages[0].skipped == 1


async def test_parsed_header_fields(graph, client):
  graph.seed(
    graph_message("m1", "Alice@Acme.com", "Order #42", preview="Please find", importance="high")
  )
  [header] = await client.fetch_messages(10)
  assert header.from_email == "alice@acme.com"
  assert header.from_name == "Alice"
  assert header.importance.value == "high"
  assert header.to[0].email == "me@example.com"
  assert header.received_at.tzinfo is not None


async def test_delta_round_returns_cursor_and_tombstones(graph, client):
  graph.seed(*(graph_message(f"m{i}", minutes_ago=i) for i in range(5)))
  initial = await client.delta_messages(None)
  assert len(initial.messages) == 5
  assert "$deltatoken" in initial.cursor or "%24deltatoken" in initial.cursor

  graph.add(graph_message("new"))
  graph.remove("m1")
  batch = await client.delta_messages(initial.cursor)
  assert [m.id for m in batch.messages] == ["new", "m1"]
  assert [m.removed for m in batch.messages] == [False, True]
  assert batch.cursor != initial.cursor


async def test_expired_cursor_raises(graph, client):
  initial = await client.delta_messages(None)
  graph.expired_cursors.add(initial.cursor.rsplit("=", 1)[1])
  with pytest.raises(CursorExpiredError) as exc:
    await client.delta_messages(initial.cursor)
  assert exc.value.status == 410
  assert exc.value.code == "SyncStateNotFound"


async def test_401_refreshes_token_once(graph, client):
  await client.get_profile()
  graph.revoke_tokens()
  assert await client.get_profile() == "me@example.com"
  assert len(graph.token_requests) == 2


async def test_429_honours_retry_after(graph, client):
  graph.fail_next(429, {"Retry-After": "7"})
  graph.fail_next(503)
  assert await client.get_profile() == "me@example.com"
  assert client.delays == [7.0, 1.0]


async def test_retry_after_is_capped(client):
  assert client.backoff_delay(1, "600") == 30.0
  assert client.backoff_delay(3) == 2.0
  assert client.backoff_delay(10) == 30.0


async def test_gives_up_after_max_attempts(graph, client):
  for _ in range(5):
    graph.fail_next(500)
  with pytest.raises(TransportError):
    await client.get_profile()
  assert len(client.delays) == 4


async def test_terminal_4xx_is_not_retried(graph, client):
  graph.fail_next(403, body={"error": {"code": "ErrorAccessDenied", "message": "denied"}})
  with pytest.raises(ProviderError) as exc:
    await client.get_profile()
  assert exc.value.status == 403
  assert exc.value.code == "ErrorAccessDenied"
  assert "denied" in exc.value.message
  assert client.delays == []


async def test_body_and_actions(graph, client):
  graph.seed(graph_message("AAMk+abc="))
  graph.bodies["AAMk+abc="] = {"contentType": "text", "content": "plain body"}

  body = await client.fetch_body("AAMk+abc=")
  assert body.content_type == "text"
  assert body.content == "plain body"

  await client.mark_as_read("AAMk+abc=")
  assert graph.patched == [("AAMk+abc=", {"isRead": True})]

  await client.send_email([EmailAddress(email="a@b.com")], [], "Hi", "<p>x</p>")
  await client.reply("AAMk+abc=", "<p>thanks</p>")
  sent, reply = graph.sent
  assert sent["message"]["toRecipients"][0]["emailAddress"]["address"] == "a@b.com"
  assert sent["message"]["body"]["contentType"] == "HTML"
  assert reply == {"reply_to": "AAMk+abc=", "comment": "<p>thanks</p>"}
