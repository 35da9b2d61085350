from __future__ import annotations

import asyncio
import json

import pytest

from dev.harness.mock_context import MockContextOptions, create_mock_context
from skills.outlook.client.credentials import ContextCredentialStore, MemoryCredentialStore
from skills.outlook.client.token_manager import SCOPES, TokenManager
from skills.outlook.errors import ProviderError, TransportError, UnauthenticatedError
from skills.outlook.state.types import OutlookTokens


class Clock:
  def __init__(self, now: float = 1_000_000.0) -> None:
    self.now = now

  def __call__(self) -> float:
    return self.now


async def test_token_is_cached_until_near_expiry(graph, creds):
  clock = Clock()
  store = MemoryCredentialStore(creds)
  manager = TokenManager(store, token_url=graph.token_url, clock=clock)
  try:
    first = await manager.get_valid_token()
    assert await manager.get_valid_token() == first
    assert len(graph.token_requests) == 1

    clock.now += 3600 - 59
    second = await manager.get_valid_token()
    assert second != first
    assert len(graph.token_requests) == 2
  finally:
    await manager.close()

  form = graph.token_requests[0]
  assert form["grant_type"] == "refresh_token"
  assert form["refresh_token"] == "rt-0"
  assert form["client_id"] == "app-id"
  assert form["scope"] == SCOPES
  assert "client_secret" not in form


async def test_concurrent_callers_share_one_refresh(graph, creds):
  graph.token_delay = 0.05
  manager = TokenManager(MemoryCredentialStore(creds), token_url=graph.token_url)
  try:
    results = await asyncio.gather(*(manager.get_valid_token() for _ in range(5)))
  finally:
    await manager.close()
  assert len(set(results)) == 1
  assert len(graph.token_requests) == 1
  assert manager.refresh_count == 1


async def test_cached_tokens_are_used_on_start(graph, creds):
  clock = Clock()
  cached = OutlookTokens(access_token="cached", refresh_token="rt-0", expires_at=clock.now + 600)
  manager = TokenManager(MemoryCredentialStore(creds, cached), token_url=graph.token_url, clock=clock)
  try:
    assert await manager.get_valid_token() == "cached"
  finally:
    await manager.close()
  assert graph.token_requests == []


async def test_rotated_refresh_token_is_persisted_and_used_on_cold_start(graph, creds):
  graph.rotate_to = "rt-1"
  ctx, inspect = create_mock_context(
    MockContextOptions(initial_data={"config.json": creds.model_dump_json()})
  )
  manager = TokenManager(ContextCredentialStore(ctx), token_url=graph.token_url)
  try:
    await manager.get_valid_token()
  finally:
    await manager.close()

  assert "tokens.json" in inspect.get_data_writes()
  assert json.loads(inspect.get_data()["config.json"])["refresh_token"] == "rt-1"

  # Cold start: a new manager over the same data files, cache expired.
  data = json.loads(inspect.get_data()["tokens.json"])
  data["expires_at"] = 0
  await ctx.write_data("tokens.json", json.dumps(data))
  graph.rotate_to = None
  cold = TokenManager(ContextCredentialStore(ctx), token_url=graph.token_url)
  try:
    await cold.get_valid_token()
  finally:
    await cold.close()
  assert graph.token_requests[-1]["refresh_token"] == "rt-1"


async def test_invalid_grant_clears_tokens_and_raises(graph, creds):
  graph.token_error = (400, {"error": "invalid_grant", "error_description": "AADSTS70008: expired"})
  store = MemoryCredentialStore(creds)
  lost = []
  manager = TokenManager(store, token_url=graph.token_url, on_unauthenticated=lambda: lost.append(1))
  try:
    with pytest.raises(UnauthenticatedError):
      await manager.get_valid_token()
    # Nothing left to refresh with.
    with pytest.raises(UnauthenticatedError):
      await manager.get_valid_token()
  finally:
    await manager.close()
  assert lost == [1]
  assert store.creds.refresh_token == ""
  assert store.tokens is None
  assert len(graph.token_requests) == 1


async def test_client_secret_is_sent_when_configured(graph, creds):
  store = MemoryCredentialStore(creds.model_copy(update={"client_secret": "shh"}))
  manager = TokenManager(store, token_url=graph.token_url)
  try:
    await manager.get_valid_token()
  finally:
    await manager.close()
  assert graph.token_requests[0]["client_secret"] == "shh"


async def test_other_token_errors(graph, creds):
  manager = TokenManager(MemoryCredentialStore(creds), token_url=graph.token_url)
  try:
    graph.token_error = (400, {"error": "invalid_client", "error_description": "bad app"})
    with pytest.raises(ProviderError) as exc:
      await manager.get_valid_token()
    assert exc.value.status == 400
    assert exc.value.code == "invalid_client"

    graph.token_error = (503, {"error": "temporarily_unavailable"})
    with pytest.raises(TransportError):
      await manager.get_valid_token()
  finally:
    await manager.close()


async def test_missing_refresh_token_is_unauthenticated(graph, creds):
  store = MemoryCredentialStore(creds.model_copy(update={"refresh_token": ""}))
  manager = TokenManager(store, token_url=graph.token_url)
  with pytest.raises(UnauthenticatedError):
    await manager.get_valid_token()
  await manager.close()
  assert graph.token_requests == []
