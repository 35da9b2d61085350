from __future__ import annotations

import json
import os
from datetime import UTC, datetime

import pytest
from aiohttp.test_utils import TestServer
from fake_graph import FakeGraph

from dev.harness.mock_context import MockContextOptions, create_mock_context
from skills.outlook.classify import ContactRuleSet
from skills.outlook.client.credentials import MemoryCredentialStore
from skills.outlook.client.graph_client import GraphClient
from skills.outlook.client.token_manager import TokenManager
from skills.outlook.db.store import MetadataStore
from skills.outlook.state.events import RecordingSink
from skills.outlook.state.types import Category, ContactRule, MatchType, OutlookCredentials

NOW = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)


@pytest.fixture
async def graph():
  fake = FakeGraph()
  server = TestServer(fake.app())
  await server.start_server()
  fake.base_url = str(server.make_url("/v1.0"))
  fake.token_url = str(server.make_url("/token"))
  yield fake
  await server.close()


@pytest.fixture
def creds() -> OutlookCredentials:
  return OutlookCredentials(client_id="app-id", tenant_id="contoso", refresh_token="rt-0")


@pytest.fixture
async def tokens(graph, creds):
  manager = TokenManager(MemoryCredentialStore(creds), token_url=graph.token_url)
  yield manager
  await manager.close()


@pytest.fixture
async def client(graph, tokens):
  delays: list[float] = []

  async def fake_sleep(delay: float) -> None:
    delays.append(delay)

  c = GraphClient(tokens, base_url=graph.base_url, sleep=fake_sleep, rand=lambda lo, hi: 1.0)
  c.delays = delays
  yield c
  await c.close()


@pytest.fixture
async def store(tmp_path):
  s = MetadataStore(str(tmp_path / "emails.db"))
  await s.open()
  yield s
  await s.close()


@pytest.fixture
def sink() -> RecordingSink:
  return RecordingSink()


@pytest.fixture
def rules() -> ContactRuleSet:
  return ContactRuleSet(
    [
      ContactRule(
        match_type=MatchType.DOMAIN,
        match_value="linkedin.com",
        entity_type=Category.NOISE,
        entity_name="Noise",
      ),
      ContactRule(
        match_type=MatchType.DOMAIN,
        match_value="acme.com",
        entity_type=Category.CLIENT,
        entity_name="Acme",
        entity_path="3_Clients/by_industry/retail/Acme",
      ),
      ContactRule(
        match_type=MatchType.EMAIL,
        match_value="jane@partner.io",
        entity_type=Category.DEAL,
        entity_name="Partner deal",
      ),
      ContactRule(
        match_type=MatchType.NOISE_DOMAIN,
        match_value="sendgrid.net",
        entity_type=Category.NOISE,
        entity_name="Noise",
      ),
    ]
  )


@pytest.fixture
def knowledge_base(tmp_path) -> str:
  root = tmp_path / "kb"
  for industry, client in [("retail", "Acme Corp"), ("finance", "Big-Bank"), ("finance", ".hidden")]:
    os.makedirs(root / "3_Clients" / "by_industry" / industry / client)
  return str(root)


@pytest.fixture
def mock_ctx(tmp_path, graph, creds):
  ctx, inspector = create_mock_context(
    MockContextOptions(
      initial_data={"config.json": json.dumps(creds.model_dump())},
      data_dir=str(tmp_path / "data"),
    )
  )
  return ctx, inspector
