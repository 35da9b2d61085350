"""
Credential store backed by the skill context's data files.

config.json holds the app registration and the user's refresh token.
tokens.json caches the last token response. The token manager is the
only writer.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from pydantic import ValidationError

from ..state.types import OutlookCredentials, OutlookTokens

log = logging.getLogger("skill.outlook.credentials")

CONFIG_FILE = "config.json"
TOKENS_FILE = "tokens.json"


class CredentialStore(Protocol):
  async def load_credentials(self) -> OutlookCredentials: ...
  async def load_tokens(self) -> OutlookTokens | None: ...
  async def save_tokens(self, tokens: OutlookTokens) -> None: ...
  async def clear_tokens(self) -> None: ...


class ContextCredentialStore:
  """CredentialStore over ctx.read_data / ctx.write_data."""

  def __init__(self, ctx: Any) -> None:
    self._ctx = ctx

  async def _read_json(self, filename: str) -> dict[str, Any]:
    try:
      raw = await self._ctx.read_data(filename)
    except FileNotFoundError:
      return {}
    if not raw:
      return {}
    try:
      data = json.loads(raw)
    except json.JSONDecodeError:
      log.warning("Ignoring unreadable %s", filename)
      return {}
    return data if isinstance(data, dict) else {}

  async def load_credentials(self) -> OutlookCredentials:
    data = await self._read_json(CONFIG_FILE)
    try:
      return OutlookCredentials.model_validate(data)
    except ValidationError:
      log.warning("config.json does not match the expected shape")
      return OutlookCredentials()

  async def save_credentials(self, creds: OutlookCredentials) -> None:
    await self._ctx.write_data(CONFIG_FILE, creds.model_dump_json(indent=2, exclude_none=True))

  async def load_tokens(self) -> OutlookTokens | None:
    data = await self._read_json(TOKENS_FILE)
    if not data:
      return None
    try:
      return OutlookTokens.model_validate(data)
    except ValidationError:
      log.warning("tokens.json does not match the expected shape")
      return None

  async def save_tokens(self, tokens: OutlookTokens) -> None:
    await self._ctx.write_data(TOKENS_FILE, tokens.model_dump_json())
    # Keep config.json's refresh token current so a cold start never reuses a rotated one.
    creds = await self.load_credentials()
    if tokens.refresh_token and creds.refresh_token != tokens.refresh_token:
      await self.save_credentials(creds.model_copy(update={"refresh_token": tokens.refresh_token}))

  async def clear_tokens(self) -> None:
    await self._ctx.write_data(TOKENS_FILE, "{}")
    creds = await self.load_credentials()
    if creds.refresh_token:
      await self.save_credentials(creds.model_copy(update={"refresh_token": ""}))


class MemoryCredentialStore:
  """CredentialStore kept in memory. Used to validate credentials during setup."""

  def __init__(self, creds: OutlookCredentials, tokens: OutlookTokens | None = None) -> None:
    self.creds = creds
    self.tokens = tokens
    self.writes = 0

  async def load_credentials(self) -> OutlookCredentials:
    return self.creds

  async def load_tokens(self) -> OutlookTokens | None:
    return self.tokens

  async def save_tokens(self, tokens: OutlookTokens) -> None:
    self.writes += 1
    self.tokens = tokens
    if tokens.refresh_token:
      self.creds = self.creds.model_copy(update={"refresh_token": tokens.refresh_token})

  async def clear_tokens(self) -> None:
    self.writes += 1
    self.tokens = None
    self.creds = self.creds.model_copy(update={"refresh_token": ""})
