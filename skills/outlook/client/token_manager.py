"""
Access-token lifecycle for Microsoft Graph.

Exchanges the stored refresh token at the Microsoft identity platform,
caches the access token until shortly before expiry, and persists rotated
refresh tokens through the credential store. Concurrent callers that find
the token stale share a single in-flight exchange.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import aiohttp

from ..errors import ProviderError, TransportError, UnauthenticatedError
from ..state.types import OutlookTokens

if TYPE_CHECKING:
  from collections.abc import Callable

  from .credentials import CredentialStore

log = logging.getLogger("skill.outlook.token")

TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
SCOPES = "offline_access Mail.Read Mail.ReadWrite Mail.Send User.Read"
EXPIRY_MARGIN_S = 60
TOKEN_TIMEOUT = 10


class TokenManager:
  def __init__(
    self,
    credentials: CredentialStore,
    *,
    session: aiohttp.ClientSession | None = None,
    token_url: str | None = None,
    clock: Callable[[], float] = time.time,
    on_unauthenticated: Callable[[], None] | None = None,
  ) -> None:
    self._credentials = credentials
    self._session = session
    self._owns_session = session is None
    self._token_url = token_url
    self._clock = clock
    self._on_unauthenticated = on_unauthenticated

    self._access_token: str | None = None
    self._expires_at: float = 0
    self._refresh_token: str | None = None
    self._loaded = False
    self._inflight: asyncio.Future[str] | None = None
    self.refresh_count = 0

  # ------------------------------------------------------------------
  # Public API
  # ------------------------------------------------------------------

  async def get_valid_token(self) -> str:
    """Return a bearer token valid for at least EXPIRY_MARGIN_S more seconds."""
    if not self._loaded:
      await self._load_cache()
    if self._is_fresh():
      return self._access_token  # type: ignore[return-value]

    if self._inflight is None:
      self._inflight = asyncio.ensure_future(self._refresh())
      self._inflight.add_done_callback(self._clear_inflight)
    return await asyncio.shield(self._inflight)

  def invalidate(self) -> None:
    """Drop the cached access token (e.g. after a 401)."""
    self._access_token = None
    self._expires_at = 0

  async def close(self) -> None:
    if self._owns_session and self._session is not None and not self._session.closed:
      await self._session.close()
    self._session = None

  # ------------------------------------------------------------------
  # Internals
  # ------------------------------------------------------------------

  def _is_fresh(self) -> bool:
    return bool(self._access_token) and self._expires_at - self._clock() > EXPIRY_MARGIN_S

  def _clear_inflight(self, fut: asyncio.Future[str]) -> None:
    if self._inflight is fut:
      self._inflight = None
    # Mark the exception retrieved when nobody is left waiting on it.
    if not fut.cancelled():
      fut.exception()

  async def _load_cache(self) -> None:
    tokens = await self._credentials.load_tokens()
    if tokens is not None:
      self._access_token = tokens.access_token or None
      self._expires_at = tokens.expires_at
      self._refresh_token = tokens.refresh_token or None
    self._loaded = True

  def _get_session(self) -> aiohttp.ClientSession:
    if self._session is None or self._session.closed:
      self._session = aiohttp.ClientSession()
      self._owns_session = True
    return self._session

  async def _refresh(self) -> str:
    creds = await self._credentials.load_credentials()
    refresh_token = creds.refresh_token or self._refresh_token
    if not creds.client_id or not refresh_token:
      raise UnauthenticatedError("Outlook is not connected: no refresh token configured")

    form = {
      "client_id": creds.client_id,
      "grant_type": "refresh_token",
      "refresh_token": refresh_token,
      "scope": SCOPES,
    }
    if creds.client_secret:
      form["client_secret"] = creds.client_secret
    url = self._token_url or TOKEN_URL.format(tenant=creds.tenant_id or "common")

    self.refresh_count += 1
    log.debug("Refreshing Graph access token")
    try:
      async with self._get_session().post(
        url, data=form, timeout=aiohttp.ClientTimeout(total=TOKEN_TIMEOUT)
      ) as resp:
        status = resp.status
        try:
          payload: Any = await resp.json(content_type=None)
        except ValueError:
          payload = {"error_description": await resp.text()}
    except (TimeoutError, aiohttp.ClientError) as e:
      raise TransportError(f"Token refresh failed: {e}") from e

    if not isinstance(payload, dict):
      payload = {}

    if status >= 400:
      code = payload.get("error")
      description = payload.get("error_description") or code or "token request rejected"
      if code == "invalid_grant":
        await self._drop_tokens()
        raise UnauthenticatedError(f"Refresh token rejected: {description}")
      if status >= 500:
        raise TransportError(f"Token endpoint returned {status}")
      raise ProviderError(status, description, code)

    access_token = payload.get("access_token")
    if not access_token:
      raise ProviderError(status, "token response has no access_token")

    expires_in = float(payload.get("expires_in") or 3600)
    new_refresh = payload.get("refresh_token") or refresh_token
    if new_refresh != refresh_token:
      log.info("Refresh token rotated by provider")

    tokens = OutlookTokens(
      access_token=access_token,
      refresh_token=new_refresh,
      expires_at=self._clock() + expires_in,
      scope=payload.get("scope") or SCOPES,
    )
    await self._credentials.save_tokens(tokens)

    self._access_token = access_token
    self._expires_at = tokens.expires_at
    self._refresh_token = new_refresh
    return access_token

  async def _drop_tokens(self) -> None:
    self.invalidate()
    self._refresh_token = None
    try:
      await self._credentials.clear_tokens()
    except Exception:
      log.exception("Failed to clear persisted tokens")
    if self._on_unauthenticated is not None:
      self._on_unauthenticated()
