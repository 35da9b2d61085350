"""
Async HTTP client for the Microsoft Graph mail API.

Uses aiohttp with bearer tokens from the TokenManager. A 401 invalidates
the cached token and retries once; 429 and 5xx back off exponentially
(honouring Retry-After); 410 on a delta link surfaces as CursorExpiredError.
Pagination links are followed exactly as returned.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import aiohttp
from yarl import URL

from ..errors import (
  ClassifierInputError,
  CursorExpiredError,
  ProviderError,
  TransportError,
)
from ..state.types import MessageBody
from .parsers import MESSAGE_SELECT, parse_folder, parse_message

if TYPE_CHECKING:
  from collections.abc import AsyncIterator, Awaitable, Callable

  from ..state.types import EmailAddress, Folder, MessageHeader
  from .token_manager import TokenManager

log = logging.getLogger("skill.outlook.client")

GRAPH_BASE = "https://graph.microsoft.com/v1.0"
REQUEST_TIMEOUT = 30
PAGE_SIZE = 100

RETRY_BASE_S = 0.5
RETRY_CAP_S = 30.0
RETRY_JITTER = 0.2
MAX_ATTEMPTS = 5


@dataclass
class MessagePage:
  messages: list[MessageHeader] = field(default_factory=list)
  skipped: int = 0


@dataclass
class DeltaBatch:
  """All changes since a cursor, plus the deltaLink closing the batch."""

  messages: list[MessageHeader]
  cursor: str
  skipped: int = 0


def _parse_values(values: Any) -> MessagePage:
  page = MessagePage()
  if not isinstance(values, list):
    return page
  for raw in values:
    try:
      page.messages.append(parse_message(raw))
    except ClassifierInputError as e:
      log.warning("Skipping malformed message: %s", e)
      page.skipped += 1
  return page


def _error_details(payload: Any, fallback: str) -> tuple[str, str | None]:
  if isinstance(payload, dict):
    err = payload.get("error")
    if isinstance(err, dict):
      return err.get("message") or fallback, err.get("code")
    if isinstance(err, str):
      return payload.get("error_description") or err, err
  return fallback or "request failed", None


class GraphClient:
  """Async HTTP client for Microsoft Graph mail endpoints."""

  def __init__(
    self,
    tokens: TokenManager,
    *,
    base_url: str = GRAPH_BASE,
    session: aiohttp.ClientSession | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[float, float], float] = random.uniform,
  ) -> None:
    self._tokens = tokens
    self._base_url = base_url.rstrip("/")
    self._session = session
    self._owns_session = session is None
    self._sleep = sleep
    self._rand = rand

  @property
  def is_connected(self) -> bool:
    return self._session is not None and not self._session.closed

  async def connect(self) -> None:
    """Create the aiohttp session."""
    if self._session and not self._session.closed:
      return
    self._session = aiohttp.ClientSession(
      headers={"Accept": "application/json"},
      timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
    )
    self._owns_session = True

  async def close(self) -> None:
    """Close the aiohttp session."""
    if self._owns_session and self._session and not self._session.closed:
      await self._session.close()
    self._session = None

  # ------------------------------------------------------------------
  # Request plumbing
  # ------------------------------------------------------------------

  def _url(self, path: str) -> str:
    return f"{self._base_url}/{path.lstrip('/')}"

  def backoff_delay(self, attempt: int, retry_after: str | None = None) -> float:
    """Delay before retry number ``attempt`` (1-based)."""
    if retry_after:
      try:
        return min(max(float(retry_after), 0.0), RETRY_CAP_S)
      except ValueError:
        pass
    delay = min(RETRY_CAP_S, RETRY_BASE_S * (2 ** (attempt - 1)))
    return delay * self._rand(1 - RETRY_JITTER, 1 + RETRY_JITTER)

  async def _request(
    self,
    method: str,
    url: str,
    *,
    params: dict[str, str] | None = None,
    json_body: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
  ) -> Any:
    """Make a Graph request. Returns decoded JSON, or None for empty bodies."""
    if not self.is_connected:
      await self.connect()
    assert self._session is not None

    # Links handed back by Graph are already encoded; pass them through untouched.
    target = URL(url, encoded=True) if params is None else URL(url).with_query(params)
    auth_retried = False
    attempt = 0
    last_error = ""

    while True:
      token = await self._tokens.get_valid_token()
      req_headers = {"Authorization": f"Bearer {token}", **(headers or {})}
      retry_after: str | None = None
      try:
        async with self._session.request(
          method,
          target,
          json=json_body,
          headers=req_headers,
          timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
        ) as resp:
          status = resp.status
          text = await resp.text()

          if status == 401 and not auth_retried:
            log.info("Graph returned 401, refreshing token and retrying once")
            auth_retried = True
            self._tokens.invalidate()
            continue

          if status == 429 or status >= 500:
            retry_after = resp.headers.get("Retry-After")
            last_error = f"HTTP {status}"
          elif status >= 400:
            payload = _try_json(text)
            message, code = _error_details(payload, text)
            if status == 410:
              raise CursorExpiredError(message, code)
            raise ProviderError(status, message, code)
          else:
            return _try_json(text) if text else None

      except (TimeoutError, aiohttp.ClientError) as e:
        last_error = str(e) or e.__class__.__name__

      attempt += 1
      if attempt >= MAX_ATTEMPTS:
        raise TransportError(f"{method} {target.path} failed after {MAX_ATTEMPTS} attempts: {last_error}")
      delay = self.backoff_delay(attempt, retry_after)
      log.warning(
        "%s %s failed (%s), retry %d/%d in %.1fs",
        method,
        target.path,
        last_error,
        attempt,
        MAX_ATTEMPTS - 1,
        delay,
      )
      await self._sleep(delay)

  # ------------------------------------------------------------------
  # Folders & profile
  # ------------------------------------------------------------------

  async def list_folders(self) -> list[Folder]:
    folders: list[Folder] = []
    url: str | None = self._url("me/mailFolders")
    params: dict[str, str] | None = {"$top": str(PAGE_SIZE)}
    while url:
      data = await self._request("GET", url, params=params) or {}
      folders.extend(parse_folder(f) for f in data.get("value", []) if f.get("id"))
      url = data.get("@odata.nextLink")
      params = None
    return folders

  async def get_profile(self) -> str | None:
    """Return the mailbox address of the signed-in user."""
    data = await self._request(
      "GET", self._url("me"), params={"$select": "mail,userPrincipalName,displayName"}
    )
    if not isinstance(data, dict):
      return None
    return data.get("mail") or data.get("userPrincipalName")

  # ------------------------------------------------------------------
  # Messages
  # ------------------------------------------------------------------

  async def iter_message_pages(
    self, max_count: int, filter: str | None = None
  ) -> AsyncIterator[MessagePage]:
    """Yield header pages, newest first, until max_count messages were seen."""
    query = {
      "$top": str(min(PAGE_SIZE, max(max_count, 1))),
      "$select": MESSAGE_SELECT,
      "$orderby": "receivedDateTime desc",
    }
    if filter:
      query["$filter"] = filter
    params: dict[str, str] | None = query

    url: str | None = self._url("me/messages")
    seen = 0
    while url and seen < max_count:
      data = await self._request("GET", url, params=params) or {}
      values = data.get("value", [])
      page = _parse_values(values[: max_count - seen])
      seen += min(len(values), max_count - seen)
      yield page
      url = data.get("@odata.nextLink")
      params = None

  async def fetch_messages(self, max_count: int, filter: str | None = None) -> list[MessageHeader]:
    messages: list[MessageHeader] = []
    async for page in self.iter_message_pages(max_count, filter):
      messages.extend(page.messages)
    return messages

  async def delta_messages(self, cursor: str | None = None) -> DeltaBatch:
    """Follow a delta round to its deltaLink.

    With no cursor the delta is initialised from scratch. The returned
    cursor is the deltaLink on the final page.
    """
    if cursor:
      url: str | None = cursor
      params: dict[str, str] | None = None
    else:
      url = self._url("me/messages/delta")
      params = {"$select": MESSAGE_SELECT}

    messages: list[MessageHeader] = []
    skipped = 0
    while url:
      data = await self._request(
        "GET", url, params=params, headers={"Prefer": f"odata.maxpagesize={PAGE_SIZE}"}
      ) or {}
      page = _parse_values(data.get("value", []))
      messages.extend(page.messages)
      skipped += page.skipped

      delta_link = data.get("@odata.deltaLink")
      if delta_link:
        return DeltaBatch(messages=messages, cursor=delta_link, skipped=skipped)
      url = data.get("@odata.nextLink")
      params = None

    raise ProviderError(200, "delta response ended without a deltaLink")

  async def fetch_body(self, message_id: str) -> MessageBody:
    data = await self._request(
      "GET", self._url(f"me/messages/{quote(message_id, safe='')}"), params={"$select": "body"}
    ) or {}
    body = data.get("body") or {}
    content_type = "text" if str(body.get("contentType", "")).lower() == "text" else "html"
    return MessageBody(content_type=content_type, content=body.get("content") or "")

  async def mark_as_read(self, message_id: str) -> None:
    await self._request(
      "PATCH", self._url(f"me/messages/{quote(message_id, safe='')}"), json_body={"isRead": True}
    )

  async def send_email(
    self,
    to: list[EmailAddress],
    cc: list[EmailAddress],
    subject: str,
    html: str,
  ) -> None:
    payload = {
      "message": {
        "subject": subject,
        "body": {"contentType": "HTML", "content": html},
        "toRecipients": [_recipient(a) for a in to],
        "ccRecipients": [_recipient(a) for a in cc],
      }
    }
    await self._request("POST", self._url("me/sendMail"), json_body=payload)

  async def reply(self, message_id: str, comment_html: str) -> None:
    await self._request(
      "POST",
      self._url(f"me/messages/{quote(message_id, safe='')}/reply"),
      json_body={"comment": comment_html},
    )


def _recipient(addr: EmailAddress) -> dict[str, Any]:
  return {"emailAddress": {"name": addr.name or addr.email, "address": addr.email}}


def _try_json(text: str) -> Any:
  try:
    return json.loads(text)
  except ValueError:
    return {"raw": text}
