"""
Outlook runtime supervisor.

Owns every long-lived piece of the skill (credentials, token manager,
Graph client, metadata store, orchestrator, worker, and in-process state)
and hands them to each other by reference. One runtime exists per loaded
skill; tool handlers receive it explicitly.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .client.credentials import ContextCredentialStore
from .client.graph_client import GRAPH_BASE, GraphClient
from .client.token_manager import TokenManager
from .contacts import bootstrap_contacts
from .db.store import MetadataStore, default_db_path
from .errors import OutlookError, StorageError, UnauthenticatedError
from .state.store import StateStore
from .state.sync import HostStateSync
from .state.types import (
  SYNC_INITIAL_DONE,
  SYNC_LAST_AT,
  SYNC_LAST_ATTEMPT_AT,
  SYNC_LAST_ERROR,
  ContactRule,
  EmailAddress,
)
from .sync.orchestrator import SyncOrchestrator
from .sync.worker import BackgroundWorker

if TYPE_CHECKING:
  import aiohttp

  from .state.types import MessageBody
  from .sync.orchestrator import SyncResult

log = logging.getLogger("skill.outlook.runtime")


class OutlookRuntime:
  def __init__(
    self,
    ctx: Any,
    *,
    db_path: str | None = None,
    token_url: str | None = None,
    graph_base: str = GRAPH_BASE,
    session: aiohttp.ClientSession | None = None,
    worker_options: dict[str, float] | None = None,
  ) -> None:
    self.ctx = ctx
    self.state = StateStore()
    self.credentials = ContextCredentialStore(ctx)
    self.tokens = TokenManager(
      self.credentials,
      session=session,
      token_url=token_url,
      on_unauthenticated=self._on_unauthenticated,
    )
    self.client = GraphClient(self.tokens, base_url=graph_base, session=session)
    self.store = MetadataStore(db_path or default_db_path(getattr(ctx, "data_dir", None)))
    self.orchestrator = SyncOrchestrator(self.client, self.store, ctx)
    self.worker = BackgroundWorker(
      self.orchestrator, self.store, ctx, self.state, **(worker_options or {})
    )
    self.host_sync: HostStateSync | None = None
    if callable(getattr(ctx, "set_state", None)):
      self.host_sync = HostStateSync(self.state, ctx.set_state)

  # ------------------------------------------------------------------
  # Lifecycle
  # ------------------------------------------------------------------

  async def start(self, *, start_worker: bool = True) -> bool:
    """Bring the skill up. Returns False when no credentials are configured."""
    if self.host_sync is not None:
      self.host_sync.start()

    creds = await self.credentials.load_credentials()
    if not creds.is_configured:
      log.warning("No Outlook credentials configured, skill not initialized")
      self.state.set_connection_status("disconnected")
      return False

    self.state.set_connection_status("connecting")
    try:
      await self.store.open()
      await self._ensure_contacts(creds.knowledge_base_path, creds.internal_domain)
      self.state.set_stats(await self.store.get_stats())
      self.state.set_sync_result(
        initial_sync_done=await self.store.get_sync_state(SYNC_INITIAL_DONE) == "true"
      )
    except StorageError as e:
      # The worker keeps retrying the store on its own cadence.
      log.error("Metadata store unavailable: %s", e)
      self.state.set_connection_error(str(e))

    await self.client.connect()
    try:
      mailbox = await self.client.get_profile()
      self.state.set_mailbox(mailbox)
      self.state.set_connection_status("connected")
      log.info("Connected to mailbox %s", mailbox)
    except UnauthenticatedError:
      self.state.set_connection_status("unauthenticated")
    except OutlookError as e:
      log.warning("Could not fetch mailbox profile: %s", e)
      self.state.set_connection_error(e.message)

    self.state.set_is_initialized(True)
    if start_worker and self.state.get_state().connection_status != "unauthenticated":
      self.worker.start()
    return True

  async def stop(self) -> None:
    await self.worker.stop()
    await self.client.close()
    await self.tokens.close()
    await self.store.close()
    if self.host_sync is not None:
      self.host_sync.stop()
    log.info("Outlook runtime stopped")

  async def disconnect(self) -> None:
    await self.stop()
    await self.credentials.clear_tokens()
    self.state.reset_state()

  def _on_unauthenticated(self) -> None:
    self.state.set_connection_status("unauthenticated")

  async def _ensure_contacts(self, kb_path: str | None, internal_domain: str | None) -> None:
    if await self.store.list_contacts():
      return
    log.info("No contact rules yet, seeding")
    await bootstrap_contacts(self.store, kb_path, internal_domain)

  # ------------------------------------------------------------------
  # Operations used by tool handlers
  # ------------------------------------------------------------------

  async def sync_now(self, *, full: bool = False) -> SyncResult | None:
    await self.store.open()
    result = await self.worker.run_once(user_triggered=True, full=full)
    if result is not None and self.worker.is_paused:
      self.worker.resume()
      self.state.set_connection_status("connected")
    return result

  async def fetch_body(self, message_id: str) -> MessageBody:
    return await self.orchestrator.fetch_body(message_id)

  async def mark_read(self, message_id: str) -> bool:
    found = await self.store.mark_read(message_id)
    await self.client.mark_as_read(message_id)
    return found

  async def archive(self, message_id: str, archived: bool = True) -> bool:
    return await self.store.set_archived(message_id, archived)

  async def send_email(
    self, to: list[str], cc: list[str], subject: str, html: str
  ) -> None:
    await self.client.send_email(
      [EmailAddress(email=a) for a in to], [EmailAddress(email=a) for a in cc], subject, html
    )

  async def reply(self, message_id: str, comment_html: str) -> None:
    await self.client.reply(message_id, comment_html)

  async def bootstrap_contacts(self, knowledge_base_path: str | None = None) -> int:
    creds = await self.credentials.load_credentials()
    return await bootstrap_contacts(
      self.store, knowledge_base_path or creds.knowledge_base_path, creds.internal_domain
    )

  async def add_contact_rule(self, rule: ContactRule) -> None:
    await self.store.upsert_contact(rule)

  async def reclassify(self) -> int:
    count = await self.orchestrator.reclassify_all()
    self.state.set_stats(await self.store.get_stats())
    return count

  async def status(self) -> dict[str, Any]:
    s = self.state.get_state()
    sync_state: dict[str, str] = {}
    if self.store.is_open:
      sync_state = await self.store.get_all_sync_state()
    return {
      "connection_status": s.connection_status,
      "connection_error": s.connection_error,
      "mailbox": s.mailbox,
      "is_initialized": s.is_initialized,
      "is_syncing": s.is_syncing or self.store.sync_running,
      "worker_running": self.worker.is_running,
      "worker_paused": self.worker.is_paused,
      "initial_sync_done": sync_state.get(SYNC_INITIAL_DONE) == "true",
      "last_sync_at": sync_state.get(SYNC_LAST_AT),
      "last_attempt_at": sync_state.get(SYNC_LAST_ATTEMPT_AT),
      "last_sync_error": sync_state.get(SYNC_LAST_ERROR),
      "total_messages": s.total_messages,
      "unread_messages": s.unread_messages,
      "action_required": s.action_required,
    }
