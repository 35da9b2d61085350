"""
Outlook skill setup flow: app registration and mailbox token.

Steps:
  1. app: Azure app client id, tenant id, optional client secret
  2. mailbox: refresh token and optional knowledge base path

The refresh token is validated with one token exchange. On success the
config is persisted via ctx.write_data("config.json", ...), including the
rotated refresh token if the provider issued one.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dev.types.setup_types import (
  SetupField,
  SetupFieldError,
  SetupResult,
  SetupStep,
)

from .client.credentials import ContextCredentialStore, MemoryCredentialStore
from .client.token_manager import TokenManager
from .errors import OutlookError, UnauthenticatedError
from .state.types import OutlookCredentials

log = logging.getLogger("skill.outlook.setup")


# ---------------------------------------------------------------------------
# Step definitions
# ---------------------------------------------------------------------------

STEP_APP = SetupStep(
  id="app",
  title="Azure App Registration",
  description="Enter the Application (client) ID and Directory (tenant) ID of your Azure app.",
  fields=[
    SetupField(
      name="client_id",
      type="text",
      label="Client ID",
      required=True,
      placeholder="00000000-0000-0000-0000-000000000000",
    ),
    SetupField(
      name="tenant_id",
      type="text",
      label="Tenant ID",
      description="Directory ID, or 'common' for multi-tenant apps",
      required=False,
      default="common",
    ),
    SetupField(
      name="client_secret",
      type="password",
      label="Client Secret",
      description="Only needed for confidential (web) app registrations",
      required=False,
    ),
  ],
)

STEP_MAILBOX = SetupStep(
  id="mailbox",
  title="Mailbox Access",
  description="Paste a refresh token issued for this app with Mail.ReadWrite and offline_access.",
  fields=[
    SetupField(
      name="refresh_token",
      type="password",
      label="Refresh Token",
      required=True,
    ),
    SetupField(
      name="knowledge_base_path",
      type="text",
      label="Knowledge Base Path",
      description="Folder containing 3_Clients/by_industry, used to recognise client domains",
      required=False,
    ),
  ],
)


class SetupFlow:
  """Transient setup state for one skill instance."""

  def __init__(self, token_url: str | None = None) -> None:
    self._token_url = token_url
    self._app: dict[str, str] = {}

  async def on_setup_start(self, ctx: Any) -> SetupStep:
    self._app = {}
    return STEP_APP

  async def on_setup_submit(self, ctx: Any, step_id: str, values: dict[str, Any]) -> SetupResult:
    if step_id == "app":
      return self._submit_app(values)
    if step_id == "mailbox":
      return await self._submit_mailbox(ctx, values)
    return SetupResult(
      status="error",
      errors=[SetupFieldError(field="", message=f"Unknown step: {step_id}")],
    )

  async def on_setup_cancel(self, ctx: Any) -> None:
    self._app = {}

  def _submit_app(self, values: dict[str, Any]) -> SetupResult:
    client_id = str(values.get("client_id", "")).strip()
    if not client_id:
      return SetupResult(
        status="error",
        errors=[SetupFieldError(field="client_id", message="Client ID is required")],
      )
    self._app = {
      "client_id": client_id,
      "tenant_id": str(values.get("tenant_id") or "common").strip(),
      "client_secret": str(values.get("client_secret") or "").strip(),
    }
    return SetupResult(status="next", next_step=STEP_MAILBOX)

  async def _submit_mailbox(self, ctx: Any, values: dict[str, Any]) -> SetupResult:
    if not self._app:
      return SetupResult(
        status="error",
        errors=[SetupFieldError(field="", message="Setup expired, please start again")],
      )

    refresh_token = str(values.get("refresh_token", "")).strip()
    kb_path = str(values.get("knowledge_base_path") or "").strip() or None
    errors: list[SetupFieldError] = []
    if not refresh_token:
      errors.append(SetupFieldError(field="refresh_token", message="Refresh token is required"))
    if kb_path and not os.path.isdir(os.path.expanduser(kb_path)):
      errors.append(
        SetupFieldError(field="knowledge_base_path", message=f"Not a directory: {kb_path}")
      )
    if errors:
      return SetupResult(status="error", errors=errors)

    creds = OutlookCredentials(
      **self._app, refresh_token=refresh_token, knowledge_base_path=kb_path
    )

    # Validate with a real exchange
    probe = MemoryCredentialStore(creds)
    tokens = TokenManager(probe, token_url=self._token_url)
    try:
      await tokens.get_valid_token()
    except UnauthenticatedError:
      return SetupResult(
        status="error",
        errors=[SetupFieldError(field="refresh_token", message="Refresh token was rejected")],
      )
    except OutlookError as e:
      log.warning("Token validation failed: %s", e)
      return SetupResult(
        status="error",
        errors=[SetupFieldError(field="refresh_token", message=f"Could not reach Microsoft: {e}")],
      )
    finally:
      await tokens.close()

    store = ContextCredentialStore(ctx)
    await store.save_credentials(probe.creds)
    if probe.tokens is not None:
      await store.save_tokens(probe.tokens)
    self._app = {}

    return SetupResult(
      status="complete",
      message="Outlook connected! Run sync_mailbox to import your inbox.",
    )
