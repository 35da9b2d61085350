"""
Outlook state types.

Message, folder, and contact-rule records shared by the client, the
metadata store, and the sync orchestrator, plus the in-process skill
state and the subset pushed to the host for UI consumption.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Category(str, Enum):
  CLIENT = "client"
  DEAL = "deal"
  LEAD = "lead"
  INTERNAL = "internal"
  VENDOR = "vendor"
  NOISE = "noise"
  UNKNOWN = "unknown"


class PriorityLevel(str, Enum):
  LOW = "low"
  MEDIUM = "medium"
  HIGH = "high"


class Importance(str, Enum):
  LOW = "low"
  NORMAL = "normal"
  HIGH = "high"


class MatchType(str, Enum):
  EMAIL = "email"
  DOMAIN = "domain"
  NOISE_DOMAIN = "noise_domain"


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class EmailAddress(BaseModel):
  model_config = ConfigDict(frozen=True)

  name: str = ""
  email: str = ""


class MessageHeader(BaseModel):
  """Header projection of a Graph message, as returned by list and delta calls."""

  id: str
  conversation_id: str | None = None
  subject: str = ""
  from_email: str = ""
  from_name: str | None = None
  to: list[EmailAddress] = Field(default_factory=list)
  cc: list[EmailAddress] = Field(default_factory=list)
  received_at: datetime | None = None
  importance: Importance = Importance.NORMAL
  is_read: bool = False
  has_attachments: bool = False
  body_preview: str = ""
  parent_folder_id: str = ""
  categories: list[str] = Field(default_factory=list)
  removed: bool = False


class Classification(BaseModel):
  model_config = ConfigDict(frozen=True)

  category: Category
  confidence: float
  entity_name: str | None = None
  entity_path: str | None = None


class Priority(BaseModel):
  model_config = ConfigDict(frozen=True)

  score: int
  level: PriorityLevel


class Message(MessageHeader):
  """A stored message.

  Classification fields left as None mean "not supplied": an upsert keeps
  whatever the row already holds for them.
  """

  category: Category | None = None
  confidence: float | None = None
  entity_name: str | None = None
  entity_path: str | None = None
  priority_score: int | None = None
  priority_level: PriorityLevel | None = None
  action_required: bool | None = None
  archived_locally: bool = False


class MessageBody(BaseModel):
  content_type: Literal["html", "text"] = "html"
  content: str = ""


class MessageQuery(BaseModel):
  """Filters for MetadataStore.query_messages."""

  categories: list[Category] | None = None
  min_priority: int | None = None
  is_read: bool | None = None
  folder_id: str | None = None
  sender_domain: str | None = None
  received_after: datetime | None = None
  received_before: datetime | None = None
  text: str | None = None
  include_archived: bool = True
  order: Literal["received_desc", "received_asc", "priority_desc"] = "received_desc"
  limit: int = 50
  offset: int = 0


class MessageStats(BaseModel):
  total: int = 0
  unread: int = 0
  action_required: int = 0
  archived: int = 0
  by_category: dict[str, int] = Field(default_factory=dict)
  by_priority_level: dict[str, int] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Folders & contact rules
# ---------------------------------------------------------------------------


class Folder(BaseModel):
  id: str
  display_name: str = ""
  parent_id: str | None = None
  child_count: int = 0
  unread_count: int = 0
  total_count: int = 0


class ContactRule(BaseModel):
  model_config = ConfigDict(frozen=True)

  match_type: MatchType
  match_value: str
  entity_type: Category
  entity_name: str
  entity_path: str | None = None

  @field_validator("match_value")
  @classmethod
  def _lower(cls, value: str) -> str:
    value = value.strip().lower()
    if not value:
      raise ValueError("match_value must not be empty")
    return value


# ---------------------------------------------------------------------------
# Sync state keys
# ---------------------------------------------------------------------------

SYNC_DELTA_CURSOR = "delta_cursor"
SYNC_INITIAL_DONE = "initial_sync_done"
SYNC_LAST_AT = "last_sync_at"
SYNC_LAST_ERROR = "last_sync_error"
SYNC_LAST_ATTEMPT_AT = "last_attempt_at"


# ---------------------------------------------------------------------------
# Credentials & tokens
# ---------------------------------------------------------------------------


class OutlookCredentials(BaseModel):
  """Contents of config.json."""

  client_id: str = ""
  tenant_id: str = "common"
  client_secret: str = ""
  refresh_token: str = ""
  knowledge_base_path: str | None = None
  internal_domain: str | None = None

  @property
  def is_configured(self) -> bool:
    return bool(self.client_id and self.refresh_token)


class OutlookTokens(BaseModel):
  """Contents of tokens.json."""

  access_token: str = ""
  refresh_token: str = ""
  expires_at: float = 0
  scope: str = ""


# ---------------------------------------------------------------------------
# Skill state
# ---------------------------------------------------------------------------

OutlookConnectionStatus = Literal[
  "disconnected", "connecting", "connected", "unauthenticated", "error"
]


class OutlookState(BaseModel):
  """Full in-process state."""

  connection_status: OutlookConnectionStatus = "disconnected"
  connection_error: str | None = None
  mailbox: str | None = None
  is_initialized: bool = False
  is_syncing: bool = False
  initial_sync_done: bool = False
  last_sync: float | None = None
  last_sync_count: int = 0
  last_error: str | None = None
  total_messages: int = 0
  unread_messages: int = 0
  action_required: int = 0


class OutlookHostState(BaseModel):
  """Subset pushed to host for React UI consumption."""

  connection_status: OutlookConnectionStatus = "disconnected"
  mailbox: str | None = None
  is_initialized: bool = False
  is_syncing: bool = False
  initial_sync_done: bool = False
  last_sync: float | None = None
  last_error: str | None = None
  total_messages: int = 0
  unread_messages: int = 0
  action_required: int = 0


def initial_state() -> OutlookState:
  return OutlookState()
