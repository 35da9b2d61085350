"""
Setup wizard types (Pydantic v2).

A skill with ``has_setup=True`` walks the user through one or more form
steps. The host renders each SetupStep, posts the values back to
``on_setup_submit`` and follows the returned SetupResult.

Usage:
    from dev.types.setup_types import SetupField, SetupStep, SetupResult
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FieldType = Literal["text", "password", "number", "boolean"]
SetupStatus = Literal["next", "error", "complete"]


class SetupField(BaseModel):
  """One input on a setup form."""

  model_config = ConfigDict(frozen=True)

  name: str = Field(description="Key the value is submitted under")
  type: FieldType
  label: str
  description: str | None = None
  required: bool = True
  default: str | float | bool | None = None
  placeholder: str | None = None


class SetupStep(BaseModel):
  """A form page. ``id`` is echoed back as the submit step_id."""

  model_config = ConfigDict(frozen=True)

  id: str
  title: str
  description: str | None = None
  fields: list[SetupField]


class SetupFieldError(BaseModel):
  """Validation error shown next to a field. An empty ``field`` is form-level."""

  model_config = ConfigDict(frozen=True)

  field: str
  message: str


class SetupResult(BaseModel):
  model_config = ConfigDict(frozen=True)

  status: SetupStatus
  next_step: SetupStep | None = None
  errors: list[SetupFieldError] | None = None
  message: str | None = None
