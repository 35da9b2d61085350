"""
Input validation helpers for Outlook tool arguments.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from .client.parsers import parse_datetime

E = TypeVar("E", bound=Enum)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(Exception):
  pass


def validate_email_list(value: Any, param_name: str, *, required: bool = True) -> list[str]:
  """Validate a list of email addresses or a comma-separated string."""
  if value is None or value == "" or value == []:
    if required:
      raise ValidationError(f"Missing required parameter: {param_name}")
    return []
  if isinstance(value, str):
    parts = [p.strip() for p in value.split(",") if p.strip()]
  elif isinstance(value, list):
    parts = [str(p).strip() for p in value if p]
  else:
    raise ValidationError(f"Invalid {param_name}: must be a list or comma-separated string")

  for addr in parts:
    if not _EMAIL_RE.match(addr):
      raise ValidationError(f"Invalid email address in {param_name}: {addr}")
  return parts


def req_string(args: dict[str, Any], key: str) -> str:
  """Read a required string from args."""
  v = args.get(key)
  if not isinstance(v, str) or not v.strip():
    raise ValidationError(f"Missing required parameter: {key}")
  return v.strip()


def opt_string(args: dict[str, Any], key: str) -> str | None:
  """Read an optional string from args."""
  v = args.get(key)
  return v.strip() if isinstance(v, str) and v.strip() else None


def opt_number(args: dict[str, Any], key: str, fallback: int, *, lo: int = 0, hi: int | None = None) -> int:
  """Read an optional number from args, clamped to [lo, hi]."""
  v = args.get(key)
  n = int(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else fallback
  n = max(lo, n)
  return min(hi, n) if hi is not None else n


def opt_boolean(args: dict[str, Any], key: str) -> bool | None:
  v = args.get(key)
  return v if isinstance(v, bool) else None


def opt_datetime(args: dict[str, Any], key: str) -> datetime | None:
  """Read an optional ISO-8601 date or timestamp (naive values are UTC)."""
  raw = opt_string(args, key)
  if raw is None:
    return None
  if len(raw) == 10:
    raw = f"{raw}T00:00:00"
  parsed = parse_datetime(raw)
  if parsed is None:
    raise ValidationError(f"Invalid {key}: expected an ISO-8601 date")
  return parsed.astimezone(UTC)


def opt_enum(args: dict[str, Any], key: str, enum: type[E]) -> E | None:
  raw = opt_string(args, key)
  if raw is None:
    return None
  try:
    return enum(raw.lower())
  except ValueError:
    allowed = ", ".join(e.value for e in enum)
    raise ValidationError(f"Invalid {key}: must be one of {allowed}")


def opt_enum_list(args: dict[str, Any], key: str, enum: type[E]) -> list[E] | None:
  v = args.get(key)
  if v is None:
    return None
  items = [p.strip() for p in v.split(",")] if isinstance(v, str) else v
  if not isinstance(items, list):
    raise ValidationError(f"Invalid {key}: must be a list")
  result: list[E] = []
  for item in items:
    try:
      result.append(enum(str(item).strip().lower()))
    except ValueError:
      allowed = ", ".join(e.value for e in enum)
      raise ValidationError(f"Invalid value in {key}: {item} (allowed: {allowed})")
  return result or None
