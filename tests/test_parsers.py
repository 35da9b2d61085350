from __future__ import annotations

from datetime import UTC, datetime

import pytest

from skills.outlook.client.parsers import parse_datetime, parse_folder, parse_message
from skills.outlook.errors import ClassifierInputError
from skills.outlook.validation import (
  ValidationError,
  opt_datetime,
  opt_number,
  validate_email_list,
)


def test_parse_datetime_variants():
  expected = datetime(2025, 3, 14, 9, 30, 15, 123456, tzinfo=UTC)
  assert parse_datetime("2025-03-14T09:30:15.1234567Z") == expected
  assert parse_datetime("2025-03-14T10:30:15.123456+01:00") == expected
  assert parse_datetime("2025-03-14T09:30:15Z") == expected.replace(microsecond=0)
  assert parse_datetime("yesterday") is None
  assert parse_datetime(None) is None


def test_tombstone_needs_only_an_id():
  header = parse_message({"id": "x", "@removed": {"reason": "deleted"}})
  assert header.removed
  assert header.received_at is None


def test_message_without_id_or_date_is_rejected():
  with pytest.raises(ClassifierInputError):
    parse_message({"subject": "no id"})
  with pytest.raises(ClassifierInputError):
    parse_message({"id": "x", "subject": "no date"})


def test_message_without_sender_keeps_empty_address():
  header = parse_message({"id": "x", "receivedDateTime": "2025-03-14T09:30:15Z", "importance": "urgent"})
  assert header.from_email == ""
  assert header.from_name is None
  assert header.importance.value == "normal"


def test_parse_folder():
  folder = parse_folder({"id": "f", "displayName": "Inbox", "unreadItemCount": 3, "totalItemCount": None})
  assert folder.unread_count == 3
  assert folder.total_count == 0


def test_email_list_validation():
  assert validate_email_list("a@b.com, c@d.org", "to") == ["a@b.com", "c@d.org"]
  assert validate_email_list(None, "cc", required=False) == []
  with pytest.raises(ValidationError, match="Missing required parameter: to"):
    validate_email_list([], "to")
  with pytest.raises(ValidationError):
    validate_email_list(42, "to")


def test_opt_number_clamps():
  assert opt_number({"limit": 500}, "limit", 20, lo=1, hi=200) == 200
  assert opt_number({"limit": True}, "limit", 20) == 20
  assert opt_number({}, "limit", 20) == 20


def test_opt_datetime():
  assert opt_datetime({"since": "2025-03-14"}, "since") == datetime(2025, 3, 14, tzinfo=UTC)
  assert opt_datetime({}, "since") is None
  with pytest.raises(ValidationError):
    opt_datetime({"since": "last week"}, "since")
