from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import NOW

from skills.outlook.scoring import calculate_priority, is_action_required, priority_level
from skills.outlook.state.types import Category, Importance, PriorityLevel


def score(category, age, *, is_read=True, importance=Importance.NORMAL):
  return calculate_priority(category, NOW - age, is_read, importance, NOW).score


def test_exactly_two_hours_has_no_recency_adjustment():
  assert score(Category.UNKNOWN, timedelta(hours=2)) == 55


def test_just_under_two_hours_gets_bonus():
  assert score(Category.UNKNOWN, timedelta(hours=2) - timedelta(seconds=1)) == 65


def test_exactly_48_hours_has_no_penalty():
  assert score(Category.UNKNOWN, timedelta(hours=48)) == 55


def test_older_than_48_hours_is_penalised():
  assert score(Category.UNKNOWN, timedelta(hours=48, seconds=1)) == 45


def test_clamps_at_100():
  s = score(Category.CLIENT, timedelta(minutes=1), is_read=False, importance=Importance.HIGH)
  assert s == 100


def test_noise_floor():
  # 50 - 30 - 10 is the lowest reachable score.
  assert score(Category.NOISE, timedelta(days=30)) == 10


def test_unread_and_importance_bonuses():
  assert score(Category.VENDOR, timedelta(hours=5), is_read=False, importance=Importance.HIGH) == 70


@pytest.mark.parametrize(
  ("value", "level"),
  [(0, PriorityLevel.LOW), (39, PriorityLevel.LOW), (40, PriorityLevel.MEDIUM),
   (69, PriorityLevel.MEDIUM), (70, PriorityLevel.HIGH), (100, PriorityLevel.HIGH)],
)
def test_priority_levels(value, level):
  assert priority_level(value) == level


def test_action_required_needs_category_and_score():
  assert is_action_required(Category.CLIENT, 50)
  assert not is_action_required(Category.CLIENT, 49)
  assert not is_action_required(Category.INTERNAL, 90)
