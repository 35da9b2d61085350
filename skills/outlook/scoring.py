"""
Priority scoring for classified messages.
"""

from __future__ import annotations

from datetime import UTC, datetime

from .state.types import Category, Importance, Priority, PriorityLevel

BASE_SCORE = 50

CATEGORY_DELTA: dict[Category, int] = {
  Category.CLIENT: 30,
  Category.DEAL: 25,
  Category.LEAD: 20,
  Category.INTERNAL: 10,
  Category.UNKNOWN: 5,
  Category.VENDOR: 0,
  Category.NOISE: -30,
}

RECENT_WINDOW_S = 2 * 3600
STALE_WINDOW_S = 48 * 3600
RECENT_BONUS = 10
STALE_PENALTY = -10
UNREAD_BONUS = 5
HIGH_IMPORTANCE_BONUS = 15

HIGH_THRESHOLD = 70
MEDIUM_THRESHOLD = 40
ACTION_THRESHOLD = 50
ACTIONABLE_CATEGORIES = frozenset({Category.CLIENT, Category.DEAL, Category.LEAD})


def priority_level(score: int) -> PriorityLevel:
  if score >= HIGH_THRESHOLD:
    return PriorityLevel.HIGH
  if score >= MEDIUM_THRESHOLD:
    return PriorityLevel.MEDIUM
  return PriorityLevel.LOW


def calculate_priority(
  category: Category,
  received_at: datetime,
  is_read: bool,
  importance: Importance,
  now: datetime | None = None,
) -> Priority:
  now = now or datetime.now(UTC)
  score = BASE_SCORE + CATEGORY_DELTA.get(category, 0)

  age_s = (now - received_at).total_seconds()
  if age_s < RECENT_WINDOW_S:
    score += RECENT_BONUS
  elif age_s > STALE_WINDOW_S:
    score += STALE_PENALTY

  if not is_read:
    score += UNREAD_BONUS
  if importance == Importance.HIGH:
    score += HIGH_IMPORTANCE_BONUS

  score = max(0, min(100, score))
  return Priority(score=score, level=priority_level(score))


def is_action_required(category: Category, score: int) -> bool:
  return category in ACTIONABLE_CATEGORIES and score >= ACTION_THRESHOLD
