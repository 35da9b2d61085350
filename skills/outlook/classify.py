"""
Rule-based email classification.

classify_email() walks a fixed cascade and returns the first match:

  1. exact sender rule                 -> rule entity type, 0.95
  2. sender-domain rule                -> rule entity type, 0.85
  3. noise-domain rule                 -> noise, 0.90
  4. automated sender address          -> noise, 0.90
  5. marketing phrase in preview/from  -> noise, 0.75
  6. lead phrase, non-webmail sender   -> lead, 0.70
  7. otherwise                         -> unknown, 0.50

It reads contact rules from a ContactRuleSet snapshot and never touches
the store, so the same inputs always give the same answer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .state.types import Category, Classification, ContactRule, MatchType

if TYPE_CHECKING:
  from collections.abc import Iterable

AUTOMATED_SENDER_MARKERS = ("noreply", "no-reply", "mailer-daemon", "postmaster")

NOISE_PHRASES = (
  "unsubscribe",
  "view in browser",
  "email preferences",
  "marketing",
  "newsletter",
  "promotional",
  "noreply",
  "no-reply",
  "donotreply",
)

LEAD_PHRASES = (
  "interest",
  "demo",
  "pricing",
  "learn more",
  "schedule a call",
  "would like to",
  "looking for a solution",
  "recommendation",
)

PERSONAL_WEBMAIL = (
  "gmail.com",
  "yahoo.com",
  "hotmail.com",
  "outlook.com",
  "icloud.com",
  "live.com",
  "aol.com",
  "yahoo.co",
  "hotmail.co",
  "gmail.co",
)

CONFIDENCE_EMAIL_RULE = 0.95
CONFIDENCE_DOMAIN_RULE = 0.85
CONFIDENCE_NOISE_DOMAIN = 0.90
CONFIDENCE_AUTOMATED = 0.90
CONFIDENCE_NOISE_PHRASE = 0.75
CONFIDENCE_LEAD = 0.70
CONFIDENCE_FALLBACK = 0.50


class ContactRuleSet:
  """Immutable lookup tables built from the contacts table."""

  def __init__(self, rules: Iterable[ContactRule] = ()) -> None:
    self._emails: dict[str, ContactRule] = {}
    self._domains: dict[str, ContactRule] = {}
    noise: list[str] = []
    for rule in rules:
      if rule.match_type == MatchType.EMAIL:
        self._emails[rule.match_value] = rule
      elif rule.match_type == MatchType.DOMAIN:
        self._domains[rule.match_value] = rule
      else:
        noise.append(rule.match_value)
    self._noise_domains = tuple(sorted(noise))

  def __len__(self) -> int:
    return len(self._emails) + len(self._domains) + len(self._noise_domains)

  def by_email(self, address: str) -> ContactRule | None:
    return self._emails.get(address.lower())

  def by_domain(self, domain: str) -> ContactRule | None:
    return self._domains.get(domain.lower())

  def is_noise_domain(self, domain: str) -> bool:
    """True if any noise-domain rule occurs within ``domain``."""
    domain = domain.lower()
    if not domain:
      return False
    return any(value in domain for value in self._noise_domains)


def sender_domain(address: str) -> str:
  _, sep, domain = address.strip().lower().rpartition("@")
  return domain if sep else ""


def is_personal_webmail(domain: str) -> bool:
  domain = domain.lower()
  return any(marker in domain for marker in PERSONAL_WEBMAIL)


def _contains_any(text: str, needles: Iterable[str]) -> bool:
  return any(n in text for n in needles)


def _from_rule(rule: ContactRule, confidence: float) -> Classification:
  return Classification(
    category=rule.entity_type,
    confidence=confidence,
    entity_name=rule.entity_name,
    entity_path=rule.entity_path,
  )


def classify_email(
  from_email: str,
  subject: str,
  body_preview: str,
  rules: ContactRuleSet,
) -> Classification:
  sender = (from_email or "").strip().lower()
  subject_lc = (subject or "").lower()
  preview_lc = (body_preview or "").lower()
  domain = sender_domain(sender)

  rule = rules.by_email(sender) if sender else None
  if rule is not None:
    return _from_rule(rule, CONFIDENCE_EMAIL_RULE)

  rule = rules.by_domain(domain) if domain else None
  if rule is not None:
    return _from_rule(rule, CONFIDENCE_DOMAIN_RULE)

  if rules.is_noise_domain(domain):
    return Classification(category=Category.NOISE, confidence=CONFIDENCE_NOISE_DOMAIN)

  # An empty sender (bounces, delivery reports) is automated traffic too.
  if not sender or _contains_any(sender, AUTOMATED_SENDER_MARKERS):
    return Classification(category=Category.NOISE, confidence=CONFIDENCE_AUTOMATED)

  if _contains_any(preview_lc, NOISE_PHRASES) or _contains_any(sender, NOISE_PHRASES):
    return Classification(category=Category.NOISE, confidence=CONFIDENCE_NOISE_PHRASE)

  if not is_personal_webmail(domain) and (
    _contains_any(subject_lc, LEAD_PHRASES) or _contains_any(preview_lc, LEAD_PHRASES)
  ):
    return Classification(category=Category.LEAD, confidence=CONFIDENCE_LEAD)

  return Classification(category=Category.UNKNOWN, confidence=CONFIDENCE_FALLBACK)
