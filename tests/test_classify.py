from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import NOW

from skills.outlook.classify import ContactRuleSet, classify_email, sender_domain
from skills.outlook.scoring import calculate_priority, is_action_required
from skills.outlook.state.types import Category, Importance, PriorityLevel


def classify_and_score(rules, sender, subject, preview, age):
  c = classify_email(sender, subject, preview, rules)
  p = calculate_priority(c.category, NOW - age, False, Importance.NORMAL, NOW)
  return c, p, is_action_required(c.category, p.score)


def test_noise_domain_rule_matches_at_domain_step(rules):
  c, p, action = classify_and_score(
    rules, "alerts@linkedin.com", "Weekly digest", "view in browser", timedelta(minutes=30)
  )
  assert c.category == Category.NOISE
  assert c.confidence == 0.85
  assert p.score == 35
  assert p.level == PriorityLevel.LOW
  assert action is False


def test_known_client_recent_unread(rules):
  c, p, action = classify_and_score(
    rules, "procurement@acme.com", "Order #42", "Please find", timedelta(minutes=10)
  )
  assert c.category == Category.CLIENT
  assert c.confidence == 0.85
  assert c.entity_name == "Acme"
  assert c.entity_path == "3_Clients/by_industry/retail/Acme"
  assert p.score == 95
  assert p.level == PriorityLevel.HIGH
  assert action is True


def test_personal_webmail_never_becomes_lead():
  c, p, action = classify_and_score(
    ContactRuleSet(), "someone@gmail.com", "pricing for your demo", "Hi there", timedelta(hours=6)
  )
  assert c.category == Category.UNKNOWN
  assert c.confidence == 0.50
  assert p.score == 60
  assert p.level == PriorityLevel.MEDIUM
  assert action is False


def test_business_domain_lead_signal():
  c, p, action = classify_and_score(
    ContactRuleSet(), "cfo@example-corp.com", "pricing for your demo", "Hi there", timedelta(hours=6)
  )
  assert c.category == Category.LEAD
  assert c.confidence == 0.70
  assert p.score == 75
  assert p.level == PriorityLevel.HIGH
  assert action is True


def test_exact_sender_rule_beats_domain(rules):
  c = classify_email("Jane@Partner.io", "Re: terms", "", rules)
  assert c.category == Category.DEAL
  assert c.confidence == 0.95


def test_noise_domain_table_matches_substring(rules):
  c = classify_email("bounce@em123.sendgrid.net", "Your receipt", "", rules)
  assert c.category == Category.NOISE
  assert c.confidence == 0.90


@pytest.mark.parametrize(
  "sender",
  ["noreply@shop.example", "no-reply@bank.example", "MAILER-DAEMON@mx.example", ""],
)
def test_automated_senders_are_noise(sender):
  c = classify_email(sender, "Delivery status", "", ContactRuleSet())
  assert c.category == Category.NOISE
  assert c.confidence == 0.90


def test_marketing_phrase_in_preview():
  c = classify_email("news@store.example", "Spring sale", "Click to unsubscribe", ContactRuleSet())
  assert c.category == Category.NOISE
  assert c.confidence == 0.75


def test_marketing_phrase_beats_lead_phrase():
  c = classify_email(
    "sales@vendor.example", "Book a demo", "newsletter: pricing inside", ContactRuleSet()
  )
  assert c.category == Category.NOISE


def test_fallback_is_unknown():
  c = classify_email("bob@example.org", "Lunch?", "Are you free", ContactRuleSet())
  assert c.category == Category.UNKNOWN
  assert c.confidence == 0.50
  assert c.entity_name is None


def test_classification_is_pure(rules):
  args = ("procurement@acme.com", "Order", "Please find", rules)
  assert classify_email(*args) == classify_email(*args)


def test_sender_domain():
  assert sender_domain("A@Mail.Example.COM") == "mail.example.com"
  assert sender_domain("not-an-address") == ""
  assert sender_domain("") == ""
