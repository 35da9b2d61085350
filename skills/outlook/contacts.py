"""
Contact-rule bootstrap.

Seeds fixed noise, internal, and vendor rules, then walks the knowledge
base at ``<root>/3_Clients/by_industry/<industry>/<client>/`` and adds
three guessed domain rules per client. Every rule is an upsert, so
running it again rewrites the same rows.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from .db import queries
from .state.types import Category, ContactRule, MatchType

if TYPE_CHECKING:
  from .db.store import MetadataStore

log = logging.getLogger("skill.outlook.contacts")

CLIENTS_DIR = os.path.join("3_Clients", "by_industry")
CLIENT_DOMAIN_SUFFIXES = (".com", ".com.sg", ".sg")

NOISE_DOMAINS = (
  "linkedin.com",
  "marketing.linkedin.com",
  "newsletters.medium.com",
  "amazonses.com",
  "sendgrid.net",
  "mailchimp.com",
  "hubspot.com",
  "marketo.com",
  "constantcontact.com",
  "mandrillapp.com",
  "mailgun.org",
  "sparkpostmail.com",
)

DEFAULT_INTERNAL_DOMAIN = "thinkval.com"
INTERNAL_NAME = "ThinkVAL"
INTERNAL_PATH = "1_Company"

VENDOR_DOMAINS = (
  ("aws.amazon.com", "AWS"),
  ("amazonaws.com", "AWS"),
  ("google.com", "Google"),
  ("microsoft.com", "Microsoft"),
  ("github.com", "GitHub"),
  ("stripe.com", "Stripe"),
  ("vercel.com", "Vercel"),
  ("notion.so", "Notion"),
  ("slack.com", "Slack"),
  ("zoom.us", "Zoom"),
  ("anthropic.com", "Anthropic"),
  ("openai.com", "OpenAI"),
)

def client_slug(name: str) -> str:
  return "".join(c for c in name.lower() if c.isalnum())


def seed_rules(internal_domain: str | None = None) -> list[ContactRule]:
  rules = [
    ContactRule(
      match_type=MatchType.NOISE_DOMAIN,
      match_value=domain,
      entity_type=Category.NOISE,
      entity_name="Noise",
    )
    for domain in NOISE_DOMAINS
  ]
  rules.append(
    ContactRule(
      match_type=MatchType.DOMAIN,
      match_value=internal_domain or DEFAULT_INTERNAL_DOMAIN,
      entity_type=Category.INTERNAL,
      entity_name=INTERNAL_NAME,
      entity_path=INTERNAL_PATH,
    )
  )
  rules.extend(
    ContactRule(
      match_type=MatchType.DOMAIN,
      match_value=domain,
      entity_type=Category.VENDOR,
      entity_name=name,
    )
    for domain, name in VENDOR_DOMAINS
  )
  return rules


def _subdirs(path: str) -> list[str]:
  try:
    entries = os.listdir(path)
  except OSError:
    return []
  return sorted(e for e in entries if not e.startswith(".") and os.path.isdir(os.path.join(path, e)))


def scan_client_rules(knowledge_base_path: str) -> list[ContactRule]:
  """Derive client domain rules from the knowledge-base folder layout."""
  root = os.path.join(os.path.expanduser(knowledge_base_path), CLIENTS_DIR)
  if not os.path.isdir(root):
    log.warning("No client directory at %s", root)
    return []

  rules: list[ContactRule] = []
  for industry in _subdirs(root):
    for client in _subdirs(os.path.join(root, industry)):
      slug = client_slug(client)
      if not slug:
        continue
      entity_path = "/".join(("3_Clients", "by_industry", industry, client))
      rules.extend(
        ContactRule(
          match_type=MatchType.DOMAIN,
          match_value=slug + suffix,
          entity_type=Category.CLIENT,
          entity_name=client,
          entity_path=entity_path,
        )
        for suffix in CLIENT_DOMAIN_SUFFIXES
      )
  return rules


async def bootstrap_contacts(
  store: MetadataStore,
  knowledge_base_path: str | None,
  internal_domain: str | None = None,
) -> int:
  """Write seed and client rules in one transaction. Returns the rule count."""
  rules = seed_rules(internal_domain)
  if knowledge_base_path:
    rules.extend(scan_client_rules(knowledge_base_path))

  async with store.transaction() as db:
    for rule in rules:
      await queries.upsert_contact(db, rule)

  log.info("Bootstrapped %d contact rules", len(rules))
  return len(rules)
