"""
SQLite schema definitions for the Outlook metadata store.

Database: <data_dir>/emails.db
"""

from __future__ import annotations

SCHEMA_SQL = """
-- Message headers with classification
CREATE TABLE IF NOT EXISTS emails (
    id TEXT PRIMARY KEY,
    conversation_id TEXT,
    subject TEXT NOT NULL DEFAULT '',
    from_email TEXT NOT NULL DEFAULT '',
    from_name TEXT,
    to_json TEXT NOT NULL DEFAULT '[]',
    cc_json TEXT NOT NULL DEFAULT '[]',
    received_at TEXT NOT NULL,
    importance TEXT NOT NULL DEFAULT 'normal',
    is_read INTEGER NOT NULL DEFAULT 0,
    has_attachments INTEGER NOT NULL DEFAULT 0,
    body_preview TEXT NOT NULL DEFAULT '',
    parent_folder_id TEXT NOT NULL DEFAULT '',
    categories_json TEXT NOT NULL DEFAULT '[]',
    category TEXT,
    confidence REAL,
    entity_name TEXT,
    entity_path TEXT,
    priority_score INTEGER CHECK (priority_score IS NULL OR priority_score BETWEEN 0 AND 100),
    priority_level TEXT,
    action_required INTEGER,
    archived_locally INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_emails_received ON emails(received_at DESC);
CREATE INDEX IF NOT EXISTS idx_emails_category ON emails(category);
CREATE INDEX IF NOT EXISTS idx_emails_priority ON emails(priority_score DESC);
CREATE INDEX IF NOT EXISTS idx_emails_from ON emails(from_email);
CREATE INDEX IF NOT EXISTS idx_emails_folder ON emails(parent_folder_id);

-- Mail folders
CREATE TABLE IF NOT EXISTS folders (
    id TEXT PRIMARY KEY,
    display_name TEXT NOT NULL DEFAULT '',
    parent_id TEXT,
    child_count INTEGER NOT NULL DEFAULT 0,
    unread_count INTEGER NOT NULL DEFAULT 0,
    total_count INTEGER NOT NULL DEFAULT 0
);

-- Contact rules used by the classifier
CREATE TABLE IF NOT EXISTS contacts (
    match_type TEXT NOT NULL CHECK (match_type IN ('email', 'domain', 'noise_domain')),
    match_value TEXT NOT NULL CHECK (match_value = lower(match_value)),
    entity_type TEXT NOT NULL,
    entity_name TEXT NOT NULL,
    entity_path TEXT,
    PRIMARY KEY (match_type, match_value)
);

-- Sync bookkeeping (delta cursor, timestamps, last error)
CREATE TABLE IF NOT EXISTS sync_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

PRAGMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA busy_timeout=5000;
PRAGMA synchronous=NORMAL;
"""
