# app/schemas/announcements_schema.py
from __future__ import annotations
import logging
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from core.schema_registry import register

logger = logging.getLogger(__name__)

@register
def ensure_announcements_schema(engine: Engine):
    """Announcements shown on the portal landing page and dashboards."""
    with engine.begin() as conn:
        conn.execute(sa_text("""
        CREATE TABLE IF NOT EXISTS announcements (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            title       TEXT NOT NULL,
            content     TEXT NOT NULL,
            author      TEXT NOT NULL,
            date        TEXT NOT NULL,
            priority    TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low','medium','high')),
            category    TEXT NOT NULL DEFAULT 'General',
            image       TEXT,
            is_active   BOOLEAN NOT NULL DEFAULT 1,
            created_at  DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at  DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """))
        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS ix_announcements_created ON announcements(created_at)"))
        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS ix_announcements_active ON announcements(is_active)"))
    logger.info("✓ Installed announcements")
