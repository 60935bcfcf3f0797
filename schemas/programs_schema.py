# app/schemas/programs_schema.py
from __future__ import annotations
import logging
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from core.schema_registry import register

logger = logging.getLogger(__name__)

@register
def ensure_programs_schema(engine: Engine):
    """Academic programs. `code` is generated at creation and never changes."""
    with engine.begin() as conn:
        conn.execute(sa_text("""
        CREATE TABLE IF NOT EXISTS programs (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            code        TEXT NOT NULL CHECK (length(code) BETWEEN 1 AND 10),
            name        TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            major       TEXT NOT NULL DEFAULT '',
            is_active   BOOLEAN NOT NULL DEFAULT 1,
            created_at  DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at  DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """))
        conn.execute(sa_text("CREATE UNIQUE INDEX IF NOT EXISTS uq_programs_code ON programs(code)"))
    logger.info("✓ Installed programs")
