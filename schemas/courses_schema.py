# app/schemas/courses_schema.py
"""
Courses and their sections.
Sections cascade with their course; the engine turns SQLite foreign keys on.
"""
from __future__ import annotations
import logging
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from core.schema_registry import register

logger = logging.getLogger(__name__)

@register
def ensure_courses_schema(engine: Engine):
    with engine.begin() as conn:
        conn.execute(sa_text("""
        CREATE TABLE IF NOT EXISTS courses (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            code        TEXT NOT NULL UNIQUE,
            name        TEXT NOT NULL,
            description TEXT,
            units       INTEGER NOT NULL DEFAULT 3 CHECK (units BETWEEN 1 AND 6),
            image_url   TEXT,
            summer      BOOLEAN NOT NULL DEFAULT 0,
            year_level  TEXT,
            created_by  TEXT,
            created_at  DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at  DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """))
        conn.execute(sa_text("""
        CREATE TABLE IF NOT EXISTS sections (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            course_id     INTEGER NOT NULL,
            section_name  TEXT NOT NULL,
            capacity      INTEGER NOT NULL CHECK (capacity > 0),
            schedule      TEXT NOT NULL,
            room          TEXT NOT NULL,
            instructor    TEXT NOT NULL,
            created_at    DATETIME DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(course_id) REFERENCES courses(id) ON DELETE CASCADE
        )
        """))
        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS ix_sections_course ON sections(course_id)"))
    logger.info("✓ Installed courses & sections")
