# app/schemas/teacher_subjects_schema.py
from __future__ import annotations
import logging
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from core.schema_registry import register

logger = logging.getLogger(__name__)

@register
def ensure_teacher_subjects_schema(engine: Engine):
    """Instructor <-> course assignments per section, academic year and semester."""
    with engine.begin() as conn:
        conn.execute(sa_text("""
        CREATE TABLE IF NOT EXISTS teacher_subjects (
            id             INTEGER PRIMARY KEY AUTOINCREMENT,
            teacher_id     TEXT NOT NULL,
            subject_id     INTEGER NOT NULL,
            section        TEXT NOT NULL,
            academic_year  TEXT NOT NULL,
            semester       TEXT NOT NULL,
            is_active      BOOLEAN NOT NULL DEFAULT 1,
            created_at     DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(teacher_id, subject_id, section, academic_year, semester),
            FOREIGN KEY(teacher_id) REFERENCES user_profiles(id) ON DELETE CASCADE,
            FOREIGN KEY(subject_id) REFERENCES courses(id) ON DELETE CASCADE
        )
        """))
        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS ix_teacher_subjects_teacher ON teacher_subjects(teacher_id)"))
    logger.info("✓ Installed teacher_subjects")
