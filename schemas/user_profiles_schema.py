# app/schemas/user_profiles_schema.py
from __future__ import annotations
import logging
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from core.schema_registry import register

logger = logging.getLogger(__name__)

ROLES = ("student", "instructor", "registrar", "program_head", "admin", "superadmin")

def _has_column(conn, table: str, col: str) -> bool:
    rows = conn.execute(sa_text(f"PRAGMA table_info({table})")).fetchall()
    return any(r[1].lower() == col.lower() for r in rows)

@register
def ensure_user_profiles_schema(engine: Engine):
    """
    Portal user profiles. `id` is the auth provider's account id (uuid text).
    Student and instructor attributes are nullable and only set for that role.
    """
    role_list = ", ".join(f"'{r}'" for r in ROLES)
    with engine.begin() as conn:
        conn.execute(sa_text(f"""
        CREATE TABLE IF NOT EXISTS user_profiles (
            id                  TEXT PRIMARY KEY,
            email               TEXT NOT NULL UNIQUE,
            role                TEXT NOT NULL CHECK (role IN ({role_list})),
            first_name          TEXT NOT NULL,
            middle_name         TEXT,
            last_name           TEXT NOT NULL,
            suffix              TEXT,
            is_active           BOOLEAN NOT NULL DEFAULT 1,
            student_id          TEXT UNIQUE,
            program_id          INTEGER,
            year_level          TEXT,
            section             TEXT,
            enrollment_status   TEXT,
            department          TEXT,
            profile_picture_url TEXT,
            created_at          DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at          DATETIME DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(program_id) REFERENCES programs(id) ON DELETE SET NULL
        )
        """))
        # older installs predate the avatar column
        if not _has_column(conn, "user_profiles", "profile_picture_url"):
            conn.execute(sa_text("ALTER TABLE user_profiles ADD COLUMN profile_picture_url TEXT"))
        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS ix_user_profiles_role ON user_profiles(role)"))
        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS ix_user_profiles_created ON user_profiles(created_at)"))
    logger.info("✓ Installed user_profiles")
