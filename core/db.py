# app/core/db.py
from __future__ import annotations
import logging
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from core.schema_registry import auto_discover, run_all

logger = logging.getLogger(__name__)

def get_engine(db_url: str) -> Engine:
    if db_url.startswith("sqlite:///"):
        db_file = db_url.replace("sqlite:///", "")
        if db_file and db_file != ":memory:":
            Path(db_file).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(db_url, future=True)
    if engine.dialect.name == "sqlite":
        # Section -> course cascade relies on the store enforcing foreign keys
        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()
    return engine

def init_db(engine: Engine) -> None:
    # 1) import app/schemas/*.py so their installers register
    auto_discover("schemas")

    # 2) run all registered installers (idempotent)
    run_all(engine)

_logging_configured = False

def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once per process (Streamlit reruns the script)."""
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _logging_configured = True
