# screens/dashboard/db.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from core.errors import StoreError

logger = logging.getLogger(__name__)

# (kind, table, label column, exclude)
ACTIVITY_SOURCES = (
    ("user", "user_profiles", "email", {"role": "superadmin"}),
    ("course", "courses", "name", None),
    ("program", "programs", "name", None),
    ("announcement", "announcements", "title", None),
)


def dashboard_counts(store) -> Dict[str, int]:
    """Headline numbers; a table that cannot be read counts as 0 and is logged."""
    queries = {
        "users": ("user_profiles", None, {"role": "superadmin"}),
        "active_users": ("user_profiles", {"is_active": True}, {"role": "superadmin"}),
        "courses": ("courses", None, None),
        "programs": ("programs", None, None),
        "announcements": ("announcements", None, None),
        "active_announcements": ("announcements", {"is_active": True}, None),
    }
    counts: Dict[str, int] = {}
    for key, (table, filters, exclude) in queries.items():
        try:
            counts[key] = store.count(table, filters=filters, exclude=exclude)
        except StoreError as err:
            logger.error("Dashboard count %s failed: %s", key, err)
            counts[key] = 0
    return counts


def recent_activity(store, limit: int = 5) -> List[Dict[str, Any]]:
    """Most recently created users, courses, programs and announcements, newest first."""
    items: List[Dict[str, Any]] = []
    for kind, table, label_col, exclude in ACTIVITY_SOURCES:
        try:
            rows = store.select(table, ["id", label_col, "created_at"], exclude=exclude,
                                order_by="created_at", ascending=False)
        except StoreError as err:
            logger.error("Recent activity for %s failed: %s", table, err)
            continue
        for row in rows[:limit]:
            items.append({
                "kind": kind,
                "id": row["id"],
                "label": row.get(label_col) or "",
                "created_at": str(row.get("created_at") or ""),
            })
    items.sort(key=lambda i: i["created_at"], reverse=True)
    return items[:limit]
