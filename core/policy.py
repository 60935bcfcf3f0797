# app/core/policy.py
"""
Who may use the admin portal, and which pages the shell offers.

Only profiles with an admin role can sign in. A fresh install without any
admin profile lets the first sign-in through so the first accounts can be
created.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from core.errors import StoreError

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({"admin", "superadmin"})

# (route stem, title); the first entry is the default page
PAGES: Tuple[Tuple[str, str], ...] = (
    ("dashboard", "🏠 Dashboard"),
    ("announcements", "📢 Announcements"),
    ("courses", "📚 Courses"),
    ("programs", "🎓 Programs"),
    ("users", "👥 Users"),
)


def can_use_portal(role: Optional[str]) -> bool:
    return role in ADMIN_ROLES


def visible_pages_for(role: Optional[str]) -> List[Tuple[str, str]]:
    return list(PAGES) if can_use_portal(role) else []


def sign_in(store, email: str) -> Optional[Dict[str, Any]]:
    """Session user for `email`, or None when the account may not sign in.

    Passwords are checked by the auth provider, not here.
    """
    email = (email or "").strip().lower()
    if not email:
        return None
    try:
        rows = store.select("user_profiles", ["id", "email", "role", "first_name", "last_name", "is_active"],
                            filters={"email": email})
        if not rows:
            if store.count("user_profiles", filters={"role": "admin"}) or \
                    store.count("user_profiles", filters={"role": "superadmin"}):
                logger.info("Sign-in refused for unknown account %s", email)
                return None
            logger.warning("No admin profiles yet; letting %s in to bootstrap", email)
            return {"id": None, "email": email, "full_name": email, "role": "superadmin"}
    except StoreError as err:
        logger.error("Sign-in lookup failed for %s: %s", email, err)
        return None
    profile = rows[0]
    if not profile["is_active"] or not can_use_portal(profile["role"]):
        logger.info("Sign-in refused for %s (role=%s, active=%s)", email, profile["role"], profile["is_active"])
        return None
    name = " ".join(p for p in (profile.get("first_name"), profile.get("last_name")) if p)
    return {"id": profile["id"], "email": profile["email"], "full_name": name or email, "role": profile["role"]}
