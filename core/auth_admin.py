# app/core/auth_admin.py
"""
Client for the auth-admin endpoint that removes a sign-in account.

The profile row and the auth account live in different systems; the
account delete is attempted first and is best-effort: any failure is
logged and reported as False so the profile delete still goes ahead.
"""
from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class AuthAdminClient:
    def __init__(self, delete_user_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.delete_user_url = delete_user_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, cfg) -> "AuthAdminClient":
        return cls(cfg.delete_user_url, timeout=cfg.timeout_seconds)

    def delete_auth_account(self, user_id: str) -> bool:
        try:
            resp = self.session.post(
                self.delete_user_url,
                json={"userId": user_id},
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Auth user delete API failed for %s: %s", user_id, e)
            return False
        if resp.status_code != 200:
            try:
                body = resp.json()
                detail = body.get("error") if isinstance(body, dict) else body
            except ValueError:
                detail = resp.text[:200]
            logger.warning("Auth user delete API returned %s for %s: %s", resp.status_code, user_id, detail)
            return False
        logger.info("Deleted auth account %s", user_id)
        return True
