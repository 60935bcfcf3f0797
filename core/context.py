# app/core/context.py
"""
Session-scoped services shared by every page.

Created lazily on first use and cached in st.session_state, the same way
the shell caches its engine.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import streamlit as st

from core.auth_admin import AuthAdminClient
from core.db import get_engine
from core.lifecycle import MountScope, ScreenLifecycle
from core.notify import Notifier
from core.settings import Settings, load_settings
from core.storage import ObjectStorage
from core.store import Store


@dataclass
class Services:
    settings: Settings
    store: Store
    storage: ObjectStorage
    auth_admin: AuthAdminClient
    notifier: Notifier
    lifecycle: ScreenLifecycle


def ensure_engine(settings: Settings):
    if "engine" not in st.session_state:
        st.session_state["engine"] = get_engine(settings.db.url)
    return st.session_state["engine"]


def services() -> Services:
    svc: Optional[Services] = st.session_state.get("services")
    if svc is None:
        settings = load_settings()
        svc = Services(
            settings=settings,
            store=Store(ensure_engine(settings)),
            storage=ObjectStorage.from_settings(settings.storage),
            auth_admin=AuthAdminClient.from_settings(settings.auth_admin),
            notifier=Notifier(),
            lifecycle=ScreenLifecycle(),
        )
        st.session_state["services"] = svc
    return svc


def mount(screen: str) -> MountScope:
    """Scope of the page being rendered; leaving a page closes its scope."""
    return services().lifecycle.activate(screen)


def current_user_id() -> Optional[str]:
    return (st.session_state.get("user") or {}).get("id")
