# screens/dashboard/page.py
"""
Dashboard - headline counts and the latest activity across the portal.
"""
from __future__ import annotations

import traceback

import pandas as pd
import streamlit as st

from core.context import mount, services
from screens.dashboard.db import dashboard_counts, recent_activity

PAGE_KEY = "dashboard"

KIND_ICONS = {"user": "👤", "course": "📚", "program": "🎓", "announcement": "📢"}


def render():
    try:
        st.title("🏠 Dashboard")
        mount(PAGE_KEY)
        store = services().store

        counts = dashboard_counts(store)
        r1 = st.columns(3)
        r1[0].metric("Users", counts["users"])
        r1[1].metric("Active users", counts["active_users"])
        r1[2].metric("Programs", counts["programs"])
        r2 = st.columns(3)
        r2[0].metric("Courses", counts["courses"])
        r2[1].metric("Announcements", counts["announcements"])
        r2[2].metric("Active announcements", counts["active_announcements"])

        st.subheader("Recent activity")
        items = recent_activity(store, limit=10)
        if not items:
            st.info("Nothing has been added yet.")
            return
        df = pd.DataFrame(items)
        df["kind"] = df["kind"].map(lambda k: f"{KIND_ICONS.get(k, '')} {k.title()}")
        st.dataframe(df[["kind", "label", "created_at"]], use_container_width=True, hide_index=True)

    except Exception as e:
        st.error("An unexpected error occurred while rendering the Dashboard.")
        st.exception(e)
        st.code("".join(traceback.format_exc()))


render()
