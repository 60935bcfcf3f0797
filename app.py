# app.py
from __future__ import annotations

import logging
from pathlib import Path

import streamlit as st

from core.context import ensure_engine, services
from core.db import configure_logging, init_db
from core.policy import sign_in, visible_pages_for

logger = logging.getLogger(__name__)

APP_DIR = Path(__file__).resolve().parent
SCREENS_DIR = APP_DIR / "screens"


def _hide_sidebar():
    st.markdown("""
        <style>
            section[data-testid="stSidebar"] {
                display: none;
            }
        </style>
    """, unsafe_allow_html=True)


def _build_pages(role: str | None):
    pages, missing = [], []
    for i, (stem, title) in enumerate(visible_pages_for(role)):
        page_path = SCREENS_DIR / stem / "page.py"
        if not page_path.exists():
            missing.append(stem)
            continue
        pages.append(st.Page(f"screens/{stem}/page.py", title=title, default=(i == 0), url_path=stem))
    if missing:
        st.sidebar.warning(f"Missing pages: {missing}")
    return pages


def _render_login():
    _hide_sidebar()
    st.title("Admin Login")
    with st.form("login_form"):
        email = st.text_input("Email", value="admin@example.com")
        st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login")
    if submitted:
        user = sign_in(services().store, email)
        if user is None:
            st.error("This account cannot access the admin portal.")
            return
        st.session_state["user"] = user
        logger.info("Signed in %s (%s)", user["email"], user["role"])
        st.success(f"Logged in as {user['email']}! Redirecting...")
        st.rerun()


def _logout():
    svc = st.session_state.get("services")
    if svc is not None:
        svc.lifecycle.close_all()
    for key in [k for k in st.session_state.keys() if k != "engine"]:
        del st.session_state[key]


def main():
    svc = services()
    configure_logging(svc.settings.app.log_level)
    st.set_page_config(page_title=svc.settings.app.name, layout="wide")

    # Run the schema installers once per session
    if "db_initialized" not in st.session_state:
        try:
            init_db(ensure_engine(svc.settings))
        except Exception as e:
            st.error("Database schema initialization failed. See details below.")
            with st.expander("Diagnostics"):
                st.exception(e)
            st.stop()
        st.session_state["db_initialized"] = True

    user = st.session_state.get("user")
    if not user:
        _render_login()
        return

    left, right = st.columns([0.75, 0.25])
    with left:
        st.caption(f"Signed in as **{user['full_name']}** · _{user['role']}_")
    with right:
        if st.button("Logout", key="logout_top"):
            _logout()
            st.rerun()

    pages = _build_pages(user.get("role"))
    if not pages:
        st.error("No pages available for your current role.")
        return
    nav = st.navigation(pages, position="sidebar")
    nav.run()


if __name__ == "__main__":
    main()
