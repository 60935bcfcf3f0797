# screens/programs/page.py
"""
Programs - academic programs. The program code is suggested from the name,
can be adjusted when the program is created and cannot be edited afterwards.
"""
from __future__ import annotations

import traceback

import pandas as pd
import streamlit as st

from core.context import mount, services
from core.errors import StoreError, ValidationError
from core.forms import render_notifications, show_field_errors, show_store_error
from screens.programs.db import ProgramManager

PAGE_KEY = "programs"


def _manager() -> ProgramManager:
    svc = services()
    scope = mount(PAGE_KEY)
    mgr = scope.cache.get("manager")
    if mgr is None:
        mgr = ProgramManager(svc.store, svc.notifier)
        scope.cache["manager"] = mgr
    if not mgr.loaded:
        try:
            mgr.refresh()
        except StoreError as err:
            show_store_error(err, "Failed to load programs")
    return mgr


def _render_create(mgr: ProgramManager):
    with st.expander("➕ New program", expanded=False):
        name = st.text_input("Program name*", key="prog_new_name")
        suggested = mgr.preview_code(name)
        code = st.text_input("Program code", value=suggested, max_chars=10,
                             help="Suggested from the name; cannot be changed later",
                             key=f"prog_code_{suggested}")
        description = st.text_area("Description", key="prog_new_desc")
        major = st.text_input("Major", key="prog_new_major")
        if st.button("Create program", type="primary", key="prog_create"):
            try:
                mgr.create({"name": name, "code": code, "description": description, "major": major})
                st.rerun()
            except ValidationError as err:
                show_field_errors(err)
            except StoreError as err:
                show_store_error(err, "Failed to create program")


def _render_edit(mgr: ProgramManager, row: dict):
    st.markdown(f"#### ✏️ {row['code']}")
    with st.form(f"program_edit_{row['id']}"):
        st.text_input("Program code", value=row["code"], disabled=True)
        name = st.text_input("Program name*", value=row["name"])
        description = st.text_area("Description", value=row.get("description") or "")
        major = st.text_input("Major", value=row.get("major") or "")
        saved = st.form_submit_button("Save changes", type="primary")
    if saved:
        try:
            mgr.update(row["id"], {"name": name, "description": description, "major": major})
            st.rerun()
        except ValidationError as err:
            show_field_errors(err)
        except StoreError as err:
            show_store_error(err, "Failed to update program")

    c1, c2 = st.columns(2)
    with c1:
        label = "Deactivate" if row.get("is_active") else "Activate"
        if st.button(label, key=f"prog_toggle_{row['id']}", use_container_width=True):
            try:
                mgr.toggle(row["id"], row.get("is_active"))
                st.rerun()
            except StoreError as err:
                show_store_error(err, "Failed to update status")
    with c2:
        confirm = st.checkbox("Confirm delete", key=f"prog_confirm_{row['id']}")
        if st.button("🗑️ Delete", key=f"prog_del_{row['id']}", disabled=not confirm, use_container_width=True):
            try:
                mgr.delete(row["id"])
                st.rerun()
            except StoreError as err:
                show_store_error(err, "Failed to delete program")


def render():
    try:
        st.title("🎓 Programs")
        mgr = _manager()
        render_notifications(services().notifier)

        stats = mgr.stats()
        cols = st.columns(3)
        cols[0].metric("Programs", stats["total"])
        cols[1].metric("Active", stats["active"])
        cols[2].metric("Inactive", stats["inactive"])

        _render_create(mgr)
        st.divider()

        search = st.text_input("Search", placeholder="Name, description, major or code", key="prog_search")
        view = mgr.view(search)
        if view.empty_state:
            st.info(view.empty_message)
            return

        df = pd.DataFrame(view.items)
        df["status"] = df["is_active"].map({True: "Active", False: "Inactive"})
        st.dataframe(df[["code", "name", "major", "description", "status"]], use_container_width=True, hide_index=True)

        options = {r["id"]: f"{r['code']} · {r['name']}" for r in view.items}
        selected = st.selectbox("Select a program to manage", list(options), format_func=options.get,
                                key="prog_selected")
        row = next((r for r in view.items if r["id"] == selected), None)
        if row:
            _render_edit(mgr, row)

    except Exception as e:
        st.error("An unexpected error occurred while rendering the Programs page.")
        st.exception(e)
        st.code("".join(traceback.format_exc()))


render()
