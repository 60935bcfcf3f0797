# screens/announcements/page.py
"""
Announcements - create, edit, activate/deactivate and delete portal announcements.
"""
from __future__ import annotations

import traceback

import pandas as pd
import streamlit as st

from core.context import mount, services
from core.errors import StoreError, ValidationError
from core.forms import render_notifications, show_field_errors, show_store_error
from core.images import is_data_uri
from screens.announcements.db import AnnouncementManager, CATEGORY_OPTIONS, PRIORITY_OPTIONS

PAGE_KEY = "announcements"

PRIORITY_BADGE = {"high": "🔴 High", "medium": "🟡 Medium", "low": "🟢 Low"}


def _manager() -> AnnouncementManager:
    svc = services()
    scope = mount(PAGE_KEY)
    mgr = scope.cache.get("manager")
    if mgr is None:
        mgr = AnnouncementManager(svc.store, svc.storage, svc.notifier,
                                  bucket=svc.settings.storage.buckets.announcement)
        mgr.max_upload_bytes = svc.settings.storage.max_upload_bytes
        scope.cache["manager"] = mgr
    if not mgr.loaded:
        try:
            mgr.refresh()
        except StoreError as err:
            show_store_error(err, "Failed to load announcements")
    return mgr


def _form_fields(prefix: str, current: dict | None = None) -> dict:
    current = current or {}
    title = st.text_input("Title*", value=current.get("title") or "", key=f"{prefix}_title")
    content = st.text_area("Content*", value=current.get("content") or "", key=f"{prefix}_content")
    c1, c2, c3 = st.columns(3)
    with c1:
        author = st.text_input("Author*", value=current.get("author") or "", key=f"{prefix}_author")
    with c2:
        priority = st.selectbox("Priority", PRIORITY_OPTIONS,
                                index=PRIORITY_OPTIONS.index(current.get("priority") or "medium"),
                                key=f"{prefix}_priority")
    with c3:
        category = st.selectbox("Category", CATEGORY_OPTIONS,
                                index=CATEGORY_OPTIONS.index(current.get("category") or "General"),
                                key=f"{prefix}_category")
    date_value = pd.to_datetime(current.get("date")).date() if current.get("date") else None
    when = st.date_input("Date", value=date_value, key=f"{prefix}_date")
    return {"title": title, "content": content, "author": author,
            "priority": priority, "category": category, "date": when}


def _render_create(mgr: AnnouncementManager):
    with st.expander("➕ New announcement", expanded=False):
        with st.form("announcement_create", clear_on_submit=True):
            fields = _form_fields("new")
            upload = st.file_uploader("Banner image", type=["png", "jpg", "jpeg", "webp", "gif"], key="new_image")
            submitted = st.form_submit_button("Create", type="primary")
        if submitted:
            try:
                mgr.create_with_image(fields, upload.getvalue() if upload else None,
                                      upload.name if upload else "")
                st.rerun()
            except ValidationError as err:
                show_field_errors(err)
            except StoreError as err:
                show_store_error(err, "Failed to create announcement")


def _render_edit(mgr: AnnouncementManager, row: dict):
    st.markdown(f"#### ✏️ {row['title']}")
    if row.get("image"):
        if is_data_uri(row["image"]):
            st.caption("Image stored inline")
        data = mgr.banner(row["image"])
        if data:
            st.image(data, width=320)
        else:
            st.caption("🖼️ Image unavailable")
    with st.form(f"announcement_edit_{row['id']}"):
        fields = _form_fields(f"edit_{row['id']}", row)
        upload = st.file_uploader("Replace image", type=["png", "jpg", "jpeg", "webp", "gif"],
                                  key=f"edit_image_{row['id']}")
        remove = st.checkbox("Remove current image", key=f"rm_image_{row['id']}") if row.get("image") else False
        saved = st.form_submit_button("Save changes", type="primary")
    if saved:
        patch = dict(fields)
        if remove and not upload:
            patch["image"] = None
        try:
            mgr.update_with_image(row["id"], patch, upload.getvalue() if upload else None,
                                  upload.name if upload else "")
            st.rerun()
        except ValidationError as err:
            show_field_errors(err)
        except StoreError as err:
            show_store_error(err, "Failed to update announcement")

    c1, c2 = st.columns(2)
    with c1:
        label = "Deactivate" if row.get("is_active") else "Activate"
        if st.button(label, key=f"toggle_{row['id']}", use_container_width=True):
            try:
                mgr.toggle(row["id"], row.get("is_active"))
                st.rerun()
            except StoreError as err:
                show_store_error(err, "Failed to update status")
    with c2:
        confirm = st.checkbox("Confirm delete", key=f"confirm_del_{row['id']}")
        if st.button("🗑️ Delete", key=f"delete_{row['id']}", disabled=not confirm, use_container_width=True):
            try:
                mgr.delete(row["id"])
                st.rerun()
            except StoreError as err:
                show_store_error(err, "Failed to delete announcement")


def render():
    try:
        st.title("📢 Announcements")
        mgr = _manager()
        render_notifications(services().notifier)

        stats = mgr.stats()
        cols = st.columns(4)
        cols[0].metric("Total", stats["total"])
        cols[1].metric("Active", stats["active"])
        cols[2].metric("High priority", stats["high_priority"])
        cols[3].metric("Inactive", stats["inactive"])

        _render_create(mgr)
        st.divider()

        f1, f2, f3 = st.columns([2, 1, 1])
        with f1:
            search = st.text_input("Search", placeholder="Title, content or author", key="ann_search")
        with f2:
            priority = st.selectbox("Priority", ("all",) + PRIORITY_OPTIONS, key="ann_priority")
        with f3:
            category = st.selectbox("Category", ("all",) + CATEGORY_OPTIONS, key="ann_category")

        view = mgr.view(search, priority, category)
        if view.empty_state:
            st.info(view.empty_message)
            return

        df = pd.DataFrame(view.items)
        df["priority"] = df["priority"].map(PRIORITY_BADGE).fillna(df["priority"])
        df["status"] = df["is_active"].map({True: "Active", False: "Inactive"})
        st.dataframe(df[["title", "author", "category", "priority", "date", "status"]],
                     use_container_width=True, hide_index=True)

        options = {r["id"]: f"{r['title']} ({r['date']})" for r in view.items}
        selected = st.selectbox("Select an announcement to manage", list(options),
                                format_func=options.get, key="ann_selected")
        row = next((r for r in view.items if r["id"] == selected), None)
        if row:
            _render_edit(mgr, row)

    except Exception as e:
        st.error("An unexpected error occurred while rendering the Announcements page.")
        st.exception(e)
        st.code("".join(traceback.format_exc()))


render()
