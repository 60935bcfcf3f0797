# screens/users/page.py
"""
Users - portal accounts by role, with avatars and instructor course assignments.
"""
from __future__ import annotations

import traceback

import pandas as pd
import streamlit as st

from core.context import current_user_id, mount, services
from core.errors import StoreError, ValidationError
from core.forms import render_notifications, show_field_errors, show_store_error
from core.listing import ALL, full_name
from screens.users.db import (
    ASSIGNABLE_ROLES,
    ENROLLMENT_STATUSES,
    TeacherSubjectResolver,
    UserManager,
    YEAR_LEVELS,
    avatar_placeholder,
)

PAGE_KEY = "users"

ROLE_LABELS = {
    ALL: "All",
    "student": "Students",
    "instructor": "Instructors",
    "registrar": "Registrars",
    "program_head": "Program heads",
    "admin": "Admins",
}


def _manager() -> UserManager:
    svc = services()
    scope = mount(PAGE_KEY)
    mgr = scope.cache.get("manager")
    if mgr is None:
        mgr = UserManager(svc.store, svc.notifier, auth_admin=svc.auth_admin, current_user_id=current_user_id())
        scope.cache["manager"] = mgr
    if not mgr.loaded:
        try:
            mgr.refresh()
        except StoreError as err:
            show_store_error(err, "Failed to load users")
    return mgr


def _programs() -> dict:
    try:
        rows = services().store.select("programs", ["id", "code", "name"], filters={"is_active": True},
                                       order_by="code")
    except StoreError as err:
        show_store_error(err, "Failed to load programs")
        return {}
    return {r["id"]: f"{r['code']} · {r['name']}" for r in rows}


def _user_fields(prefix: str, current: dict | None = None) -> dict:
    current = current or {}
    c1, c2, c3, c4 = st.columns([3, 2, 3, 1])
    with c1:
        first = st.text_input("First name*", value=current.get("first_name") or "", key=f"{prefix}_first")
    with c2:
        middle = st.text_input("Middle name", value=current.get("middle_name") or "", key=f"{prefix}_middle")
    with c3:
        last = st.text_input("Last name*", value=current.get("last_name") or "", key=f"{prefix}_last")
    with c4:
        suffix = st.text_input("Suffix", value=current.get("suffix") or "", key=f"{prefix}_suffix")
    email = st.text_input("Email*", value=current.get("email") or "", key=f"{prefix}_email")
    role_index = ASSIGNABLE_ROLES.index(current["role"]) if current.get("role") in ASSIGNABLE_ROLES else 0
    role = st.selectbox("Role*", ASSIGNABLE_ROLES, index=role_index, format_func=lambda r: r.replace("_", " ").title(),
                        key=f"{prefix}_role")
    fields = {"first_name": first, "middle_name": middle, "last_name": last, "suffix": suffix,
              "email": email, "role": role}

    if role == "student":
        programs = _programs()
        ids = [None] + list(programs)
        c1, c2 = st.columns(2)
        with c1:
            fields["student_id"] = st.text_input("Student ID (blank to generate)",
                                                 value=current.get("student_id") or "", key=f"{prefix}_sid")
            fields["program_id"] = st.selectbox(
                "Program*", ids, index=ids.index(current.get("program_id")) if current.get("program_id") in ids else 0,
                format_func=lambda i: programs.get(i, "Select a program"), key=f"{prefix}_program")
        with c2:
            levels = ("",) + YEAR_LEVELS
            fields["year_level"] = st.selectbox("Year level*", levels,
                                                index=levels.index(current.get("year_level") or ""),
                                                key=f"{prefix}_year")
            fields["section"] = st.text_input("Section", value=current.get("section") or "", key=f"{prefix}_section")
        statuses = ("",) + ENROLLMENT_STATUSES
        fields["enrollment_status"] = st.selectbox(
            "Enrollment status", statuses, index=statuses.index(current.get("enrollment_status") or ""),
            key=f"{prefix}_status")
    elif role in ("instructor", "program_head"):
        fields["department"] = st.text_input("Department*", value=current.get("department") or "",
                                             key=f"{prefix}_dept")
    if not current.get("student_id") and not fields.get("student_id"):
        fields.pop("student_id", None)
    return fields


def _render_create(mgr: UserManager):
    with st.expander("➕ New user", expanded=False):
        fields = _user_fields("user_new")
        if st.button("Create user", type="primary", key="user_create"):
            try:
                mgr.create(fields)
                st.rerun()
            except ValidationError as err:
                show_field_errors(err)
            except StoreError as err:
                show_store_error(err, "Failed to create user")


def _render_subjects(resolver: TeacherSubjectResolver, user: dict, subjects: list):
    st.markdown("##### Assigned courses")
    if subjects:
        st.dataframe(pd.DataFrame([{
            "course": f"{(s['course'] or {}).get('code', '?')} · {(s['course'] or {}).get('name', 'Unknown course')}",
            "section": s["section"],
            "academic_year": s["academic_year"],
            "semester": s["semester"],
        } for s in subjects]), use_container_width=True, hide_index=True)
    else:
        st.caption("No active course assignments.")

    try:
        courses = services().store.select("courses", ["id", "code", "name"], order_by="code")
    except StoreError as err:
        show_store_error(err, "Failed to load courses")
        return
    options = {c["id"]: f"{c['code']} · {c['name']}" for c in courses}
    if not options:
        return
    with st.form(f"assign_{user['id']}", clear_on_submit=True):
        course_id = st.selectbox("Course", list(options), format_func=options.get)
        c1, c2, c3 = st.columns(3)
        section = c1.text_input("Section")
        year = c2.text_input("Academic year", placeholder="2024-2025")
        semester = c3.selectbox("Semester", ("1st", "2nd", "Summer"))
        if st.form_submit_button("Assign course"):
            try:
                resolver.assign_subject(user["id"], course_id, section, year, semester)
                st.success("Course assigned")
                st.rerun()
            except ValidationError as err:
                show_field_errors(err)
            except StoreError as err:
                show_store_error(err, "Failed to assign course")


def _render_edit(mgr: UserManager, user: dict, avatar: bytes | None, subjects: list | None,
                 resolver: TeacherSubjectResolver):
    c1, c2 = st.columns([1, 5])
    with c1:
        if avatar:
            st.image(avatar, width=72)
        else:
            st.markdown(f"### {avatar_placeholder(user)}")
    with c2:
        st.markdown(f"#### {full_name(user) or user['email']}")
        st.caption(f"{user['email']} · {user['role'].replace('_', ' ').title()}")

    fields = _user_fields(f"user_edit_{user['id']}", user)
    if st.button("Save changes", type="primary", key=f"user_save_{user['id']}"):
        try:
            mgr.update(user["id"], fields)
            st.rerun()
        except ValidationError as err:
            show_field_errors(err)
        except StoreError as err:
            show_store_error(err, "Failed to update user")

    b1, b2 = st.columns(2)
    with b1:
        label = "Deactivate" if user.get("is_active") else "Activate"
        if st.button(label, key=f"user_toggle_{user['id']}", use_container_width=True):
            try:
                mgr.toggle(user["id"], user.get("is_active"))
                st.rerun()
            except StoreError as err:
                show_store_error(err, "Failed to update status")
    with b2:
        confirm = st.checkbox("Confirm delete", key=f"user_confirm_{user['id']}")
        if st.button("🗑️ Delete", key=f"user_del_{user['id']}", disabled=not confirm, use_container_width=True):
            try:
                mgr.delete(user["id"])
                resolver.clear(user["id"])
                st.rerun()
            except ValidationError as err:
                show_field_errors(err)
            except StoreError as err:
                show_store_error(err, "Failed to delete user")

    if subjects is not None:
        _render_subjects(resolver, user, subjects)


def render():
    try:
        st.title("👥 Users")
        svc = services()
        scope = mount(PAGE_KEY)
        mgr = _manager()
        render_notifications(svc.notifier)

        stats = mgr.stats()
        cols = st.columns(4)
        cols[0].metric("Users", stats["total"])
        cols[1].metric("Active", stats["active"])
        cols[2].metric("Students", stats["student"])
        cols[3].metric("Instructors", stats["instructor"])

        _render_create(mgr)
        st.divider()

        f1, f2 = st.columns([2, 1])
        with f1:
            search = st.text_input("Search", placeholder="Name, email, student ID or department", key="user_search")
        with f2:
            role = st.selectbox("Role", list(ROLE_LABELS), format_func=ROLE_LABELS.get, key="user_role")

        view = mgr.view(search, role)
        if view.empty_state:
            st.info(view.empty_message)
            return

        avatars = mgr.avatar_images(svc.storage, svc.settings.storage.buckets.avatar,
                                      svc.settings.storage.signed_url_ttl_seconds)
        resolver = TeacherSubjectResolver(svc.store, cache=scope.cache)
        try:
            subjects = resolver.prefetch(view.items, role)
        except StoreError as err:
            show_store_error(err, "Failed to load course assignments")
            subjects = {}

        df = pd.DataFrame(view.items)
        df["name"] = [full_name(r) for r in view.items]
        df["status"] = df["is_active"].map({True: "Active", False: "Inactive"})
        table_cols = ["name", "email", "role", "student_id", "department", "status"]
        if subjects:
            df["courses"] = [len(subjects.get(r["id"], [])) for r in view.items]
            table_cols.append("courses")
        st.dataframe(df[table_cols], use_container_width=True, hide_index=True)

        options = {r["id"]: f"{full_name(r) or r['email']} ({r['email']})" for r in view.items}
        selected = st.selectbox("Select a user to manage", list(options), format_func=options.get,
                                key="user_selected")
        user = next((r for r in view.items if r["id"] == selected), None)
        if user:
            _render_edit(mgr, user, avatars.get(user["id"]), subjects.get(user["id"]), resolver)

    except Exception as e:
        st.error("An unexpected error occurred while rendering the Users page.")
        st.exception(e)
        st.code("".join(traceback.format_exc()))


render()
