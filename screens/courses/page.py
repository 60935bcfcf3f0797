# screens/courses/page.py
"""
Courses - course catalog with images, units, year level and per-course sections.
"""
from __future__ import annotations

import traceback

import pandas as pd
import streamlit as st

from core.context import current_user_id, mount, services
from core.errors import StoreError, ValidationError
from core.forms import render_notifications, show_field_errors, show_store_error
from screens.courses.db import (
    CourseManager,
    DEFAULT_UNITS,
    MAX_UNITS,
    MIN_UNITS,
    SectionManager,
    YEAR_LEVELS,
)

PAGE_KEY = "courses"


def _manager() -> CourseManager:
    svc = services()
    scope = mount(PAGE_KEY)
    mgr = scope.cache.get("manager")
    if mgr is None:
        mgr = CourseManager(svc.store, svc.storage, svc.notifier, bucket=svc.settings.storage.buckets.course)
        mgr.max_upload_bytes = svc.settings.storage.max_upload_bytes
        scope.cache["manager"] = mgr
    if not mgr.loaded:
        try:
            mgr.refresh()
        except StoreError as err:
            show_store_error(err, "Failed to load courses")
    return mgr


def _images(mgr: CourseManager) -> dict:
    """Blob handles, re-resolved whenever the course rows changed."""
    scope = mount(PAGE_KEY)
    signature = tuple((r["id"], r.get("image_url")) for r in mgr.rows)
    if scope.cache.get("image_signature") != signature:
        scope.apply(lambda handles: scope.cache.update(images=handles), mgr.resolve_images(scope))
        scope.cache["image_signature"] = signature
    return scope.cache.get("images", {})


def _course_fields(prefix: str, current: dict | None = None) -> dict:
    current = current or {}
    c1, c2 = st.columns([1, 2])
    with c1:
        code = st.text_input("Code*", value=current.get("code") or "", key=f"{prefix}_code")
    with c2:
        name = st.text_input("Name*", value=current.get("name") or "", key=f"{prefix}_name")
    description = st.text_area("Description", value=current.get("description") or "", key=f"{prefix}_desc")
    c3, c4, c5 = st.columns(3)
    with c3:
        units = st.number_input("Units", min_value=MIN_UNITS, max_value=MAX_UNITS,
                                value=int(current.get("units") or DEFAULT_UNITS), step=1, key=f"{prefix}_units")
    with c4:
        levels = ("",) + YEAR_LEVELS
        year_level = st.selectbox("Year level", levels, index=levels.index(current.get("year_level") or ""),
                                  key=f"{prefix}_year")
    with c5:
        summer = st.checkbox("Summer course", value=bool(current.get("summer")), key=f"{prefix}_summer")
    return {"code": code, "name": name, "description": description, "units": units,
            "year_level": year_level, "summer": summer}


def _render_create(mgr: CourseManager):
    with st.expander("➕ New course", expanded=False):
        with st.form("course_create", clear_on_submit=True):
            fields = _course_fields("new")
            upload = st.file_uploader("Course image", type=["png", "jpg", "jpeg", "webp", "gif"], key="course_new_img")
            submitted = st.form_submit_button("Create", type="primary")
        if submitted:
            fields["created_by"] = current_user_id()
            try:
                mgr.create_with_image(fields, upload.getvalue() if upload else None,
                                      upload.name if upload else "")
                st.rerun()
            except ValidationError as err:
                show_field_errors(err)
            except StoreError as err:
                show_store_error(err, "Failed to create course")


def _render_sections(course: dict):
    svc = services()
    scope = mount(PAGE_KEY)
    key = f"sections:{course['id']}"
    sections = scope.cache.get(key)
    if sections is None:
        sections = SectionManager(svc.store, svc.notifier, course_id=course["id"])
        scope.cache[key] = sections
    if not sections.loaded:
        try:
            sections.refresh()
        except StoreError as err:
            show_store_error(err, "Failed to load sections")
            return

    st.markdown("##### Sections")
    if sections.rows:
        st.dataframe(pd.DataFrame(sections.rows)[["section_name", "capacity", "schedule", "room", "instructor"]],
                     use_container_width=True, hide_index=True)
        names = {r["id"]: r["section_name"] for r in sections.rows}
        c1, c2 = st.columns([3, 1])
        with c1:
            target = st.selectbox("Section", list(names), format_func=names.get, key=f"sec_pick_{course['id']}")
        with c2:
            if st.button("Delete section", key=f"sec_del_{course['id']}"):
                try:
                    sections.delete(target)
                    st.rerun()
                except StoreError as err:
                    show_store_error(err, "Failed to delete section")
    else:
        st.caption("No sections yet.")

    with st.form(f"section_create_{course['id']}", clear_on_submit=True):
        c1, c2 = st.columns(2)
        with c1:
            section_name = st.text_input("Section name*")
            schedule = st.text_input("Schedule*", placeholder="MWF 9:00-10:00")
        with c2:
            room = st.text_input("Room*")
            instructor = st.text_input("Instructor*")
        capacity = st.number_input("Capacity", min_value=1, value=SectionManager.DEFAULT_CAPACITY, step=1)
        if st.form_submit_button("Add section"):
            try:
                sections.create({"section_name": section_name, "schedule": schedule, "room": room,
                                 "instructor": instructor, "capacity": capacity})
                st.rerun()
            except ValidationError as err:
                show_field_errors(err)
            except StoreError as err:
                show_store_error(err, "Failed to create section")


def _render_edit(mgr: CourseManager, course: dict, images: dict):
    scope = mount(PAGE_KEY)
    st.markdown(f"#### ✏️ {course['code']} · {course['name']}")
    handle = images.get(course["id"])
    data = scope.registry.get(handle) if handle else None
    if data:
        st.image(data, width=320)
    elif course.get("image_url"):
        st.caption("🖼️ Image unavailable")

    with st.form(f"course_edit_{course['id']}"):
        fields = _course_fields(f"edit_{course['id']}", course)
        upload = st.file_uploader("Replace image", type=["png", "jpg", "jpeg", "webp", "gif"],
                                  key=f"course_img_{course['id']}")
        saved = st.form_submit_button("Save changes", type="primary")
    if saved:
        try:
            mgr.update_with_image(course["id"], fields, upload.getvalue() if upload else None,
                                  upload.name if upload else "")
            st.rerun()
        except ValidationError as err:
            show_field_errors(err)
        except StoreError as err:
            show_store_error(err, "Failed to update course")

    confirm = st.checkbox("Confirm delete (sections are removed too)", key=f"course_confirm_{course['id']}")
    if st.button("🗑️ Delete course", key=f"course_del_{course['id']}", disabled=not confirm):
        try:
            mgr.delete(course["id"])
            scope.cache.pop(f"sections:{course['id']}", None)
            st.rerun()
        except StoreError as err:
            show_store_error(err, "Failed to delete course")

    _render_sections(course)


def render():
    try:
        st.title("📚 Courses")
        mgr = _manager()
        render_notifications(services().notifier)

        stats = mgr.stats()
        cols = st.columns(3)
        cols[0].metric("Courses", stats["total"])
        cols[1].metric("Average units", stats["average_units"])
        cols[2].metric("Summer courses", stats["summer"])

        _render_create(mgr)
        with st.expander("🧹 Storage maintenance"):
            if st.button("Remove unused course images"):
                try:
                    removed = mgr.cleanup_unused_images()
                    if not removed:
                        st.info("No unused images found.")
                except StoreError as err:
                    show_store_error(err, "Image cleanup failed")
        st.divider()

        f1, f2, f3 = st.columns([2, 1, 1])
        with f1:
            search = st.text_input("Search", placeholder="Code, name or description", key="course_search")
        with f2:
            units = st.selectbox("Units", ["all"] + list(range(MIN_UNITS, MAX_UNITS + 1)), key="course_units")
        with f3:
            year_level = st.selectbox("Year level", ("all",) + YEAR_LEVELS, key="course_year")

        view = mgr.view(search, units, year_level)
        if view.empty_state:
            st.info(view.empty_message)
            return

        images = _images(mgr)
        df = pd.DataFrame(view.items)
        df["summer"] = df["summer"].map({True: "Yes", False: "No"})
        st.dataframe(df[["code", "name", "units", "year_level", "summer"]], use_container_width=True, hide_index=True)

        options = {r["id"]: f"{r['code']} · {r['name']}" for r in view.items}
        selected = st.selectbox("Select a course to manage", list(options), format_func=options.get,
                                key="course_selected")
        course = next((r for r in view.items if r["id"] == selected), None)
        if course:
            _render_edit(mgr, course, images)

    except Exception as e:
        st.error("An unexpected error occurred while rendering the Courses page.")
        st.exception(e)
        st.code("".join(traceback.format_exc()))


render()
