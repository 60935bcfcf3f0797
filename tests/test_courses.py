import pytest

from core.errors import StorageError, StoreError, ValidationError
from screens.courses.db import CourseManager, SectionManager


@pytest.fixture()
def courses(store, storage, notifier, clock):
    return CourseManager(store, storage, notifier, clock)


def _section(store, notifier, course_id, name):
    sections = SectionManager(store, notifier, course_id=course_id)
    return sections.create({"section_name": name, "schedule": "MWF 9:00-10:00", "room": "R101",
                            "instructor": "Prof. Reyes"})


def test_create_normalizes_code_and_defaults_units(courses):
    created = courses.create({"code": " cs101 ", "name": "Intro to Programming"})
    assert created["code"] == "CS101"
    assert created["units"] == 3
    assert [r["code"] for r in courses.rows] == ["CS101"]


def test_units_out_of_range_never_reaches_store(courses, store, monkeypatch):
    monkeypatch.setattr(store, "insert", lambda *a, **k: pytest.fail("store must not be called"))
    for bad in (0, 7, "three", 2.5):
        with pytest.raises(ValidationError) as exc:
            courses.create({"code": "CS101", "name": "Intro", "units": bad})
        assert "units" in exc.value.errors


def test_year_level_is_validated(courses):
    with pytest.raises(ValidationError) as exc:
        courses.create({"code": "CS101", "name": "Intro", "year_level": "5th Year"})
    assert "year_level" in exc.value.errors


def test_deleting_course_cascades_sections(courses, store, notifier):
    course = courses.create({"code": "CS101", "name": "Intro"})
    _section(store, notifier, course["id"], "A")
    _section(store, notifier, course["id"], "B")
    assert store.count("sections", filters={"course_id": course["id"]}) == 2
    courses.delete(course["id"])
    assert store.count("sections", filters={"course_id": course["id"]}) == 0


def test_section_requires_fields_and_positive_capacity(store, notifier, courses):
    course = courses.create({"code": "CS101", "name": "Intro"})
    sections = SectionManager(store, notifier, course_id=course["id"])
    with pytest.raises(ValidationError) as exc:
        sections.create({"section_name": "A", "capacity": 0})
    assert {"schedule", "room", "instructor", "capacity"} <= set(exc.value.errors)


def test_sections_are_listed_per_course(store, notifier, courses):
    a = courses.create({"code": "CS101", "name": "Intro"})
    b = courses.create({"code": "CS102", "name": "Data Structures"})
    _section(store, notifier, a["id"], "A")
    _section(store, notifier, b["id"], "B")
    sections = SectionManager(store, notifier, course_id=a["id"])
    assert [s["section_name"] for s in sections.refresh()] == ["A"]
    assert sections.rows[0]["capacity"] == SectionManager.DEFAULT_CAPACITY


def test_image_upload_path_and_replacement(courses, storage, png_bytes):
    created = courses.create_with_image({"code": "CS101", "name": "Intro"}, png_bytes, "cover.png")
    assert created["image_url"] == "course-images/CS101/1717675200000.png"
    assert storage.exists("course", created["image_url"])


def test_image_resolution_failure_keeps_the_reference(courses, storage, png_bytes, store):
    from core.lifecycle import MountScope
    created = courses.create_with_image({"code": "CS101", "name": "Intro"}, png_bytes, "cover.png")
    storage.remove("course", [created["image_url"]])
    scope = MountScope("courses")
    assert courses.resolve_images(scope) == {created["id"]: None}
    assert store.select_one("courses", created["id"])["image_url"] == created["image_url"]


def test_cleanup_unused_images(courses, storage, png_bytes):
    created = courses.create_with_image({"code": "CS101", "name": "Intro"}, png_bytes, "cover.png")
    storage.upload("course", "course-images/OLD/1.png", png_bytes)
    assert courses.cleanup_unused_images() == ["course-images/OLD/1.png"]
    assert storage.exists("course", created["image_url"])
    assert courses.cleanup_unused_images() == []


def test_image_cleanup_failure_on_delete_is_soft(courses, storage, png_bytes, monkeypatch):
    created = courses.create_with_image({"code": "CS101", "name": "Intro"}, png_bytes, "cover.png")

    def fail(bucket, paths):
        raise StorageError("denied", code="403")
    monkeypatch.setattr(storage, "remove", fail)
    outcome = courses.delete(created["id"])
    assert len(outcome.warnings) == 1
    assert courses.rows == []


def test_view_filters_and_stats(courses):
    courses.create({"code": "CS101", "name": "Intro", "units": 3, "year_level": "1st Year"})
    courses.create({"code": "CS201", "name": "Algorithms", "units": 4, "year_level": "2nd Year", "summer": True})
    assert [r["code"] for r in courses.view(units=4).items] == ["CS201"]
    assert [r["code"] for r in courses.view(year_level="1st Year").items] == ["CS101"]
    assert courses.stats() == {"total": 2, "average_units": 3.5, "summer": 1}


def test_courses_have_no_active_toggle(courses):
    created = courses.create({"code": "CS101", "name": "Intro"})
    with pytest.raises(TypeError):
        courses.toggle(created["id"])


def test_failed_insert_removes_the_uploaded_course_image(courses, store, storage, png_bytes, monkeypatch):
    def reject(*a, **k):
        raise StoreError("permission denied", code="42501")
    monkeypatch.setattr(store, "insert", reject)
    with pytest.raises(StoreError):
        courses.create_with_image({"code": "CS101", "name": "Intro"}, png_bytes, "cover.png")
    assert storage.list("course", "course-images") == []


def test_failed_update_removes_the_new_course_image(courses, store, storage, png_bytes, monkeypatch):
    created = courses.create({"code": "CS101", "name": "Intro"})

    def reject(*a, **k):
        raise StoreError("permission denied", code="42501")
    monkeypatch.setattr(store, "update", reject)
    with pytest.raises(StoreError):
        courses.update_with_image(created["id"], {"name": "Intro II"}, png_bytes, "cover.png")
    assert storage.list("course", "course-images") == []


def test_failed_update_keeps_an_image_at_the_same_path(courses, store, storage, png_bytes, monkeypatch):
    created = courses.create_with_image({"code": "CS101", "name": "Intro"}, png_bytes, "cover.png")

    def reject(*a, **k):
        raise StoreError("permission denied", code="42501")
    monkeypatch.setattr(store, "update", reject)
    with pytest.raises(StoreError):
        courses.update_with_image(created["id"], {"name": "Intro II"}, png_bytes, "cover.png")
    assert storage.list("course", "course-images") == [created["image_url"]]
