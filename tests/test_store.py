import pytest

from core.errors import StoreError
from core.store import Embed, NO_ROWS, normalize_related


def _course(store, code="CS101"):
    return store.insert("courses", [{"code": code, "name": f"Course {code}", "units": 3}])[0]


def test_insert_returns_created_rows_with_defaults(store):
    row = _course(store)
    assert row["id"] is not None
    assert row["units"] == 3
    assert row["summer"] is False


def test_select_orders_and_filters(store):
    for code in ("CS102", "CS101", "MATH1"):
        _course(store, code)
    rows = store.select("courses", ["code"], order_by="code", ascending=False)
    assert [r["code"] for r in rows] == ["MATH1", "CS102", "CS101"]
    assert [r["code"] for r in store.select("courses", ["code"], filters={"code": "CS101"})] == ["CS101"]
    assert store.count("courses", exclude={"code": "CS101"}) == 2


def test_unknown_column_is_rejected_before_sql(store):
    with pytest.raises(StoreError) as exc:
        store.select("courses", ["nope"])
    assert exc.value.code == "42703"


def test_missing_table(store):
    with pytest.raises(StoreError) as exc:
        store.select("no_such_table")
    assert exc.value.code == "42P01"


def test_unique_violation_is_translated(store):
    _course(store, "CS101")
    with pytest.raises(StoreError) as exc:
        _course(store, "CS101")
    assert exc.value.code == "23505"
    assert exc.value.hint


def test_check_violation_is_translated(store):
    with pytest.raises(StoreError) as exc:
        store.insert("courses", [{"code": "BAD", "name": "Bad", "units": 9}])
    assert exc.value.code == "23514"


def test_update_and_delete_by_id(store):
    row = _course(store)
    updated = store.update("courses", {"name": "Intro"}, row["id"])
    assert updated["name"] == "Intro"
    assert store.delete("courses", row["id"]) == 1
    with pytest.raises(StoreError) as exc:
        store.delete("courses", row["id"])
    assert exc.value.code == NO_ROWS


def test_update_missing_row(store):
    with pytest.raises(StoreError) as exc:
        store.update("courses", {"name": "x"}, 999)
    assert exc.value.code == NO_ROWS


def test_select_one_requires_exactly_one(store):
    with pytest.raises(StoreError) as exc:
        store.select_one("courses", 1)
    assert exc.value.code == NO_ROWS


def test_embed_attaches_related_rows_as_lists(store):
    course = _course(store)
    store.insert("sections", [{"course_id": course["id"], "section_name": "A", "capacity": 30,
                               "schedule": "MWF 9-10", "room": "101", "instructor": "Reyes"}])
    rows = store.select("sections", embed=[Embed("course", "courses", "course_id", columns=["code"])])
    assert rows[0]["course"] == [{"code": "CS101"}]


def test_normalize_related_shapes():
    course = {"id": 1, "code": "CS101"}
    assert normalize_related(course) == course
    assert normalize_related([course]) == course
    assert normalize_related([]) is None
    assert normalize_related(None) is None
    with pytest.raises(TypeError):
        normalize_related("CS101")
