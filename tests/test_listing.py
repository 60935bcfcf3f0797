from core.listing import (
    ALL,
    EmptyState,
    active_counts,
    average,
    count_by,
    derive_view,
    filter_rows,
    full_name,
)


ROWS = [
    {"id": 1, "title": "Enrollment opens", "content": "Second semester", "author": "Registrar",
     "priority": "high", "is_active": True},
    {"id": 2, "title": "Library hours", "content": "Open until 9pm", "author": "Library",
     "priority": "low", "is_active": False},
    {"id": 3, "title": "Exam week", "content": "Bring your ID", "author": "Registrar",
     "priority": "high", "is_active": True},
]
FIELDS = ("title", "content", "author")


def test_empty_search_returns_everything():
    assert filter_rows(ROWS, "", FIELDS) == ROWS
    assert filter_rows(ROWS, "   ", FIELDS) == ROWS


def test_search_is_case_insensitive_substring():
    assert [r["id"] for r in filter_rows(ROWS, "REGISTRAR", FIELDS)] == [1, 3]
    assert [r["id"] for r in filter_rows(ROWS, "9pm", FIELDS)] == [2]


def test_all_does_not_narrow_category():
    assert filter_rows(ROWS, "", FIELDS, {"priority": ALL}) == ROWS
    assert [r["id"] for r in filter_rows(ROWS, "", FIELDS, {"priority": "high"})] == [1, 3]


def test_search_and_category_combine():
    assert [r["id"] for r in filter_rows(ROWS, "exam", FIELDS, {"priority": "high"})] == [3]
    assert filter_rows(ROWS, "library", FIELDS, {"priority": "high"}) == []


def test_callable_field_searches_derived_name():
    users = [{"id": "a", "first_name": "Maria", "middle_name": "Clara", "last_name": "Santos"},
             {"id": "b", "first_name": "Jose", "last_name": "Rizal", "suffix": "Jr."}]
    assert [u["id"] for u in filter_rows(users, "clara santos", (full_name,))] == ["a"]
    assert [u["id"] for u in filter_rows(users, "rizal jr", (full_name,))] == ["b"]


def test_full_name_skips_blank_parts():
    assert full_name({"first_name": "Ana", "middle_name": " ", "last_name": "Cruz", "suffix": None}) == "Ana Cruz"


def test_empty_states_are_distinguished():
    assert derive_view([], "x", FIELDS).empty_state is EmptyState.NO_DATA
    view = derive_view(ROWS, "nothing like this", FIELDS)
    assert view.empty_state is EmptyState.NO_MATCHES
    assert view.total == 3
    assert view.empty_message
    assert derive_view(ROWS, "exam", FIELDS).empty_state is None


def test_statistics_helpers():
    assert count_by(ROWS, "priority") == {"high": 2, "low": 1}
    assert active_counts(ROWS) == {"total": 3, "active": 2, "inactive": 1}
    assert average([{"units": 3}, {"units": 4}, {"units": None}], "units") == 3.5
    assert average([], "units") == 0.0
