from core.errors import StoreError
from screens.dashboard.db import dashboard_counts, recent_activity


def _seed(store):
    store.insert("user_profiles", [
        {"id": "root", "email": "root@example.com", "role": "superadmin", "first_name": "R", "last_name": "S",
         "is_active": True, "created_at": "2024-06-01 08:00:00"},
        {"id": "u1", "email": "a@example.com", "role": "admin", "first_name": "A", "last_name": "B",
         "is_active": True, "created_at": "2024-06-02 08:00:00"},
        {"id": "u2", "email": "c@example.com", "role": "registrar", "first_name": "C", "last_name": "D",
         "is_active": False, "created_at": "2024-06-05 08:00:00"},
    ])
    store.insert("courses", [{"code": "CS101", "name": "Intro", "units": 3, "created_at": "2024-06-03 08:00:00"}])
    store.insert("announcements", [{"title": "Hello", "content": "x", "author": "y", "date": "2024-06-04",
                                    "is_active": False, "created_at": "2024-06-04 08:00:00"}])


def test_counts_exclude_superadmin(store):
    _seed(store)
    assert dashboard_counts(store) == {
        "users": 2,
        "active_users": 1,
        "courses": 1,
        "programs": 0,
        "announcements": 1,
        "active_announcements": 0,
    }


def test_unreadable_table_counts_as_zero(store, monkeypatch):
    def fail(table, filters=None, exclude=None):
        raise StoreError("down", code="DB")
    monkeypatch.setattr(store, "count", fail)
    assert set(dashboard_counts(store).values()) == {0}


def test_recent_activity_newest_first(store):
    _seed(store)
    items = recent_activity(store, limit=3)
    assert [(i["kind"], i["label"]) for i in items] == [
        ("user", "c@example.com"),
        ("announcement", "Hello"),
        ("course", "Intro"),
    ]
