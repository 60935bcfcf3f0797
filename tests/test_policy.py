from core.policy import PAGES, sign_in, visible_pages_for


def _profile(store, user_id, role, email, active=True):
    store.insert("user_profiles", [{"id": user_id, "email": email, "role": role, "first_name": "F",
                                    "last_name": "L", "is_active": active}])


def test_first_sign_in_bootstraps(store):
    user = sign_in(store, "First@Example.com")
    assert user["email"] == "first@example.com"
    assert user["id"] is None


def test_only_active_admins_sign_in(store):
    _profile(store, "a1", "admin", "admin@example.com")
    _profile(store, "s1", "student", "student@example.com")
    _profile(store, "a2", "admin", "off@example.com", active=False)
    assert sign_in(store, "admin@example.com")["id"] == "a1"
    assert sign_in(store, "student@example.com") is None
    assert sign_in(store, "off@example.com") is None
    assert sign_in(store, "stranger@example.com") is None
    assert sign_in(store, "") is None


def test_pages_by_role():
    assert visible_pages_for("superadmin") == list(PAGES)
    assert visible_pages_for("student") == []
