from core.lifecycle import MountScope, ScreenLifecycle


def test_apply_drops_results_after_close():
    seen = []
    scope = MountScope("users")
    assert scope.apply(seen.append, 1)
    scope.close()
    assert not scope.apply(seen.append, 2)
    assert seen == [1]


def test_close_revokes_owned_handles():
    scope = MountScope("courses")
    handles = [scope.registry.create(b"a"), scope.registry.create(b"b")]
    scope.track("images", handles)
    scope.cache["manager"] = object()
    scope.close()
    assert scope.registry.owned() == []
    assert scope.cache == {}
    assert not scope.alive


def test_track_after_close_revokes_immediately():
    scope = MountScope("courses")
    scope.close()
    handle = scope.registry.create(b"late")
    assert not scope.track("images", [handle])
    assert scope.registry.get(handle) is None


def test_context_manager_closes():
    with MountScope("x") as scope:
        scope.track("g", [scope.registry.create(b"1")])
    assert scope.registry.owned() == []


def test_activate_unmounts_other_screens():
    lifecycle = ScreenLifecycle()
    courses = lifecycle.activate("courses")
    handle = courses.registry.create(b"img")
    courses.track("images", [handle])
    assert lifecycle.activate("courses") is courses
    users = lifecycle.activate("users")
    assert not courses.alive
    assert courses.registry.get(handle) is None
    assert list(lifecycle.scopes) == ["users"]
    lifecycle.close_all()
    assert not users.alive
