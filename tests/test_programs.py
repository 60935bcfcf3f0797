from datetime import datetime

import pytest

from core.errors import ValidationError
from screens.programs.codes import MAX_CODE_LENGTH, generate_program_code
from screens.programs.db import ProgramManager


@pytest.fixture()
def programs(store, notifier, clock):
    return ProgramManager(store, notifier, clock)


def test_generator_is_deterministic_and_short():
    now = datetime(2024, 6, 6, 8, 30)
    assert generate_program_code("Bachelor Of Science", now) == "BAC-240606"
    assert generate_program_code("Bachelor Of Science", now) == generate_program_code("Bachelor Of Science", now)
    for name in ("IT", "a", "Master of Business Administration", "B.S. Nursing"):
        assert len(generate_program_code(name, now)) <= MAX_CODE_LENGTH
    assert generate_program_code("B.S. Nursing", now) == "BSN-240606"


def test_generator_rejects_names_without_letters():
    with pytest.raises(ValueError):
        generate_program_code(" -- ", datetime(2024, 1, 1))


def test_create_generates_code(programs):
    created = programs.create({"name": "Bachelor Of Science", "major": "Biology"})
    assert created["code"] == "BAC-240606"
    assert created["is_active"] is True
    assert programs.preview_code("Bachelor Of Science") == "BAC-240606"
    assert programs.preview_code("!!") == ""


def test_same_name_twice_at_same_time_is_rejected(programs, store):
    programs.create({"name": "Bachelor Of Science"})
    with pytest.raises(ValidationError) as exc:
        programs.create({"name": "Bachelor Of Science"})
    assert "code" in exc.value.errors
    assert store.count("programs") == 1


def test_admin_code_on_create(programs):
    created = programs.create({"name": "Nursing", "code": " bsn-2024 "})
    assert created["code"] == "BSN-2024"
    for bad in ("TOO-LONG-CODE", "BS N", "-BSN"):
        with pytest.raises(ValidationError) as exc:
            programs.create({"name": "Nursing", "code": bad})
        assert "code" in exc.value.errors


def test_same_prefix_names_on_the_same_day(programs):
    it = programs.create({"name": "Bachelor of Science in Information Technology"})
    cs = programs.create({"name": "Bachelor of Science in Computer Science", "code": "BAC-CS"})
    assert it["code"] == "BAC-240606"
    assert cs["code"] == "BAC-CS"
    with pytest.raises(ValidationError) as exc:
        programs.create({"name": "Bachelor of Science in Nursing", "code": "bac-cs"})
    assert "code" in exc.value.errors


def test_code_cannot_be_changed(programs):
    created = programs.create({"name": "Nursing"})
    with pytest.raises(ValidationError) as exc:
        programs.update(created["id"], {"code": "NEW-1"})
    assert "code" in exc.value.errors
    updated = programs.update(created["id"], {"name": "Nursing Science", "code": created["code"]})
    assert updated["code"] == created["code"]
    assert updated["name"] == "Nursing Science"


def test_unchanged_code_accepted_without_loaded_list(programs, store, notifier, clock):
    created = programs.create({"name": "Nursing"})
    fresh = ProgramManager(store, notifier, clock)
    assert not fresh.loaded
    updated = fresh.update(created["id"], {"code": created["code"].lower(), "major": "Pediatrics"})
    assert updated["code"] == created["code"]
    with pytest.raises(ValidationError):
        ProgramManager(store, notifier, clock).update(created["id"], {"code": "OTHER"})


def test_search_covers_description_and_major(programs):
    programs.create({"name": "Bachelor Of Science", "description": "Four-year degree", "major": "Biology"})
    programs.create({"name": "Information Technology", "major": "Networking"})
    assert [r["name"] for r in programs.view("biology").items] == ["Bachelor Of Science"]
    assert [r["name"] for r in programs.view("four-year").items] == ["Bachelor Of Science"]
    assert programs.view("zzz").empty_state is not None


def test_toggle_and_stats(programs):
    created = programs.create({"name": "Nursing"})
    programs.toggle(created["id"])
    assert programs.stats() == {"total": 1, "active": 0, "inactive": 1}
