from datetime import timedelta

import pytest

from conftest import FIXED_NOW
from core.errors import StorageError


def test_upload_download_and_list(storage):
    path = storage.upload("course", "course-images/CS101/1.png", b"abc", content_type="image/png")
    assert path == "course-images/CS101/1.png"
    assert storage.download("course", path) == b"abc"
    assert storage.metadata("course", path)["content_type"] == "image/png"
    storage.upload("course", "course-images/CS102/2.png", b"def")
    assert storage.list("course", "course-images") == ["course-images/CS101/1.png", "course-images/CS102/2.png"]


def test_upload_conflict_without_upsert(storage):
    storage.upload("announcement", "images/a.png", b"1")
    with pytest.raises(StorageError) as exc:
        storage.upload("announcement", "images/a.png", b"2")
    assert exc.value.code == "409"
    storage.upload("announcement", "images/a.png", b"2", upsert=True)
    assert storage.download("announcement", "images/a.png") == b"2"


def test_path_traversal_is_rejected(storage):
    with pytest.raises(StorageError):
        storage.upload("course", "../escape.png", b"x")


def test_remove_skips_missing_objects(storage):
    storage.upload("course", "a/b.png", b"x")
    assert storage.remove("course", ["a/b.png", "a/missing.png"]) == ["a/b.png"]
    assert not storage.exists("course", "a/b.png")


def test_signed_url_round_trip_and_expiry(storage):
    storage.upload("avatar", "u1/me.png", b"x")
    url = storage.create_signed_url("avatar", "u1/me.png", 3600, now=FIXED_NOW)
    assert "expires=" in url and "token=" in url
    assert storage.verify_signed_url(url, now=FIXED_NOW) == ("avatar", "u1/me.png")
    assert storage.verify_signed_url(url, now=FIXED_NOW + timedelta(seconds=3601)) is None
    assert storage.verify_signed_url(url.replace("token=", "token=0"), now=FIXED_NOW) is None


def test_signed_url_for_missing_object(storage):
    with pytest.raises(StorageError) as exc:
        storage.create_signed_url("avatar", "nobody.png", 3600)
    assert exc.value.code == "404"
