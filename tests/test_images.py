import pytest

from conftest import FIXED_NOW, make_image
from core.errors import ValidationError
from core.images import (
    ObjectUrlRegistry,
    initials,
    is_data_uri,
    load_image,
    open_signed_url,
    resolve_downloaded_images,
    resolve_signed_urls,
    storage_path_from_url,
    to_data_uri,
    validate_image_upload,
)
from core.lifecycle import MountScope


def test_storage_path_from_public_url():
    assert storage_path_from_url("https://host/bucket/folder/file.png") == "folder/file.png"


def test_storage_path_from_other_references():
    assert storage_path_from_url("course-images/CS101/1.png") == "course-images/CS101/1.png"
    assert storage_path_from_url(to_data_uri(b"x", "image/png")) is None
    assert storage_path_from_url("") is None
    assert storage_path_from_url(None) is None


def test_data_uri_helpers():
    uri = to_data_uri(b"hello", "image/png")
    assert uri.startswith("data:image/png;base64,")
    assert is_data_uri(uri)
    assert not is_data_uri("https://host/x.png")


def test_validate_image_upload_accepts_real_images():
    assert validate_image_upload(make_image("PNG"), "a.png") == ("image/png", "png")
    assert validate_image_upload(make_image("JPEG"), "a.jpg") == ("image/jpeg", "jpg")


def test_validate_image_upload_rejects_other_files():
    with pytest.raises(ValidationError) as exc:
        validate_image_upload(b"%PDF-1.4 not an image", "doc.pdf")
    assert "image" in exc.value.errors
    with pytest.raises(ValidationError):
        validate_image_upload(make_image("PNG"), "a.png", max_bytes=10)
    with pytest.raises(ValidationError):
        validate_image_upload(b"", "empty.png")


def test_initials_placeholder():
    assert initials("maria", "santos") == "MS"
    assert initials(None, None, "admin@example.com") == "A"
    assert initials(None, None) == "?"


def test_registry_create_and_revoke():
    registry = ObjectUrlRegistry()
    handle = registry.create(b"data", "image/png")
    assert handle.startswith("blob:")
    assert registry.get(handle) == b"data"
    assert registry.revoke(handle)
    assert registry.get(handle) is None
    assert registry.owned() == []


def test_downloaded_images_fall_back_to_placeholder(storage):
    storage.upload("course", "course-images/CS101/1.png", b"png-bytes", content_type="image/png")
    rows = [{"id": 1, "image_url": "course-images/CS101/1.png"},
            {"id": 2, "image_url": "course-images/GONE/2.png"},
            {"id": 3, "image_url": None}]
    scope = MountScope("courses")
    resolved = resolve_downloaded_images(storage, "course", rows, scope)
    assert resolved[2] is None and resolved[3] is None
    assert scope.registry.get(resolved[1]) == b"png-bytes"
    assert scope.owned() == [resolved[1]]


def test_changed_list_revokes_previous_handles(storage):
    storage.upload("course", "course-images/CS101/1.png", b"one")
    rows = [{"id": 1, "image_url": "course-images/CS101/1.png"}]
    scope = MountScope("courses")
    first = resolve_downloaded_images(storage, "course", rows, scope)[1]
    second = resolve_downloaded_images(storage, "course", rows, scope)[1]
    assert first != second
    assert scope.registry.get(first) is None
    assert scope.registry.owned() == [second]


def test_closed_scope_leaks_nothing(storage):
    storage.upload("course", "course-images/CS101/1.png", b"one")
    scope = MountScope("courses")
    scope.close()
    rows = [{"id": 1, "image_url": "course-images/CS101/1.png"}]
    assert resolve_downloaded_images(storage, "course", rows, scope) == {}
    assert scope.registry.owned() == []


def test_signed_urls_and_placeholders(storage):
    storage.upload("avatar", "u1/me.png", b"x")
    rows = [{"id": "u1", "profile_picture_url": "https://host/avatar/u1/me.png"},
            {"id": "u2", "profile_picture_url": "u2/missing.png"},
            {"id": "u3", "profile_picture_url": None}]
    urls = resolve_signed_urls(storage, "avatar", rows, now=FIXED_NOW)
    assert storage.verify_signed_url(urls["u1"], now=FIXED_NOW) == ("avatar", "u1/me.png")
    assert urls["u2"] is None
    assert "u3" not in urls


def test_open_signed_url_serves_bytes(storage):
    storage.upload("avatar", "u1/me.png", b"x")
    url = storage.create_signed_url("avatar", "u1/me.png", 60, now=FIXED_NOW)
    assert open_signed_url(storage, url, now=FIXED_NOW) == b"x"


def test_open_signed_url_rejects_expired_tampered_and_missing(storage):
    storage.upload("avatar", "u1/me.png", b"x")
    url = storage.create_signed_url("avatar", "u1/me.png", 60, now=FIXED_NOW)
    later = FIXED_NOW.replace(hour=13)
    assert open_signed_url(storage, url, now=later) is None
    assert open_signed_url(storage, url.replace("u1/me.png", "u1/other.png"), now=FIXED_NOW) is None
    storage.remove("avatar", ["u1/me.png"])
    assert open_signed_url(storage, url, now=FIXED_NOW) is None
    assert open_signed_url(storage, None) is None


def test_load_image_from_each_reference_kind(storage, png_bytes):
    storage.upload("announcement", "images/a.png", png_bytes)
    assert load_image(storage, "announcement", to_data_uri(b"inline", "image/png")) == b"inline"
    assert load_image(storage, "announcement", storage.public_url("announcement", "images/a.png")) == png_bytes
    assert load_image(storage, "announcement", "images/a.png") == png_bytes
    assert load_image(storage, "announcement", "images/gone.png") is None
    assert load_image(storage, "announcement", "data:image/png;base64,@@@") is None
    assert load_image(storage, "announcement", "") is None
