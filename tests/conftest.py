import io
from datetime import datetime, timezone

import pytest
from PIL import Image


FIXED_NOW = datetime(2024, 6, 6, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def engine(tmp_path):
    from core.db import get_engine, init_db
    eng = get_engine(f"sqlite:///{tmp_path / 'portal_test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def store(engine):
    from core.store import Store
    return Store(engine)


@pytest.fixture()
def storage(tmp_path):
    from core.storage import ObjectStorage
    return ObjectStorage(tmp_path / "storage", "https://files.example.test/storage/v1/object/public", "test-secret")


@pytest.fixture()
def clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def notifier():
    from core.notify import Notifier
    return Notifier()


def make_image(fmt="PNG", size=(8, 8)):
    im = Image.new("RGB", size, color=(50, 100, 150))
    buf = io.BytesIO()
    im.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def png_bytes():
    return make_image("PNG")


@pytest.fixture()
def program(store):
    return store.insert("programs", [{"code": "BSC-240101", "name": "Bachelor of Science",
                                      "description": "", "major": "", "is_active": True}])[0]
