from core.settings import DEFAULT_SETTINGS_PATH, load_settings


def test_default_settings_load():
    settings = load_settings(DEFAULT_SETTINGS_PATH)
    assert settings.db.url.startswith("sqlite:///")
    assert settings.storage.signed_url_ttl_seconds == 3600
    assert settings.storage.buckets.course == "course"


def test_env_override(tmp_path, monkeypatch):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text(
        "app: {name: Test Portal, environment: test}\n"
        "db: {url: 'sqlite:///:memory:'}\n"
        "storage: {root: /tmp/s, public_base_url: 'http://x/storage', signing_secret: s}\n"
        "auth_admin: {delete_user_url: 'http://x/delete'}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("PORTAL_SETTINGS", str(cfg))
    settings = load_settings()
    assert settings.app.name == "Test Portal"
    assert settings.app.log_level == "INFO"
    assert settings.storage.max_upload_bytes == 10 * 1024 * 1024
    assert settings.auth_admin.timeout_seconds == 5.0
