# app/core/settings.py
from __future__ import annotations
import os
import yaml
from pathlib import Path
from pydantic import BaseModel

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parents[1] / "config" / "settings.yaml"

class AppConfig(BaseModel):
    name: str
    environment: str
    log_level: str = "INFO"

class DBConfig(BaseModel):
    url: str

class BucketNames(BaseModel):
    announcement: str = "announcement"
    course: str = "course"
    avatar: str = "avatar"

class StorageConfig(BaseModel):
    root: str
    public_base_url: str
    signing_secret: str
    signed_url_ttl_seconds: int = 3600
    max_upload_bytes: int = 10 * 1024 * 1024
    buckets: BucketNames = BucketNames()

class AuthAdminConfig(BaseModel):
    delete_user_url: str
    timeout_seconds: float = 5.0

class Settings(BaseModel):
    app: AppConfig
    db: DBConfig
    storage: StorageConfig
    auth_admin: AuthAdminConfig

def load_settings(path: str | Path | None = None) -> Settings:
    """Read settings.yaml; PORTAL_SETTINGS overrides the default location."""
    if path is None:
        path = os.environ.get("PORTAL_SETTINGS") or DEFAULT_SETTINGS_PATH
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return Settings(
        app=AppConfig(**data["app"]),
        db=DBConfig(**data["db"]),
        storage=StorageConfig(**data["storage"]),
        auth_admin=AuthAdminConfig(**data["auth_admin"]),
    )
