# app/core/storage.py
"""
Object storage for uploaded images.

Buckets are directories under `storage.root`; object paths are the
slash-separated keys inside a bucket (e.g. 'course-images/CS101/17000.png').
Signed URLs carry their expiry and an HMAC-SHA256 signature over
bucket, path and expiry.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, quote, unquote, urlsplit

from core.errors import StorageError

logger = logging.getLogger(__name__)

_META_DIR = ".meta"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ObjectStorage:
    def __init__(self, root: str | Path, public_base_url: str, signing_secret: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self._secret = signing_secret.encode("utf-8")

    @classmethod
    def from_settings(cls, cfg) -> "ObjectStorage":
        return cls(cfg.root, cfg.public_base_url, cfg.signing_secret)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _key(self, path: str) -> PurePosixPath:
        key = PurePosixPath(str(path).strip().lstrip("/"))
        if not str(path).strip() or key.is_absolute() or ".." in key.parts or key.parts[:1] == (_META_DIR,):
            raise StorageError(f"Invalid object path: {path!r}", code="400")
        return key

    def _bucket_dir(self, bucket: str) -> Path:
        if not bucket or "/" in bucket or bucket.startswith("."):
            raise StorageError(f"Invalid bucket: {bucket!r}", code="400")
        return self.root / bucket

    def _file(self, bucket: str, path: str) -> Path:
        return self._bucket_dir(bucket).joinpath(*self._key(path).parts)

    def _meta_file(self, bucket: str, path: str) -> Path:
        return self._bucket_dir(bucket).joinpath(_META_DIR, *self._key(path).parts).with_suffix(".json")

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        cache_control: str = "3600",
        upsert: bool = False,
        content_type: Optional[str] = None,
    ) -> str:
        target = self._file(bucket, path)
        if target.exists() and not upsert:
            raise StorageError(f"The resource already exists: {bucket}/{path}", code="409",
                               hint="Pass upsert=True to overwrite.")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            meta = self._meta_file(bucket, path)
            meta.parent.mkdir(parents=True, exist_ok=True)
            meta.write_text(json.dumps({
                "cache_control": f"max-age={cache_control}",
                "content_type": content_type,
                "size": len(data),
                "uploaded_at": _utcnow().isoformat(),
            }), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Upload failed for {bucket}/{path}: {exc}", code="500") from exc
        logger.info("Uploaded %s/%s (%d bytes)", bucket, path, len(data))
        return str(self._key(path))

    def exists(self, bucket: str, path: str) -> bool:
        return self._file(bucket, path).is_file()

    def download(self, bucket: str, path: str) -> bytes:
        target = self._file(bucket, path)
        if not target.is_file():
            raise StorageError(f"Object not found: {bucket}/{path}", code="404")
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"Download failed for {bucket}/{path}: {exc}", code="500") from exc

    def metadata(self, bucket: str, path: str) -> Dict[str, object]:
        meta = self._meta_file(bucket, path)
        if not meta.is_file():
            return {}
        return json.loads(meta.read_text(encoding="utf-8"))

    def list(self, bucket: str, prefix: str = "") -> List[str]:
        """All object paths in a bucket under `prefix`, sorted."""
        base = self._bucket_dir(bucket)
        start = base.joinpath(*self._key(prefix).parts) if prefix.strip("/") else base
        if not start.is_dir():
            return []
        found = []
        for p in start.rglob("*"):
            rel = p.relative_to(base)
            if p.is_file() and rel.parts[0] != _META_DIR:
                found.append(rel.as_posix())
        return sorted(found)

    def remove(self, bucket: str, paths: Sequence[str]) -> List[str]:
        """Delete objects; returns the paths that existed and were removed."""
        removed = []
        for path in paths:
            target = self._file(bucket, path)
            if not target.is_file():
                continue
            try:
                target.unlink()
                meta = self._meta_file(bucket, path)
                if meta.is_file():
                    meta.unlink()
            except OSError as exc:
                raise StorageError(f"Remove failed for {bucket}/{path}: {exc}", code="500") from exc
            removed.append(str(self._key(path)))
        if removed:
            logger.info("Removed %d object(s) from %s", len(removed), bucket)
        return removed

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/{bucket}/{quote(str(self._key(path)))}"

    def _signature(self, bucket: str, path: str, expires: int) -> str:
        payload = f"{bucket}/{path}:{expires}"
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def create_signed_url(self, bucket: str, path: str, expires_in: int,
                          now: Optional[datetime] = None) -> str:
        if expires_in <= 0:
            raise StorageError("expires_in must be positive", code="400")
        key = str(self._key(path))
        if not self.exists(bucket, key):
            raise StorageError(f"Object not found: {bucket}/{key}", code="404")
        expires = int((now or _utcnow()).timestamp()) + int(expires_in)
        sig = self._signature(bucket, key, expires)
        return f"{self.public_base_url}/{bucket}/{quote(key)}?expires={expires}&token={sig}"

    def verify_signed_url(self, url: str, now: Optional[datetime] = None) -> Optional[Tuple[str, str]]:
        """Returns (bucket, path) for a valid, unexpired signed URL, else None."""
        try:
            parts = urlsplit(url)
            query = parse_qs(parts.query)
            expires = int(query["expires"][0])
            token = query["token"][0]
            base_path = urlsplit(self.public_base_url).path.rstrip("/")
            rest = unquote(parts.path)[len(base_path):].lstrip("/")
            bucket, _, path = rest.partition("/")
        except (KeyError, IndexError, ValueError):
            return None
        if int((now or _utcnow()).timestamp()) > expires:
            return None
        if not hmac.compare_digest(token, self._signature(bucket, path, expires)):
            return None
        return bucket, path
