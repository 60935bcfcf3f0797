# app/core/images.py
"""
Image references and their resolution to displayable URLs.

An image reference stored on a row is one of:
  * an inline data URI ('data:image/png;base64,...') - rendered as is
  * a public storage URL ('https://host/.../<bucket>/images/x.png')
  * a bare storage path ('course-images/CS101/1700000000000.jpg')

Two resolution strategies exist: courses download the object and hand out a
transient `blob:` handle owned by the screen; avatars get a signed URL.
Neither ever raises to the caller - a failed resolution is a placeholder.
"""
from __future__ import annotations

import base64
import io
import logging
import secrets
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import unquote, urlsplit

from PIL import Image, UnidentifiedImageError

from core.errors import ResolutionFailure, StorageError, ValidationError

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:"
BLOB_PREFIX = "blob:portal/"

ALLOWED_IMAGE = {
    "JPEG": ("image/jpeg", "jpg"),
    "PNG": ("image/png", "png"),
    "WEBP": ("image/webp", "webp"),
    "GIF": ("image/gif", "gif"),
}


# ----------------------------------------------------------------------------
# Reference helpers
# ----------------------------------------------------------------------------

def is_data_uri(ref: Optional[str]) -> bool:
    return bool(ref) and str(ref).startswith(DATA_URI_PREFIX)


def to_data_uri(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def storage_path_from_url(ref: Optional[str]) -> Optional[str]:
    """Storage path of an image reference, or None when nothing is stored.

    Public URLs keep their last two path segments (folder/filename):
    'https://host/bucket/folder/file.png' -> 'folder/file.png'.
    Bare paths are returned unchanged; data URIs have no storage path.
    """
    if not ref or not str(ref).strip() or is_data_uri(ref):
        return None
    ref = str(ref).strip()
    parts = urlsplit(ref)
    if parts.scheme in ("http", "https"):
        segments = [unquote(s) for s in parts.path.split("/") if s]
        if not segments:
            return None
        return "/".join(segments[-2:])
    return ref.lstrip("/")


def validate_image_upload(data: bytes, filename: str = "", max_bytes: int = 10 * 1024 * 1024) -> Tuple[str, str]:
    """Checks an uploaded file really is an image; returns (mime, extension)."""
    if not data:
        raise ValidationError.single("image", "Please upload an image file")
    if len(data) > max_bytes:
        raise ValidationError.single("image", f"File size must be less than {max_bytes // (1024 * 1024)}MB")
    try:
        with Image.open(io.BytesIO(data)) as im:
            fmt = (im.format or "").upper()
            im.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        logger.info("Rejected upload %r: %s", filename, exc)
        raise ValidationError.single("image", "Please upload an image file") from exc
    if fmt not in ALLOWED_IMAGE:
        raise ValidationError.single("image", f"Unsupported image type: {fmt or 'unknown'}")
    return ALLOWED_IMAGE[fmt]


def unique_object_name(ext: str, now: datetime) -> str:
    """'<epoch millis>-<random>.<ext>' as used for announcement banners."""
    millis = int(now.timestamp() * 1000)
    return f"{millis}-{secrets.token_hex(5)}.{ext}"


def initials(first: Optional[str], last: Optional[str], fallback: Optional[str] = None) -> str:
    """Placeholder text shown instead of a missing avatar."""
    letters = "".join(p.strip()[0] for p in (first, last) if p and p.strip())
    if letters:
        return letters.upper()
    if fallback and fallback.strip():
        return fallback.strip()[0].upper()
    return "?"


# ----------------------------------------------------------------------------
# Downloaded-blob strategy
# ----------------------------------------------------------------------------

class ObjectUrlRegistry:
    """Transient `blob:` handles for downloaded bytes.

    Handles are owned by whoever created them and must be revoked; `owned()`
    lists the live ones so leaks are visible.
    """

    def __init__(self):
        self._blobs: Dict[str, Tuple[bytes, Optional[str]]] = {}

    def create(self, data: bytes, mime: Optional[str] = None) -> str:
        handle = f"{BLOB_PREFIX}{uuid.uuid4()}"
        self._blobs[handle] = (data, mime)
        return handle

    def get(self, handle: str) -> Optional[bytes]:
        entry = self._blobs.get(handle)
        return entry[0] if entry else None

    def revoke(self, handle: str) -> bool:
        return self._blobs.pop(handle, None) is not None

    def revoke_all(self, handles: Optional[Iterable[str]] = None) -> int:
        targets = list(self._blobs) if handles is None else list(handles)
        return sum(1 for h in targets if self.revoke(h))

    def owned(self) -> List[str]:
        return list(self._blobs)


def resolve_downloaded_images(
    storage,
    bucket: str,
    rows: Iterable[Mapping[str, Any]],
    scope,
    column: str = "image_url",
    group: str = "images",
) -> Dict[Any, Optional[str]]:
    """Download each row's image and map row id -> blob handle (None on failure).

    Handles from the previous call for the same group are revoked first, so
    a changed entity list never leaks object URLs. If the scope is closed
    while downloading, everything created here is revoked and {} is returned.
    """
    scope.release(group)
    resolved: Dict[Any, Optional[str]] = {}
    created: List[str] = []
    for row in rows:
        if not scope.alive:
            scope.registry.revoke_all(created)
            return {}
        path = storage_path_from_url(row.get(column))
        if not path:
            resolved[row.get("id")] = None
            continue
        try:
            try:
                data = storage.download(bucket, path)
            except StorageError as exc:
                raise ResolutionFailure(str(exc)) from exc
            handle = scope.registry.create(data, (storage.metadata(bucket, path) or {}).get("content_type"))
            created.append(handle)
            resolved[row.get("id")] = handle
        except ResolutionFailure as exc:
            logger.warning("Image for %s id=%s unavailable: %s", bucket, row.get("id"), exc)
            resolved[row.get("id")] = None
    if not scope.track(group, created):
        return {}
    return resolved


# ----------------------------------------------------------------------------
# Signed-URL strategy
# ----------------------------------------------------------------------------

def resolve_signed_urls(
    storage,
    bucket: str,
    rows: Iterable[Mapping[str, Any]],
    column: str = "profile_picture_url",
    expires_in: int = 3600,
    now: Optional[datetime] = None,
) -> Dict[Any, Optional[str]]:
    """Map row id -> signed URL; None means 'render the initials placeholder'."""
    urls: Dict[Any, Optional[str]] = {}
    for row in rows:
        ref = row.get(column)
        if not ref:
            continue
        path = storage_path_from_url(ref)
        try:
            if not path:
                raise ResolutionFailure("no storage path")
            try:
                urls[row.get("id")] = storage.create_signed_url(bucket, path, expires_in, now=now)
            except StorageError as exc:
                raise ResolutionFailure(str(exc)) from exc
        except ResolutionFailure as exc:
            logger.warning("Could not sign %s for id=%s: %s", ref, row.get("id"), exc)
            urls[row.get("id")] = None
    return urls


def open_signed_url(storage, url: Optional[str], now: Optional[datetime] = None) -> Optional[bytes]:
    """Bytes behind a signed URL, served from storage; None when invalid or gone.

    The app has no public file route, so signed URLs are checked and read
    on the server and the page renders the bytes.
    """
    if not url:
        return None
    target = storage.verify_signed_url(url, now=now)
    if target is None:
        logger.warning("Rejected expired or tampered signed URL %s", url.split("?", 1)[0])
        return None
    try:
        return storage.download(*target)
    except StorageError as exc:
        logger.warning("Signed object unavailable: %s", exc)
        return None


def load_image(storage, bucket: str, ref: Optional[str]) -> Optional[bytes]:
    """Displayable bytes for a stored image reference (data URI, URL or bare path)."""
    if not ref:
        return None
    if is_data_uri(ref):
        try:
            return base64.b64decode(str(ref).split(",", 1)[1], validate=True)
        except (IndexError, ValueError) as exc:
            logger.warning("Malformed inline image: %s", exc)
            return None
    path = storage_path_from_url(ref)
    try:
        return storage.download(bucket, path)
    except StorageError as exc:
        logger.warning("Image %s/%s unavailable: %s", bucket, path, exc)
        return None
