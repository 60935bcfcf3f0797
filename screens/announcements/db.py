# screens/announcements/db.py
"""
Announcement data access.

Banner images go to the 'announcement' bucket under images/ and the row
keeps the public URL. When the bucket is unavailable the image is stored
inline as a data URI instead, and such images have nothing to clean up.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Mapping, Optional

from core.crud import ImageBackedManager, one_of, require_text, text_value
from core.errors import StorageError, StoreError, ValidationError
from core.images import load_image, to_data_uri, unique_object_name, validate_image_upload
from core.listing import active_counts, count_by, derive_view, ListView

logger = logging.getLogger(__name__)

PRIORITY_OPTIONS = ("high", "medium", "low")
CATEGORY_OPTIONS = ("General", "Enrollment", "Academic", "Services", "Events", "System", "Emergency")
SEARCH_FIELDS = ("title", "content", "author")
IMAGE_FOLDER = "images"


class AnnouncementManager(ImageBackedManager):
    table = "announcements"
    label = "Announcement"
    order_by = "created_at"
    ascending = False
    image_column = "image"
    bucket = "announcement"
    editable = ("title", "content", "author", "date", "priority", "category", "image", "is_active")

    max_upload_bytes = 10 * 1024 * 1024

    def describe(self, row: Mapping[str, Any]) -> str:
        return f"Announcement '{row.get('title')}'"

    def clean(self, fields, partial, current=None) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        out: Dict[str, Any] = {}
        required = [f for f in ("title", "content", "author") if not partial or f in fields]
        require_text(fields, required, errors)
        for name in ("title", "content", "author"):
            if name in fields and name not in errors:
                out[name] = text_value(fields, name)

        if not partial or "priority" in fields:
            if not partial and not fields.get("priority"):
                out["priority"] = "medium"
            else:
                value = one_of(fields, "priority", PRIORITY_OPTIONS, errors)
                if value:
                    out["priority"] = value
        if not partial or "category" in fields:
            if not partial and not fields.get("category"):
                out["category"] = "General"
            else:
                value = one_of(fields, "category", CATEGORY_OPTIONS, errors)
                if value:
                    out["category"] = value

        if "date" in fields and fields["date"]:
            raw = fields["date"]
            try:
                out["date"] = (raw if isinstance(raw, date) else date.fromisoformat(str(raw)[:10])).isoformat()
            except ValueError:
                errors["date"] = "Must be a date (YYYY-MM-DD)"
        elif not partial:
            out["date"] = self.clock().date().isoformat()

        if "image" in fields:
            out["image"] = fields["image"] or None
        if "is_active" in fields:
            out["is_active"] = bool(fields["is_active"])
        elif not partial:
            out["is_active"] = True

        if errors:
            raise ValidationError(errors)
        return out

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def upload_image(self, data: bytes, filename: str = "") -> str:
        """Store a banner image; returns the reference to save on the row.

        Falls back to an inline data URI when the storage upload fails.
        """
        mime, ext = validate_image_upload(data, filename, self.max_upload_bytes)
        path = f"{IMAGE_FOLDER}/{unique_object_name(ext, self.clock())}"
        try:
            self.storage.upload(self.bucket, path, data, cache_control="3600", upsert=False, content_type=mime)
        except StorageError as err:
            logger.warning("Storage upload failed, using base64 fallback: %s", err)
            return to_data_uri(data, mime)
        return self.storage.public_url(self.bucket, path)

    def create_with_image(self, fields: Mapping[str, Any], image: Optional[bytes] = None,
                          filename: str = "") -> Dict[str, Any]:
        fields = dict(fields)
        if image:
            # validate the form before anything is uploaded
            self._reject_unknown(fields)
            self.clean(fields, partial=False)
            fields["image"] = self.upload_image(image, filename)
        try:
            return self.create(fields)
        except StoreError:
            if image:
                self.remove_image(fields["image"], "orphaned upload cleanup")
            raise

    def update_with_image(self, row_id: Any, patch: Mapping[str, Any], image: Optional[bytes] = None,
                          filename: str = "") -> Dict[str, Any]:
        patch = dict(patch)
        self._reject_unknown(patch)
        self.clean(patch, partial=True)
        old_ref = None
        if image or "image" in patch:
            old_ref = self.store.select_one(self.table, row_id, ["id", "image"])["image"]
        if image:
            patch["image"] = self.upload_image(image, filename)
        try:
            updated = self.update(row_id, patch)
        except StoreError:
            if image:
                self.remove_image(patch["image"], "orphaned upload cleanup")
            raise
        if "image" in patch:
            self.replace_image_cleanup(old_ref, updated.get("image"))
        return updated

    def banner(self, ref: Optional[str]) -> Optional[bytes]:
        """Banner bytes for rendering; None when the image cannot be read."""
        return load_image(self.storage, self.bucket, ref)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def view(self, search: str = "", priority: str = "all", category: str = "all") -> ListView:
        return derive_view(self.rows, search, SEARCH_FIELDS, {"priority": priority, "category": category})

    def stats(self) -> Dict[str, int]:
        counts = active_counts(self.rows)
        by_priority = count_by(self.rows, "priority")
        counts.update({
            "high_priority": by_priority.get("high", 0),
            "medium_priority": by_priority.get("medium", 0),
            "low_priority": by_priority.get("low", 0),
        })
        return counts
