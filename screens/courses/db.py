# screens/courses/db.py
"""
Course and section data access.

Course images live in the 'course' bucket at
course-images/<course code>/<epoch millis>.<ext>; the row stores that bare
path. Screens turn it into bytes through a downloaded blob handle owned by
their MountScope.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from core.crud import EntityManager, ImageBackedManager, int_in_range, require_text, text_value
from core.errors import StoreError, ValidationError
from core.images import resolve_downloaded_images, validate_image_upload
from core.listing import average, derive_view, ListView

logger = logging.getLogger(__name__)

MIN_UNITS, MAX_UNITS = 1, 6
DEFAULT_UNITS = 3
YEAR_LEVELS = ("1st Year", "2nd Year", "3rd Year", "4th Year")
SEARCH_FIELDS = ("code", "name", "description")
IMAGE_PREFIX = "course-images"


class CourseManager(ImageBackedManager):
    table = "courses"
    label = "Course"
    order_by = "code"
    ascending = True
    flag_column = None
    image_column = "image_url"
    bucket = "course"
    editable = ("code", "name", "description", "units", "image_url", "summer", "year_level", "created_by")

    max_upload_bytes = 10 * 1024 * 1024

    def describe(self, row: Mapping[str, Any]) -> str:
        return f"Course {row.get('code')}"

    def clean(self, fields, partial, current=None) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        out: Dict[str, Any] = {}
        require_text(fields, [f for f in ("code", "name") if not partial or f in fields], errors)
        if "code" in fields and "code" not in errors:
            out["code"] = text_value(fields, "code").upper()
        if "name" in fields and "name" not in errors:
            out["name"] = text_value(fields, "name")
        if "description" in fields:
            out["description"] = text_value(fields, "description")
        if "units" in fields or not partial:
            units = int_in_range({"units": fields.get("units", DEFAULT_UNITS)}, "units", MIN_UNITS, MAX_UNITS, errors)
            if units is not None:
                out["units"] = units
        if "year_level" in fields:
            year = text_value(fields, "year_level")
            if year and year not in YEAR_LEVELS:
                errors["year_level"] = f"Must be one of: {', '.join(YEAR_LEVELS)}"
            out["year_level"] = year or None
        if "summer" in fields:
            out["summer"] = bool(fields["summer"])
        if "image_url" in fields:
            out["image_url"] = text_value(fields, "image_url") or None
        if "created_by" in fields:
            out["created_by"] = text_value(fields, "created_by") or None
        if errors:
            raise ValidationError(errors)
        return out

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def upload_image(self, code: str, data: bytes, filename: str = "") -> str:
        mime, ext = validate_image_upload(data, filename, self.max_upload_bytes)
        millis = int(self.clock().timestamp() * 1000)
        path = f"{IMAGE_PREFIX}/{code}/{millis}.{ext}"
        return self.storage.upload(self.bucket, path, data, cache_control="3600", upsert=True, content_type=mime)

    def create_with_image(self, fields: Mapping[str, Any], image: Optional[bytes] = None,
                          filename: str = "") -> Dict[str, Any]:
        fields = dict(fields)
        if image:
            self._reject_unknown(fields)
            cleaned = self.clean(fields, partial=False)
            fields["image_url"] = self.upload_image(cleaned["code"], image, filename)
        try:
            return self.create(fields)
        except StoreError:
            if image:
                self.remove_image(fields["image_url"], "orphaned upload cleanup")
            raise

    def update_with_image(self, row_id: Any, patch: Mapping[str, Any], image: Optional[bytes] = None,
                          filename: str = "") -> Dict[str, Any]:
        patch = dict(patch)
        self._reject_unknown(patch)
        cleaned = self.clean(patch, partial=True)
        current = self.store.select_one(self.table, row_id, ["id", "code", "image_url"])
        if image:
            code = cleaned.get("code") or current["code"]
            patch["image_url"] = self.upload_image(code, image, filename)
        try:
            updated = self.update(row_id, patch)
        except StoreError:
            if image and patch["image_url"] != current["image_url"]:
                self.remove_image(patch["image_url"], "orphaned upload cleanup")
            raise
        if "image_url" in patch:
            self.replace_image_cleanup(current["image_url"], updated.get("image_url"))
        return updated

    def cleanup_unused_images(self) -> List[str]:
        """Remove stored course images no course row points at any more."""
        used = {r["image_url"] for r in self.store.select(self.table, ["image_url"], exclude={"image_url": None})}
        unused = [p for p in self.storage.list(self.bucket, IMAGE_PREFIX) if p not in used]
        if not unused:
            return []
        removed = self.storage.remove(self.bucket, unused)
        logger.info("Cleaned up %d unused course images", len(removed))
        self.notifier.success(f"Cleaned up {len(removed)} unused images")
        return removed

    def resolve_images(self, scope) -> Dict[Any, Optional[str]]:
        """Blob handles for the current rows; previous handles are revoked."""
        return resolve_downloaded_images(self.storage, self.bucket, self.rows, scope,
                                         column=self.image_column, group="course-images")

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def view(self, search: str = "", units: Any = "all", year_level: str = "all") -> ListView:
        return derive_view(self.rows, search, SEARCH_FIELDS, {"units": units, "year_level": year_level})

    def stats(self) -> Dict[str, Any]:
        return {
            "total": len(self.rows),
            "average_units": average(self.rows, "units"),
            "summer": sum(1 for r in self.rows if r.get("summer")),
        }


class SectionManager(EntityManager):
    table = "sections"
    label = "Section"
    order_by = "created_at"
    ascending = True
    flag_column = None
    touch_column = None
    editable = ("course_id", "section_name", "capacity", "schedule", "room", "instructor")

    DEFAULT_CAPACITY = 30

    def __init__(self, store, notifier=None, clock=None, course_id: Optional[int] = None):
        super().__init__(store, notifier, clock)
        self.course_id = course_id

    def list_filters(self) -> Dict[str, Any]:
        return {"course_id": self.course_id} if self.course_id is not None else {}

    def describe(self, row: Mapping[str, Any]) -> str:
        return f"Section {row.get('section_name')}"

    def clean(self, fields, partial, current=None) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        out: Dict[str, Any] = {}
        if not partial:
            fields = {"course_id": self.course_id, **{k: v for k, v in fields.items() if v is not None}}
        if "course_id" in fields:
            course_id = fields.get("course_id")
            if course_id in (None, ""):
                errors["course_id"] = "Select a course first"
            else:
                out["course_id"] = course_id
        text_fields = ("section_name", "schedule", "room", "instructor")
        require_text(fields, [f for f in text_fields if not partial or f in fields], errors)
        for name in text_fields:
            if name in fields and name not in errors:
                out[name] = text_value(fields, name)
        if "capacity" in fields or not partial:
            capacity = int_in_range({"capacity": fields.get("capacity", self.DEFAULT_CAPACITY)},
                                    "capacity", 1, None, errors)
            if capacity is not None:
                out["capacity"] = capacity
        if errors:
            raise ValidationError(errors)
        return out
