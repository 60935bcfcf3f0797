# app/core/crud.py
"""
Write-operation orchestration shared by the manager screens.

Every write goes through the same path:
    validate locally -> exactly one store write -> notification -> full re-fetch
A ValidationError never reaches the store; a StoreError leaves `rows`
untouched (last-known-good) and is re-raised after the error notification.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from core.errors import SoftWarning, StorageError, StoreError, ValidationError
from core.images import storage_path_from_url
from core.notify import Notifier

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DeleteOutcome:
    id: Any
    warnings: List[SoftWarning] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.warnings


# ----------------------------------------------------------------------------
# Field validation helpers
# ----------------------------------------------------------------------------

def text_value(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    return "" if value is None else str(value).strip()


def require_text(fields: Mapping[str, Any], names: Iterable[str], errors: Dict[str, str],
                 labels: Optional[Mapping[str, str]] = None) -> None:
    for name in names:
        if not text_value(fields, name):
            label = (labels or {}).get(name) or name.replace("_", " ").capitalize()
            errors[name] = f"{label} is required"


def int_in_range(fields: Mapping[str, Any], name: str, low: int, high: Optional[int],
                 errors: Dict[str, str]) -> Optional[int]:
    raw = fields.get(name)
    try:
        if isinstance(raw, bool):
            raise TypeError
        value = int(raw)
        if isinstance(raw, float) and raw != value:
            raise ValueError
    except (TypeError, ValueError):
        errors[name] = "Must be a whole number"
        return None
    if value < low or (high is not None and value > high):
        errors[name] = f"Must be between {low} and {high}" if high is not None else f"Must be at least {low}"
        return None
    return value


def one_of(fields: Mapping[str, Any], name: str, choices: Sequence[str], errors: Dict[str, str]) -> Optional[str]:
    value = text_value(fields, name)
    if value not in choices:
        errors[name] = f"Must be one of: {', '.join(choices)}"
        return None
    return value


# ----------------------------------------------------------------------------
# Managers
# ----------------------------------------------------------------------------

class EntityManager:
    table: str = ""
    label: str = "Record"
    columns: Sequence[str] | str = "*"
    order_by: Optional[str] = "created_at"
    ascending: bool = False
    flag_column: Optional[str] = "is_active"
    touch_column: Optional[str] = "updated_at"
    editable: Sequence[str] = ()

    def __init__(self, store, notifier: Optional[Notifier] = None, clock: Optional[Clock] = None):
        self.store = store
        self.notifier = notifier or Notifier()
        self.clock = clock or utcnow
        self.rows: List[Dict[str, Any]] = []
        self.loaded = False

    # -- hooks ----------------------------------------------------------

    def list_filters(self) -> Dict[str, Any]:
        return {}

    def list_exclude(self) -> Dict[str, Any]:
        return {}

    def clean(self, fields: Mapping[str, Any], partial: bool, current: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Validate and normalise input; raise ValidationError on any problem."""
        return dict(fields)

    def describe(self, row: Mapping[str, Any]) -> str:
        return self.label

    # -- reads ----------------------------------------------------------

    def timestamp(self) -> str:
        return self.clock().isoformat()

    def refresh(self) -> List[Dict[str, Any]]:
        rows = self.store.select(
            self.table,
            self.columns,
            filters=self.list_filters() or None,
            exclude=self.list_exclude() or None,
            order_by=self.order_by,
            ascending=self.ascending,
        )
        self.rows = rows
        self.loaded = True
        return rows

    def get(self, row_id: Any) -> Dict[str, Any]:
        return self.store.select_one(self.table, row_id)

    # -- writes ---------------------------------------------------------

    def _reject_unknown(self, fields: Mapping[str, Any]) -> None:
        unknown = sorted(set(fields) - set(self.editable))
        if unknown:
            raise ValidationError({k: "Unknown field" for k in unknown})

    def _after_write(self, message: str) -> None:
        self.notifier.success(message)
        try:
            self.refresh()
        except StoreError as err:
            # the write stands; the list keeps its last-known-good snapshot
            logger.error("Re-fetch of %s after write failed: %s", self.table, err)
            self.notifier.error(f"Saved, but failed to reload {self.label.lower()}s: {err.message}")

    def _failed(self, action: str, err: StoreError) -> None:
        logger.error("Failed to %s %s: %s", action, self.label.lower(), err)
        self.notifier.error(f"Failed to {action} {self.label.lower()}: {err.message}")

    def build_insert(self, cleaned: Dict[str, Any]) -> Dict[str, Any]:
        ts = self.timestamp()
        row = dict(cleaned)
        cols = self.store.columns(self.table)
        if "created_at" in cols:
            row.setdefault("created_at", ts)
        if self.touch_column and self.touch_column in cols:
            row.setdefault(self.touch_column, ts)
        return row

    def create(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        self._reject_unknown(fields)
        cleaned = self.clean(fields, partial=False)
        try:
            created = self.store.insert(self.table, [self.build_insert(cleaned)])[0]
        except StoreError as err:
            self._failed("create", err)
            raise
        logger.info("Created %s id=%s", self.table, created.get("id"))
        self._after_write(f"{self.describe(created)} created successfully")
        return created

    def update(self, row_id: Any, patch: Mapping[str, Any]) -> Dict[str, Any]:
        self._reject_unknown(patch)
        current = self.current_row(row_id)
        cleaned = self.clean(patch, partial=True, current=current)
        if not cleaned:
            raise ValidationError.single("__all__", "Nothing to update")
        if self.touch_column and self.touch_column in self.store.columns(self.table):
            cleaned[self.touch_column] = self.timestamp()
        try:
            updated = self.store.update(self.table, cleaned, row_id)
        except StoreError as err:
            self._failed("update", err)
            raise
        logger.info("Updated %s id=%s fields=%s", self.table, row_id, sorted(cleaned))
        self._after_write(f"{self.describe(updated)} updated successfully")
        return updated

    def current_row(self, row_id: Any) -> Optional[Dict[str, Any]]:
        """Row from the snapshot if present; used by validation of partial updates."""
        for row in self.rows:
            if row.get("id") == row_id:
                return row
        return None

    def toggle(self, row_id: Any, current: Optional[bool] = None) -> Dict[str, Any]:
        if not self.flag_column:
            raise TypeError(f"{self.label} has no active flag")
        try:
            if current is None:
                current = bool(self.store.select_one(self.table, row_id, ["id", self.flag_column])[self.flag_column])
            patch: Dict[str, Any] = {self.flag_column: not current}
            if self.touch_column and self.touch_column in self.store.columns(self.table):
                patch[self.touch_column] = self.timestamp()
            updated = self.store.update(self.table, patch, row_id)
        except StoreError as err:
            self._failed("update status of", err)
            raise
        state = "activated" if updated[self.flag_column] else "deactivated"
        logger.info("Toggled %s id=%s -> %s", self.table, row_id, state)
        self._after_write(f"{self.describe(updated)} {state} successfully")
        return updated

    def delete(self, row_id: Any) -> DeleteOutcome:
        try:
            self.store.delete(self.table, row_id)
        except StoreError as err:
            self._failed("delete", err)
            raise
        logger.info("Deleted %s id=%s", self.table, row_id)
        self._after_write(f"{self.label} deleted successfully")
        return DeleteOutcome(row_id)


class ImageBackedManager(EntityManager):
    """Manager whose rows reference an object in storage."""

    image_column: str = "image_url"
    bucket: str = ""

    def __init__(self, store, storage, notifier: Optional[Notifier] = None,
                 clock: Optional[Clock] = None, bucket: Optional[str] = None):
        super().__init__(store, notifier, clock)
        self.storage = storage
        if bucket:
            self.bucket = bucket

    def remove_image(self, ref: Optional[str], action: str) -> Optional[SoftWarning]:
        """Best-effort storage delete; failures come back as a SoftWarning."""
        path = storage_path_from_url(ref)
        if not path:
            return None
        try:
            self.storage.remove(self.bucket, [path])
            logger.info("Removed image %s/%s", self.bucket, path)
            return None
        except StorageError as err:
            warning = SoftWarning(action, f"could not remove {self.bucket}/{path}: {err.message}")
            logger.warning("Soft warning: %s", warning)
            return warning

    def delete(self, row_id: Any) -> DeleteOutcome:
        try:
            ref = self.store.select_one(self.table, row_id, ["id", self.image_column])[self.image_column]
            self.store.delete(self.table, row_id)
        except StoreError as err:
            self._failed("delete", err)
            raise
        logger.info("Deleted %s id=%s", self.table, row_id)
        outcome = DeleteOutcome(row_id)
        warning = self.remove_image(ref, "image cleanup")
        if warning:
            outcome.warnings.append(warning)
            self.notifier.warning(f"{self.label} deleted, but its image could not be removed")
        self._after_write(f"{self.label} deleted successfully")
        return outcome

    def replace_image_cleanup(self, old_ref: Optional[str], new_ref: Optional[str]) -> Optional[SoftWarning]:
        if not old_ref or old_ref == new_ref:
            return None
        if storage_path_from_url(old_ref) == storage_path_from_url(new_ref):
            return None
        warning = self.remove_image(old_ref, "old image cleanup")
        if warning:
            self.notifier.warning("Saved, but the previous image could not be removed")
        return warning
