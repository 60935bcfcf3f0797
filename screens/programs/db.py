# screens/programs/db.py
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from core.crud import EntityManager, require_text, text_value
from core.errors import ValidationError
from core.listing import active_counts, derive_view, ListView
from screens.programs.codes import MAX_CODE_LENGTH, generate_program_code, is_valid_code

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "description", "major", "code")


class ProgramManager(EntityManager):
    """Programs; the code defaults to one derived from the name and is frozen after creation."""

    table = "programs"
    label = "Program"
    order_by = "code"
    ascending = True
    editable = ("name", "code", "description", "major", "is_active")

    def describe(self, row: Mapping[str, Any]) -> str:
        return f"Program {row.get('code')}"

    def preview_code(self, name: str) -> str:
        """Code the program would get if created now; '' while the name is unusable."""
        try:
            return generate_program_code(name, self.clock())
        except ValueError:
            return ""

    def current_row(self, row_id: Any) -> Optional[Dict[str, Any]]:
        row = super().current_row(row_id)
        if row is None:
            # the code check compares against the stored code
            row = self.store.select_one(self.table, row_id)
        return row

    def clean(self, fields, partial, current=None) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        out: Dict[str, Any] = {}
        if not partial or "name" in fields:
            require_text(fields, ["name"], errors, labels={"name": "Program name"})
            if "name" not in errors:
                out["name"] = text_value(fields, "name")
        code = text_value(fields, "code").upper()
        if partial:
            if "code" in fields and (current is None or code != current.get("code")):
                errors["code"] = "Program code cannot be changed after creation"
        elif code:
            if not is_valid_code(code):
                errors["code"] = f"Use 1-{MAX_CODE_LENGTH} letters, digits or dashes"
            else:
                out["code"] = code
        for name in ("description", "major"):
            if name in fields:
                out[name] = text_value(fields, name)
        if "is_active" in fields:
            out["is_active"] = bool(fields["is_active"])
        elif not partial:
            out["is_active"] = True
        if not partial and not code and "name" in out:
            try:
                out["code"] = generate_program_code(out["name"], self.clock())
            except ValueError as exc:
                errors["name"] = str(exc)
        if errors:
            raise ValidationError(errors)
        return out

    def create(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        self._reject_unknown(fields)
        cleaned = self.clean(fields, partial=False)
        if self.store.count(self.table, filters={"code": cleaned["code"]}):
            logger.info("Rejected duplicate program code %s", cleaned["code"])
            raise ValidationError.single("code", f"Program code {cleaned['code']} already exists")
        return super().create(fields)

    def view(self, search: str = "") -> ListView:
        return derive_view(self.rows, search, SEARCH_FIELDS)

    def stats(self) -> Dict[str, int]:
        return active_counts(self.rows)
