# screens/users/db.py
"""
User profile data access.

Profiles share their id with the sign-in account. Deleting a profile first
asks the auth-admin endpoint to drop the account; that call is best-effort
and a failure only produces a soft warning.
"""
from __future__ import annotations

import logging
import random
import re
import uuid
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional

from core.crud import DeleteOutcome, EntityManager, one_of, require_text, text_value
from core.errors import SoftWarning, StoreError, ValidationError
from core.images import initials, open_signed_url, resolve_signed_urls
from core.listing import ALL, active_counts, count_by, derive_view, full_name, ListView
from core.store import Embed, normalize_related
from schemas.user_profiles_schema import ROLES

logger = logging.getLogger(__name__)

HIDDEN_ROLE = "superadmin"
ASSIGNABLE_ROLES = tuple(r for r in ROLES if r != HIDDEN_ROLE)
STAFF_ROLES = ("instructor", "program_head")
YEAR_LEVELS = ("1st Year", "2nd Year", "3rd Year", "4th Year")
ENROLLMENT_STATUSES = ("enrolled", "not_enrolled", "graduated", "dropped")
SEARCH_FIELDS = (full_name, "email", "student_id", "department")

STUDENT_ID_ATTEMPTS = 5
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserManager(EntityManager):
    table = "user_profiles"
    label = "User"
    order_by = "created_at"
    ascending = False
    editable = (
        "email", "role", "first_name", "middle_name", "last_name", "suffix", "is_active",
        "student_id", "program_id", "year_level", "section", "enrollment_status",
        "department", "profile_picture_url",
    )

    def __init__(self, store, notifier=None, clock=None, auth_admin=None,
                 current_user_id: Optional[str] = None, rng: Optional[random.Random] = None):
        super().__init__(store, notifier, clock)
        self.auth_admin = auth_admin
        self.current_user_id = current_user_id
        self.rng = rng or random.Random()

    def list_exclude(self) -> Dict[str, Any]:
        exclude: Dict[str, Any] = {"role": HIDDEN_ROLE}
        if self.current_user_id:
            exclude["id"] = self.current_user_id
        return exclude

    def describe(self, row: Mapping[str, Any]) -> str:
        return f"User {full_name(row) or row.get('email')}"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def email_taken(self, email: str, except_id: Optional[str] = None) -> bool:
        exclude = {"id": except_id} if except_id else None
        return self.store.count(self.table, filters={"email": email}, exclude=exclude) > 0

    def generate_student_id(self) -> str:
        """C + two-digit year + four random digits, retried until unused."""
        yy = self.clock().strftime("%y")
        for _ in range(STUDENT_ID_ATTEMPTS):
            candidate = f"C{yy}{self.rng.randint(0, 9999):04d}"
            if not self.store.count(self.table, filters={"student_id": candidate}):
                return candidate
            logger.debug("Student id %s already in use", candidate)
        raise ValidationError.single("student_id", "Could not generate a unique student ID, enter one manually")

    def clean(self, fields, partial, current=None) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        out: Dict[str, Any] = {}
        merged = {**(current or {}), **fields}

        required = [f for f in ("email", "first_name", "last_name") if not partial or f in fields]
        require_text(fields, required, errors)
        for name in ("email", "first_name", "middle_name", "last_name", "suffix"):
            if name in fields and name not in errors:
                out[name] = text_value(fields, name) or None
        if out.get("email"):
            out["email"] = out["email"].lower()
            if not EMAIL_RE.match(out["email"]):
                errors["email"] = "Enter a valid email address"

        if not partial or "role" in fields:
            role = one_of(fields, "role", ASSIGNABLE_ROLES, errors)
            if role:
                out["role"] = role
        role = out.get("role") or merged.get("role")

        for name in ("student_id", "year_level", "section", "enrollment_status", "department"):
            if name in fields:
                out[name] = text_value(fields, name) or None
        if "program_id" in fields:
            raw = fields.get("program_id")
            try:
                out["program_id"] = int(raw) if raw not in (None, "") else None
            except (TypeError, ValueError):
                errors["program_id"] = "Select a program"
        if out.get("year_level") and out["year_level"] not in YEAR_LEVELS:
            errors["year_level"] = f"Must be one of: {', '.join(YEAR_LEVELS)}"
        if out.get("enrollment_status") and out["enrollment_status"] not in ENROLLMENT_STATUSES:
            errors["enrollment_status"] = f"Must be one of: {', '.join(ENROLLMENT_STATUSES)}"

        if role == "student":
            merged.update(out)
            if not merged.get("program_id") and "program_id" not in errors:
                errors["program_id"] = "Program is required for students"
            if not merged.get("year_level") and "year_level" not in errors:
                errors["year_level"] = "Year level is required for students"
            if partial and "student_id" in fields and not out.get("student_id"):
                errors["student_id"] = "Student ID is required for students"
        elif role in STAFF_ROLES:
            if not (out.get("department") if "department" in fields else merged.get("department")):
                errors["department"] = "Department is required for instructors and program heads"

        if "profile_picture_url" in fields:
            out["profile_picture_url"] = fields["profile_picture_url"] or None
        if "is_active" in fields:
            out["is_active"] = bool(fields["is_active"])
        elif not partial:
            out["is_active"] = True

        if errors:
            raise ValidationError(errors)
        return out

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        self._reject_unknown(fields)
        cleaned = self.clean(fields, partial=False)
        if self.email_taken(cleaned["email"]):
            raise ValidationError.single("email", "A user with this email already exists")
        if cleaned["role"] == "student" and not cleaned.get("student_id"):
            cleaned["student_id"] = self.generate_student_id()
        elif cleaned.get("student_id") and self.store.count(self.table, filters={"student_id": cleaned["student_id"]}):
            raise ValidationError.single("student_id", "Student ID already in use")
        row = self.build_insert(cleaned)
        row["id"] = str(uuid.uuid4())
        try:
            created = self.store.insert(self.table, [row])[0]
        except StoreError as err:
            self._failed("create", err)
            raise
        logger.info("Created user %s role=%s", created["id"], created["role"])
        self._after_write(f"{self.describe(created)} created successfully")
        return created

    def update(self, row_id: Any, patch: Mapping[str, Any]) -> Dict[str, Any]:
        email = text_value(patch, "email").lower()
        if email and self.email_taken(email, except_id=row_id):
            raise ValidationError.single("email", "A user with this email already exists")
        return super().update(row_id, patch)

    def current_row(self, row_id: Any) -> Optional[Dict[str, Any]]:
        row = super().current_row(row_id)
        if row is None:
            # role-dependent rules need the stored role
            row = self.store.select_one(self.table, row_id)
        return row

    def delete(self, row_id: Any) -> DeleteOutcome:
        if self.current_user_id and row_id == self.current_user_id:
            raise ValidationError.single("id", "You cannot delete your own account")
        outcome = DeleteOutcome(row_id)
        if self.auth_admin is not None and not self.auth_admin.delete_auth_account(row_id):
            warning = SoftWarning("auth account delete", f"sign-in account {row_id} was not removed")
            logger.warning("Soft warning: %s", warning)
            outcome.warnings.append(warning)
        try:
            self.store.delete(self.table, row_id)
        except StoreError as err:
            self._failed("delete", err)
            raise
        logger.info("Deleted user %s", row_id)
        if outcome.warnings:
            self.notifier.warning("User profile deleted, but the sign-in account could not be removed")
        self._after_write("User deleted successfully")
        return outcome

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def view(self, search: str = "", role: str = ALL) -> ListView:
        return derive_view(self.rows, search, SEARCH_FIELDS, {"role": role})

    def stats(self) -> Dict[str, int]:
        counts = active_counts(self.rows)
        by_role = count_by(self.rows, "role")
        for role in ASSIGNABLE_ROLES:
            counts[role] = by_role.get(role, 0)
        return counts

    def resolve_avatars(self, storage, bucket: str, expires_in: int = 3600) -> Dict[Any, Optional[str]]:
        return resolve_signed_urls(storage, bucket, self.rows, column="profile_picture_url",
                                   expires_in=expires_in, now=self.clock())

    def avatar_images(self, storage, bucket: str, expires_in: int = 3600) -> Dict[Any, Optional[bytes]]:
        """Avatar bytes per user id; None means the initials placeholder."""
        now = self.clock()
        return {user_id: open_signed_url(storage, url, now=now)
                for user_id, url in self.resolve_avatars(storage, bucket, expires_in).items()}


def avatar_placeholder(row: Mapping[str, Any]) -> str:
    return initials(row.get("first_name"), row.get("last_name"), row.get("email"))


# ----------------------------------------------------------------------------
# Instructor subject assignments
# ----------------------------------------------------------------------------

COURSE_EMBED = Embed("course", "courses", "subject_id", columns=("id", "code", "name", "units"))


class TeacherSubjectResolver:
    """Active course assignments per instructor, cached for the mounted screen.

    Pass the screen's `MountScope.cache` as `cache` so the results go away
    when the screen is left.
    """

    def __init__(self, store, cache: Optional[MutableMapping[str, Any]] = None):
        self.store = store
        self.cache = cache if cache is not None else {}

    def _key(self, instructor_id: str) -> str:
        return f"teacher_subjects:{instructor_id}"

    def subjects_for(self, instructor_id: str) -> List[Dict[str, Any]]:
        key = self._key(instructor_id)
        if key in self.cache:
            return self.cache[key]
        rows = self.store.select(
            "teacher_subjects",
            filters={"teacher_id": instructor_id, "is_active": True},
            order_by="created_at",
            embed=[COURSE_EMBED],
        )
        for row in rows:
            row["course"] = normalize_related(row.get("course"))
        self.cache[key] = rows
        return rows

    def prefetch(self, users: Iterable[Mapping[str, Any]], role_filter: str) -> Dict[str, List[Dict[str, Any]]]:
        """Resolve every listed instructor, but only while the instructor tab is shown."""
        if role_filter != "instructor":
            return {}
        return {u["id"]: self.subjects_for(u["id"]) for u in users if u.get("role") == "instructor"}

    def assign_subject(self, instructor_id: str, course_id: int, section: str,
                       academic_year: str, semester: str) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        fields = {"section": section, "academic_year": academic_year, "semester": semester}
        require_text(fields, fields.keys(), errors)
        if not course_id:
            errors["subject_id"] = "Select a course"
        if errors:
            raise ValidationError(errors)
        row = {
            "teacher_id": instructor_id,
            "subject_id": int(course_id),
            "section": section.strip(),
            "academic_year": academic_year.strip(),
            "semester": semester.strip(),
            "is_active": True,
        }
        created = self.store.insert("teacher_subjects", [row])[0]
        logger.info("Assigned course %s to instructor %s", course_id, instructor_id)
        self.clear(instructor_id)
        return created

    def clear(self, instructor_id: Optional[str] = None) -> None:
        if instructor_id is None:
            for key in [k for k in self.cache if str(k).startswith("teacher_subjects:")]:
                del self.cache[key]
        else:
            self.cache.pop(self._key(instructor_id), None)
