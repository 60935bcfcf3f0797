# app/core/listing.py
"""
In-memory list derivations used by every manager screen.

Nothing here touches the store: the screen fetches its rows once and
re-derives the visible list on every change of rows / search / filter.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

ALL = "all"

Row = Mapping[str, Any]
FieldSpec = Union[str, Callable[[Row], Optional[str]]]


class EmptyState(str, Enum):
    NO_DATA = "no_data"
    NO_MATCHES = "no_matches"


@dataclass(frozen=True)
class ListView:
    items: List[Row]
    empty_state: Optional[EmptyState]
    total: int

    @property
    def empty_message(self) -> str:
        if self.empty_state is EmptyState.NO_DATA:
            return "Nothing has been added yet."
        if self.empty_state is EmptyState.NO_MATCHES:
            return "No results match the current search or filter."
        return ""


def _text(row: Row, field: FieldSpec) -> str:
    value = field(row) if callable(field) else row.get(field)
    return "" if value is None else str(value)


def full_name(row: Row) -> str:
    """First, middle, last and suffix joined by spaces, skipping blanks."""
    parts = (row.get("first_name"), row.get("middle_name"), row.get("last_name"), row.get("suffix"))
    return " ".join(str(p).strip() for p in parts if p and str(p).strip())


def filter_rows(
    rows: Iterable[Row],
    search: Optional[str],
    fields: Sequence[FieldSpec],
    filters: Optional[Mapping[str, Any]] = None,
) -> List[Row]:
    """Case-insensitive substring search over `fields` plus categorical filters.

    A filter whose value is 'all' (or None) does not narrow the list; an empty
    search string matches every row.
    """
    needle = (search or "").strip().lower()
    active = {k: v for k, v in (filters or {}).items() if v is not None and v != ALL}
    out = []
    for row in rows:
        if any(str(row.get(k)) != str(v) for k, v in active.items()):
            continue
        if needle and not any(needle in _text(row, f).lower() for f in fields):
            continue
        out.append(row)
    return out


def derive_view(
    rows: Sequence[Row],
    search: Optional[str],
    fields: Sequence[FieldSpec],
    filters: Optional[Mapping[str, Any]] = None,
) -> ListView:
    items = filter_rows(rows, search, fields, filters)
    if not rows:
        state = EmptyState.NO_DATA
    elif not items:
        state = EmptyState.NO_MATCHES
    else:
        state = None
    return ListView(items=items, empty_state=state, total=len(rows))


# ----------------------------------------------------------------------------
# Statistics
# ----------------------------------------------------------------------------

def count_by(rows: Iterable[Row], field: str) -> Dict[Any, int]:
    counts: Dict[Any, int] = {}
    for row in rows:
        key = row.get(field)
        counts[key] = counts.get(key, 0) + 1
    return counts


def active_counts(rows: Sequence[Row], flag: str = "is_active") -> Dict[str, int]:
    active = sum(1 for r in rows if r.get(flag))
    return {"total": len(rows), "active": active, "inactive": len(rows) - active}


def average(rows: Sequence[Row], field: str, digits: int = 1) -> float:
    values = [float(r[field]) for r in rows if r.get(field) is not None]
    if not values:
        return 0.0
    return round(sum(values) / len(values), digits)
