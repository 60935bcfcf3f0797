# app/core/store.py
"""
Table-style access to the backing store.

Every screen talks to the database through `Store`: select / insert /
update-by-id / delete-by-id. Column names are checked against the reflected
table before any SQL is built, and every SQLAlchemy failure is translated
into a StoreError carrying a code, the driver message, details and a hint.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import inspect as sa_inspect, text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.types import Boolean

from core.errors import StoreError

logger = logging.getLogger(__name__)

NO_ROWS = "no_rows"

# SQLSTATE-style codes for the integrity failures SQLite reports as text
_INTEGRITY_CODES = (
    ("UNIQUE constraint failed", "23505", "A row with the same value already exists."),
    ("FOREIGN KEY constraint failed", "23503", "The referenced row does not exist."),
    ("NOT NULL constraint failed", "23502", "A required column was left empty."),
    ("CHECK constraint failed", "23514", "A value is outside the allowed range."),
)


@dataclass(frozen=True)
class Embed:
    """Related rows fetched alongside a select, keyed by `name` on each row.

    The related rows are always returned as a list (one-to-many shape); use
    `normalize_related` to collapse them when the relation is one-to-one.
    """
    name: str
    table: str
    local_key: str
    remote_key: str = "id"
    columns: Sequence[str] | str = "*"


def normalize_related(value: Any) -> Optional[Dict[str, Any]]:
    """Collapse a joined relation to a single nullable record.

    Joins may come back as an object, a list with one object, an empty list
    or None; all of them normalize to `dict | None`.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return dict(value[0]) if value else None
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(f"Unexpected related value: {type(value).__name__}")


def translate_error(exc: SQLAlchemyError, table: str) -> StoreError:
    orig = getattr(exc, "orig", None)
    message = str(orig) if orig is not None else str(exc)
    details = f"table={table}"
    if isinstance(exc, IntegrityError):
        for needle, code, hint in _INTEGRITY_CODES:
            if needle in message:
                return StoreError(message, code=code, details=details, hint=hint)
        return StoreError(message, code="23000", details=details)
    if isinstance(exc, OperationalError) and "no such table" in message:
        return StoreError(message, code="42P01", details=details, hint="Run the schema installers first.")
    if isinstance(exc, DBAPIError):
        return StoreError(message, code="DB", details=details)
    return StoreError(message, details=details)


class Store:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._columns: Dict[str, Dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Reflection helpers
    # ------------------------------------------------------------------

    def _table_columns(self, table: str) -> Dict[str, Any]:
        cached = self._columns.get(table)
        if cached is not None:
            return cached
        try:
            insp = sa_inspect(self.engine)
            if not insp.has_table(table):
                raise StoreError(f'relation "{table}" does not exist', code="42P01",
                                 hint="Run the schema installers first.")
            cols = {c["name"]: c["type"] for c in insp.get_columns(table)}
        except SQLAlchemyError as exc:
            raise translate_error(exc, table) from exc
        self._columns[table] = cols
        return cols

    def columns(self, table: str) -> List[str]:
        return list(self._table_columns(table))

    def _check_columns(self, table: str, names: Iterable[str]) -> List[str]:
        known = self._table_columns(table)
        names = list(names)
        unknown = [n for n in names if n not in known]
        if unknown:
            raise StoreError(
                f"column {unknown[0]!r} does not exist on {table}",
                code="42703",
                details=f"table={table}",
                hint=f"Known columns: {', '.join(known)}",
            )
        return names

    def _select_list(self, table: str, columns: Sequence[str] | str) -> List[str]:
        if columns == "*" or not columns:
            return self.columns(table)
        if isinstance(columns, str):
            columns = [c.strip() for c in columns.split(",") if c.strip()]
        return self._check_columns(table, columns)

    def _coerce(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        types = self._table_columns(table)
        out = dict(row)
        for name, value in out.items():
            if value is not None and isinstance(types.get(name), Boolean):
                out[name] = bool(value)
        return out

    @staticmethod
    def _where(filters: Optional[Mapping[str, Any]], exclude: Optional[Mapping[str, Any]],
               params: Dict[str, Any]) -> str:
        clauses = []
        for i, (col, value) in enumerate((filters or {}).items()):
            if value is None:
                clauses.append(f"{col} IS NULL")
            else:
                params[f"f{i}"] = value
                clauses.append(f"{col} = :f{i}")
        for i, (col, value) in enumerate((exclude or {}).items()):
            if value is None:
                clauses.append(f"{col} IS NOT NULL")
            else:
                params[f"x{i}"] = value
                clauses.append(f"({col} IS NULL OR {col} <> :x{i})")
        return (" WHERE " + " AND ".join(clauses)) if clauses else ""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: Sequence[str] | str = "*",
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
        exclude: Optional[Mapping[str, Any]] = None,
        embed: Sequence[Embed] = (),
    ) -> List[Dict[str, Any]]:
        cols = self._select_list(table, columns)
        self._check_columns(table, list(filters or {}) + list(exclude or {}))
        params: Dict[str, Any] = {}
        sql = f"SELECT {', '.join(cols)} FROM {table}" + self._where(filters, exclude, params)
        if order_by:
            self._check_columns(table, [order_by])
            sql += f" ORDER BY {order_by} {'ASC' if ascending else 'DESC'}"
        try:
            with self.engine.connect() as conn:
                rows = [self._coerce(table, r._mapping) for r in conn.execute(sa_text(sql), params)]
                for rel in embed:
                    self._attach(conn, table, rows, rel)
        except SQLAlchemyError as exc:
            err = translate_error(exc, table)
            logger.error("select on %s failed: %s", table, err)
            raise err from exc
        return rows

    def _attach(self, conn, table: str, rows: List[Dict[str, Any]], rel: Embed) -> None:
        if rows and rel.local_key not in rows[0]:
            raise StoreError(f"embed {rel.name!r} needs column {rel.local_key!r} in the select",
                             code="PGRST100", details=f"table={table}")
        rcols = self._select_list(rel.table, rel.columns)
        self._check_columns(rel.table, [rel.remote_key])
        keys = sorted({r[rel.local_key] for r in rows if r.get(rel.local_key) is not None}, key=str)
        related: Dict[Any, List[Dict[str, Any]]] = {}
        if keys:
            fetch_cols = rcols if rel.remote_key in rcols else rcols + [rel.remote_key]
            marks = ", ".join(f":k{i}" for i in range(len(keys)))
            params = {f"k{i}": k for i, k in enumerate(keys)}
            result = conn.execute(sa_text(
                f"SELECT {', '.join(fetch_cols)} FROM {rel.table} WHERE {rel.remote_key} IN ({marks})"
            ), params)
            for r in result:
                rec = self._coerce(rel.table, r._mapping)
                key = rec[rel.remote_key]
                if rel.remote_key not in rcols:
                    rec.pop(rel.remote_key)
                related.setdefault(key, []).append(rec)
        for row in rows:
            row[rel.name] = related.get(row.get(rel.local_key), [])

    def select_one(self, table: str, row_id: Any, columns: Sequence[str] | str = "*") -> Dict[str, Any]:
        """Exactly one row by id, otherwise a StoreError with code `no_rows`."""
        rows = self.select(table, columns, filters={"id": row_id})
        if len(rows) != 1:
            raise StoreError(
                f"Expected one row in {table} with id={row_id!r}, found {len(rows)}",
                code=NO_ROWS,
                details=f"table={table}",
            )
        return rows[0]

    def count(self, table: str, filters: Optional[Mapping[str, Any]] = None,
              exclude: Optional[Mapping[str, Any]] = None) -> int:
        self._check_columns(table, list(filters or {}) + list(exclude or {}))
        params: Dict[str, Any] = {}
        sql = f"SELECT COUNT(*) FROM {table}" + self._where(filters, exclude, params)
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(sa_text(sql), params).scalar() or 0)
        except SQLAlchemyError as exc:
            err = translate_error(exc, table)
            logger.error("count on %s failed: %s", table, err)
            raise err from exc

    # ------------------------------------------------------------------
    # Writes (one request each)
    # ------------------------------------------------------------------

    def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        created_ids = []
        try:
            with self.engine.begin() as conn:
                for row in rows:
                    cols = self._check_columns(table, row.keys())
                    sql = (f"INSERT INTO {table} ({', '.join(cols)}) "
                           f"VALUES ({', '.join(':' + c for c in cols)})")
                    result = conn.execute(sa_text(sql), dict(row))
                    created_ids.append(row["id"] if "id" in row else result.lastrowid)
                cols = self.columns(table)
                created = []
                for row_id in created_ids:
                    rec = conn.execute(
                        sa_text(f"SELECT {', '.join(cols)} FROM {table} WHERE id = :id"), {"id": row_id}
                    ).fetchone()
                    created.append(self._coerce(table, rec._mapping))
        except SQLAlchemyError as exc:
            err = translate_error(exc, table)
            logger.error("insert into %s failed: %s", table, err)
            raise err from exc
        return created

    def update(self, table: str, patch: Mapping[str, Any], row_id: Any) -> Dict[str, Any]:
        if not patch:
            raise StoreError("Empty update patch", code="PGRST102", details=f"table={table}")
        cols = self._check_columns(table, patch.keys())
        params = {f"p_{c}": patch[c] for c in cols}
        params["row_id"] = row_id
        sets = ", ".join(f"{c} = :p_{c}" for c in cols)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(sa_text(f"UPDATE {table} SET {sets} WHERE id = :row_id"), params)
                if result.rowcount == 0:
                    raise StoreError(f"No row in {table} with id={row_id!r}", code=NO_ROWS,
                                     details=f"table={table}")
                rec = conn.execute(
                    sa_text(f"SELECT {', '.join(self.columns(table))} FROM {table} WHERE id = :id"),
                    {"id": row_id},
                ).fetchone()
        except SQLAlchemyError as exc:
            err = translate_error(exc, table)
            logger.error("update on %s failed: %s", table, err)
            raise err from exc
        return self._coerce(table, rec._mapping)

    def delete(self, table: str, row_id: Any) -> int:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(sa_text(f"DELETE FROM {table} WHERE id = :row_id"), {"row_id": row_id})
        except SQLAlchemyError as exc:
            err = translate_error(exc, table)
            logger.error("delete on %s failed: %s", table, err)
            raise err from exc
        if result.rowcount == 0:
            raise StoreError(f"No row in {table} with id={row_id!r}", code=NO_ROWS, details=f"table={table}")
        return result.rowcount
