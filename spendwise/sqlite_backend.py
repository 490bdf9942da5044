import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from spendwise.backend import (
    TABLES,
    UNIQUE_COLUMNS,
    Backend,
    Filter,
    normalize,
    check_columns,
    check_filters,
    new_id,
    now_iso,
)
from spendwise.errors import PersistenceError, UNIQUE_VIOLATION

logger = logging.getLogger(__name__)

_SQL_TYPES = {"text": "TEXT", "real": "REAL", "bool": "INTEGER"}

_SQL_OPS = {"eq": "=", "neq": "!=", "lt": "<", "lte": "<=", "gt": ">", "gte": ">="}


def schema_sql() -> str:
    statements = ["PRAGMA journal_mode=WAL;"]
    for table, columns in TABLES.items():
        cols = []
        for name, kind in columns.items():
            suffix = " PRIMARY KEY" if name == "id" else ""
            cols.append(f"    {name} {_SQL_TYPES[kind]}{suffix}")
        statements.append(f"CREATE TABLE IF NOT EXISTS {table} (\n" + ",\n".join(cols) + "\n);")
        for column in UNIQUE_COLUMNS.get(table, ()):
            statements.append(f"CREATE UNIQUE INDEX IF NOT EXISTS ux_{table}_{column} ON {table} ({column});")
        if "user_id" in columns:
            statements.append(f"CREATE INDEX IF NOT EXISTS ix_{table}_user ON {table} (user_id);")
    return "\n".join(statements)


def _where(filters: Sequence[Filter]) -> Tuple[str, list]:
    if not filters:
        return "", []
    clauses = []
    params = []
    for f in filters:
        if f.value is None and f.op in ("eq", "neq"):
            clauses.append(f"{f.column} IS {'NOT ' if f.op == 'neq' else ''}NULL")
            continue
        clauses.append(f"{f.column} {_SQL_OPS[f.op]} ?")
        params.append(f.value)
    return " WHERE " + " AND ".join(clauses), params


def _to_row(table: str, record: sqlite3.Row) -> dict:
    schema = TABLES[table]
    row = dict(record)
    for name, kind in schema.items():
        if kind == "bool" and row.get(name) is not None:
            row[name] = bool(row[name])
    return row


class SQLiteBackend(Backend):
    def __init__(self, path: Union[Path, str]):
        self.path = Path(path)
        self.init_db()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise PersistenceError(str(exc), code=UNIQUE_VIOLATION) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("SQLite error on %s: %s", self.path, exc)
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(schema_sql())

    def _select(self, table, filters, order_by, descending, limit) -> List[dict]:
        check_columns(table, [f.column for f in filters] + ([order_by] if order_by else []))
        check_filters(filters)
        where, params = _where(filters)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY {order_by} IS NULL, {order_by} {direction}, rowid {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self.connect() as conn:
            return [_to_row(table, r) for r in conn.execute(sql, params).fetchall()]

    def _insert(self, table, row) -> dict:
        schema = check_columns(table, row)
        record = {column: None for column in schema}
        record.update({k: normalize(v) for k, v in row.items()})
        record["id"] = record["id"] or new_id()
        record["created_at"] = record["created_at"] or now_iso()
        columns = list(record)
        placeholders = ", ".join("?" for _ in columns)
        with self.connect() as conn:
            conn.execute(
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                [record[c] for c in columns],
            )
        return record

    def _update(self, table, filters, changes) -> List[dict]:
        check_columns(table, list(changes) + [f.column for f in filters])
        check_filters(filters)
        where, params = _where(filters)
        changes = {k: normalize(v) for k, v in changes.items()}
        with self.connect() as conn:
            # claim the write lock so select-then-update acts as one compare-and-set
            conn.execute("BEGIN IMMEDIATE")
            ids = [r["id"] for r in conn.execute(f"SELECT id FROM {table}{where}", params).fetchall()]
            if not ids:
                return []
            marks = ", ".join("?" for _ in ids)
            if changes:
                assignments = ", ".join(f"{column} = ?" for column in changes)
                conn.execute(
                    f"UPDATE {table} SET {assignments} WHERE id IN ({marks})",
                    list(changes.values()) + ids,
                )
            rows = conn.execute(f"SELECT * FROM {table} WHERE id IN ({marks})", ids).fetchall()
            return [_to_row(table, r) for r in rows]

    def _delete(self, table, filters) -> int:
        check_columns(table, [f.column for f in filters])
        check_filters(filters)
        where, params = _where(filters)
        with self.connect() as conn:
            return conn.execute(f"DELETE FROM {table}{where}", params).rowcount

    async def select(self, table, filters=(), order_by=None, descending=False, limit: Optional[int] = None):
        return await asyncio.to_thread(self._select, table, list(filters), order_by, descending, limit)

    async def insert(self, table, row):
        return await asyncio.to_thread(self._insert, table, dict(row))

    async def update(self, table, filters, changes):
        return await asyncio.to_thread(self._update, table, list(filters), dict(changes))

    async def delete(self, table, filters):
        return await asyncio.to_thread(self._delete, table, list(filters))
