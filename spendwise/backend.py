"""Persistence collaborator.

The managers talk to a table-oriented store through ``Backend``: filtered
select, insert, update and delete over the ``users``, ``expenses``,
``budgets`` and ``savings_goal`` tables.  Rows are plain dicts using the
column names below; dates travel as ISO strings.

``MemoryBackend`` keeps everything in process and is what the tests and the
demo app use.  ``spendwise.sqlite_backend.SQLiteBackend`` persists to disk.
"""
import asyncio
import copy
import operator
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

from spendwise.errors import PersistenceError, UNIQUE_VIOLATION

TABLES: Dict[str, Dict[str, str]] = {
    "users": {
        "id": "text",
        "username": "text",
        "email": "text",
        "full_name": "text",
        "password": "text",
        "created_at": "text",
    },
    "expenses": {
        "id": "text",
        "user_id": "text",
        "amount": "real",
        "category": "text",
        "description": "text",
        "expense_date": "text",
        "is_essential": "bool",
        "budget_id": "text",
        "created_at": "text",
    },
    "budgets": {
        "id": "text",
        "user_id": "text",
        "amount": "real",
        "timeframe": "text",
        "is_active": "bool",
        "start_date": "text",
        "end_date": "text",
        "processed": "bool",
        "goal_id": "text",
        "created_at": "text",
    },
    "savings_goal": {
        "id": "text",
        "user_id": "text",
        "goal_name": "text",
        "target_amount": "real",
        "current_amount": "real",
        "created_at": "text",
    },
}

UNIQUE_COLUMNS: Dict[str, Sequence[str]] = {
    "users": ("username", "email"),
}


class Filter(NamedTuple):
    column: str
    op: str
    value: Any


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "neq": operator.ne,
    "lt": operator.lt,
    "lte": operator.le,
    "gt": operator.gt,
    "gte": operator.ge,
}


def normalize(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def eq(column: str, value) -> Filter:
    return Filter(column, "eq", normalize(value))


def neq(column: str, value) -> Filter:
    return Filter(column, "neq", normalize(value))


def lt(column: str, value) -> Filter:
    return Filter(column, "lt", normalize(value))


def lte(column: str, value) -> Filter:
    return Filter(column, "lte", normalize(value))


def gte(column: str, value) -> Filter:
    return Filter(column, "gte", normalize(value))


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now().isoformat()


def check_columns(table: str, columns) -> Dict[str, str]:
    schema = TABLES.get(table)
    if schema is None:
        raise PersistenceError(f"Unknown table: {table}")
    unknown = [c for c in columns if c not in schema]
    if unknown:
        raise PersistenceError(f"Unknown column(s) for {table}: {', '.join(unknown)}")
    return schema


def check_filters(filters: Sequence[Filter]) -> None:
    for f in filters:
        if f.op not in OPERATORS:
            raise PersistenceError(f"Unsupported filter operator: {f.op}")


class Backend(ABC):

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        pass

    @abstractmethod
    async def insert(self, table: str, row: dict) -> dict:
        pass

    @abstractmethod
    async def update(self, table: str, filters: Sequence[Filter], changes: dict) -> List[dict]:
        """Apply ``changes`` to every matching row and return the updated rows."""

    @abstractmethod
    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        pass


def _matches(row: dict, filters: Sequence[Filter]) -> bool:
    for f in filters:
        value = row.get(f.column)
        if f.op == "eq":
            if value != f.value:
                return False
        elif f.op == "neq":
            if value == f.value:
                return False
        elif value is None or f.value is None or not OPERATORS[f.op](value, f.value):
            return False
    return True


class MemoryBackend(Backend):
    def __init__(self):
        self._tables: Dict[str, List[dict]] = {name: [] for name in TABLES}
        self._seq = 0

    def _rows(self, table: str) -> List[dict]:
        check_columns(table, ())
        return self._tables[table]

    def _check_unique(self, table: str, row: dict, skip: Optional[dict] = None) -> None:
        for column in UNIQUE_COLUMNS.get(table, ()):
            value = row.get(column)
            if value is None:
                continue
            for existing in self._tables[table]:
                if existing is not skip and existing.get(column) == value:
                    raise PersistenceError(
                        f'duplicate key value violates unique constraint "{table}_{column}_key"',
                        code=UNIQUE_VIOLATION,
                    )

    async def select(self, table, filters=(), order_by=None, descending=False, limit=None):
        rows = self._rows(table)
        check_filters(filters)
        check_columns(table, [f.column for f in filters] + ([order_by] if order_by else []))
        found = [r for r in rows if _matches(r, filters)]
        if order_by:
            # nulls last; insertion order breaks ties
            present = [r for r in found if r.get(order_by) is not None]
            present.sort(key=lambda r: (r[order_by], r["_seq"]), reverse=descending)
            found = present + [r for r in found if r.get(order_by) is None]
        if limit is not None:
            found = found[:limit]
        await asyncio.sleep(0)
        return [self._public(r) for r in found]

    async def insert(self, table, row):
        rows = self._rows(table)
        schema = check_columns(table, row)
        record = {column: None for column in schema}
        record.update({k: normalize(v) for k, v in row.items()})
        record["id"] = record["id"] or new_id()
        record["created_at"] = record["created_at"] or now_iso()
        self._check_unique(table, record)
        self._seq += 1
        record["_seq"] = self._seq
        rows.append(record)
        await asyncio.sleep(0)
        return self._public(record)

    async def update(self, table, filters, changes):
        rows = self._rows(table)
        check_filters(filters)
        check_columns(table, list(changes) + [f.column for f in filters])
        changes = {k: normalize(v) for k, v in changes.items()}
        updated = []
        for record in rows:
            if _matches(record, filters):
                self._check_unique(table, {**record, **changes}, skip=record)
                record.update(changes)
                updated.append(self._public(record))
        await asyncio.sleep(0)
        return updated

    async def delete(self, table, filters):
        rows = self._rows(table)
        check_filters(filters)
        check_columns(table, [f.column for f in filters])
        keep = [r for r in rows if not _matches(r, filters)]
        removed = len(rows) - len(keep)
        self._tables[table] = keep
        await asyncio.sleep(0)
        return removed

    @staticmethod
    def _public(record: dict) -> dict:
        return {k: copy.copy(v) for k, v in record.items() if k != "_seq"}
