"""
Nursery Store Client
====================
Generic query client over the relational store. Every page and service talks
to the store through this client using relation names only:

- select(relation, columns, filters, order) -> rows
- insert(relation, rows) -> inserted rows
- update(relation, patch, filters) -> affected row count
- delete(relation, filters) -> affected row count
- decrement(relation, column, amount, filters) -> bool (conditional, atomic)

Rows are plain dicts. Each call is its own round-trip and commits on its own;
no transaction spans two calls. Failures raise StoreError.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from sqlalchemy import Table, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import Base

logger = logging.getLogger("nursery_core.store")

Filters = Optional[Mapping[str, Any]]


class NurseryError(Exception):
    """Base exception for nursery operations"""
    pass


class StoreError(NurseryError):
    """Raised when a round-trip to the store fails"""

    def __init__(self, relation: str, operation: str, message: str):
        self.relation = relation
        self.operation = operation
        super().__init__(f"{operation} on {relation} failed: {message}")


class QueryClient:
    """Relation-oriented client bound to one database session"""

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------

    def _table(self, relation: str) -> Table:
        table = Base.metadata.tables.get(relation)
        if table is None:
            raise StoreError(relation, "lookup", "unknown relation")
        return table

    def _column(self, table: Table, name: str, operation: str):
        try:
            return table.c[name]
        except KeyError:
            raise StoreError(table.name, operation, f"unknown column '{name}'")

    def _where(self, table: Table, filters: Filters, operation: str) -> list:
        clauses = []
        for name, value in (filters or {}).items():
            column = self._column(table, name, operation)
            if value is None:
                clauses.append(column.is_(None))
            elif isinstance(value, (list, tuple, set)):
                clauses.append(column.in_(list(value)))
            else:
                clauses.append(column == value)
        return clauses

    def _values(self, table: Table, row: Mapping[str, Any], operation: str) -> Dict[str, Any]:
        for name in row:
            self._column(table, name, operation)
        return dict(row)

    def _run(self, relation: str, operation: str, fn, commit: bool = False):
        try:
            result = fn()
            if commit:
                self.session.commit()
            return result
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Store %s on %s failed: %s", operation, relation, exc)
            raise StoreError(relation, operation, str(exc)) from exc

    # -------------------------------------------------------------------------
    # operations
    # -------------------------------------------------------------------------

    def select(
        self,
        relation: str,
        columns: Optional[Sequence[str]] = None,
        filters: Filters = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        embed: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Select rows from a relation.

        `embed` maps a referenced relation to the columns to pull from it,
        e.g. {"seedlings": ["species", "height_range"]}. The join follows the
        foreign key from `relation` to that relation; each row gets a nested
        dict under the embedded relation's name (None when nothing matched).
        """
        table = self._table(relation)
        cols = [self._column(table, n, "select") for n in columns] if columns else list(table.c)
        selected = list(cols)
        source = table
        embedded = []

        for target_name, target_cols in (embed or {}).items():
            target = self._table(target_name)
            fk = next((fk for fk in table.foreign_keys if fk.column.table is target), None)
            if fk is None:
                raise StoreError(relation, "select", f"no reference to '{target_name}'")
            source = source.outerjoin(target, fk.parent == fk.column)
            names = ["id"] + [n for n in target_cols if n != "id"]
            for name in names:
                selected.append(self._column(target, name, "select").label(f"{target_name}__{name}"))
            embedded.append((target_name, names))

        stmt = select(*selected).select_from(source).where(*self._where(table, filters, "select"))
        if order_by:
            column = self._column(table, order_by, "select")
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if order_by != "id" and "id" in table.c:
            stmt = stmt.order_by(table.c["id"])

        rows = self._run(relation, "select", lambda: self.session.execute(stmt).mappings().all())

        result = []
        for row in rows:
            record = {c.name: row[c.name] for c in cols}
            for target_name, names in embedded:
                if row[f"{target_name}__id"] is None:
                    record[target_name] = None
                else:
                    record[target_name] = {n: row[f"{target_name}__{n}"] for n in names}
            result.append(record)
        return result

    def select_one(self, relation: str, filters: Filters = None, **kwargs) -> Optional[Dict[str, Any]]:
        rows = self.select(relation, filters=filters, **kwargs)
        return rows[0] if rows else None

    def insert(
        self, relation: str, rows: Union[Mapping[str, Any], Iterable[Mapping[str, Any]]]
    ) -> List[Dict[str, Any]]:
        """Insert one or more rows and return them as stored (with generated ids)"""
        table = self._table(relation)
        if isinstance(rows, Mapping):
            rows = [rows]
        values = [self._values(table, row, "insert") for row in rows]

        def _do():
            ids = []
            for row in values:
                res = self.session.execute(table.insert().values(**row))
                ids.append(res.inserted_primary_key[0])
            return ids

        ids = self._run(relation, "insert", _do, commit=True)
        if not ids:
            return []
        return self.select(relation, filters={"id": ids}, order_by="id")

    def update(self, relation: str, patch: Mapping[str, Any], filters: Filters) -> int:
        table = self._table(relation)
        if not filters:
            raise StoreError(relation, "update", "refusing to update without a filter")
        values = self._values(table, patch, "update")
        stmt = table.update().where(*self._where(table, filters, "update")).values(**values)
        return self._run(relation, "update", lambda: self.session.execute(stmt).rowcount, commit=True)

    def delete(self, relation: str, filters: Filters) -> int:
        table = self._table(relation)
        if not filters:
            raise StoreError(relation, "delete", "refusing to delete without a filter")
        stmt = table.delete().where(*self._where(table, filters, "delete"))
        return self._run(relation, "delete", lambda: self.session.execute(stmt).rowcount, commit=True)

    def decrement(self, relation: str, column: str, amount: int, filters: Filters) -> bool:
        """
        Subtract `amount` from `column` only where the current value covers it.

        Evaluated by the store as one conditional UPDATE, so two callers
        racing on the same row can never take it below zero. Returns False
        when no row matched (missing row or not enough left).
        """
        table = self._table(relation)
        if not filters:
            raise StoreError(relation, "decrement", "refusing to decrement without a filter")
        target = self._column(table, column, "decrement")
        stmt = (
            table.update()
            .where(*self._where(table, filters, "decrement"), target >= amount)
            .values({column: target - amount})
        )
        affected = self._run(relation, "decrement", lambda: self.session.execute(stmt).rowcount, commit=True)
        return affected > 0

    def increment(self, relation: str, column: str, amount: int, filters: Filters) -> bool:
        table = self._table(relation)
        if not filters:
            raise StoreError(relation, "increment", "refusing to increment without a filter")
        target = self._column(table, column, "increment")
        stmt = table.update().where(*self._where(table, filters, "increment")).values({column: target + amount})
        affected = self._run(relation, "increment", lambda: self.session.execute(stmt).rowcount, commit=True)
        return affected > 0

    def ping(self) -> bool:
        self._run("store", "ping", lambda: self.session.execute(text("SELECT 1")))
        return True
