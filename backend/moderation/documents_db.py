"""
Postgres-backed document store (JSONB documents keyed by collection + id).

Why:
    Production needs a durable store with per-document atomic writes. Each
    collection lives in one table row per document so the accessor and the
    services stay identical for the in-memory and the database backend.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Read-modify-write steps lock the row (`for update`) inside one transaction,
  which gives per-document atomicity. Nothing spans documents.
- Query conditions compile to JSONB predicates; operators come from a fixed
  allow-list and field names are bound as parameters.

Schema (see `schema_sql()`):
    public.documents(collection text, id text, data jsonb, created_at, updated_at)
"""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Sequence, Tuple
import os
import re
from uuid import uuid4

try:
    import psycopg
    from psycopg import sql
    from psycopg.types.json import Jsonb
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    Jsonb = None  # type: ignore
    HAVE_PSYCOPG = False

from .documents import Condition
from .events import CREATED, DELETED, UPDATED, ChangeDispatcher, DocumentChange


_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")

# Operator -> SQL predicate template. `{doc}` is the json value at the field.
_PREDICATES: Dict[str, str] = {
    "==": "{doc} = %s::jsonb",
    "!=": "{doc} <> %s::jsonb",
    "<": "{doc} < %s::jsonb",
    "<=": "{doc} <= %s::jsonb",
    ">": "{doc} > %s::jsonb",
    ">=": "{doc} >= %s::jsonb",
    "in": "jsonb_build_array({doc}) <@ %s::jsonb",
    "array-contains": "{doc} @> jsonb_build_array(%s::jsonb)",
}


def _dsn() -> str:
    candidates = [
        os.getenv("DOCUMENTS_DATABASE_URL"),
        os.getenv("DATABASE_URL"),
    ]
    for dsn in candidates:
        if dsn:
            return dsn
    raise RuntimeError("Database DSN unavailable for DBDocumentStore")


def compile_conditions(conditions: Sequence[Condition]) -> Tuple[str, List[Any]]:
    """Return a SQL fragment (without leading AND) and its parameters."""
    clauses: List[str] = []
    params: List[Any] = []
    for cond in conditions:
        template = _PREDICATES.get(cond.operator)
        if template is None:
            raise ValueError(f"unsupported_query_operator: {cond.operator}")
        clauses.append("data ? %s::text")
        params.append(cond.field)
        clauses.append(template.format(doc="(data -> %s::text)"))
        params.append(cond.field)
        params.append(Jsonb(cond.value) if Jsonb is not None else cond.value)
    return " and ".join(clauses), params


class DBDocumentStore:
    """Postgres document store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Resolved from DOCUMENTS_DATABASE_URL or
        DATABASE_URL when omitted.
    table:
        Fully qualified table name. Defaults to `public.documents`.
    dispatcher:
        Receives a `DocumentChange` after each committed write.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.documents", dispatcher: ChangeDispatcher | None = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBDocumentStore")
        self._dsn = dsn or _dsn()
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table
        self.dispatcher = dispatcher

    def _ident(self):
        schema, _, name = self._table.rpartition(".")
        return sql.Identifier(schema or "public", name)

    def _publish(self, collection: str, doc_id: str, kind: str, before, after) -> None:
        if self.dispatcher is None:
            return
        self.dispatcher.publish(
            DocumentChange(
                collection=collection,
                doc_id=doc_id,
                kind=kind,
                before=copy.deepcopy(before),
                after=copy.deepcopy(after),
            )
        )

    def schema_sql(self) -> str:
        return (
            f"create table if not exists {self._table} ("
            "collection text not null, id text not null, data jsonb not null, "
            "created_at timestamptz not null default now(), "
            "updated_at timestamptz not null default now(), "
            "primary key (collection, id))"
        )

    def ensure_schema(self) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(self.schema_sql())

    def read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("select data from {} where collection = %s and id = %s").format(self._ident()),
                    (collection, doc_id),
                )
                row = cur.fetchone()
        return dict(row[0]) if row else None

    def write(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("select data from {} where collection = %s and id = %s for update").format(self._ident()),
                    (collection, doc_id),
                )
                row = cur.fetchone()
                cur.execute(
                    sql.SQL(
                        "insert into {} (collection, id, data) values (%s, %s, %s) "
                        "on conflict (collection, id) do update set data = excluded.data, updated_at = now()"
                    ).format(self._ident()),
                    (collection, doc_id, Jsonb(data)),
                )
        before = dict(row[0]) if row else None
        self._publish(collection, doc_id, CREATED if before is None else UPDATED, before, dict(data))

    def insert(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid4().hex
        self.write(collection, doc_id, data)
        return doc_id

    def patch(self, collection: str, doc_id: str, data: Dict[str, Any]) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("select data from {} where collection = %s and id = %s for update").format(self._ident()),
                    (collection, doc_id),
                )
                row = cur.fetchone()
                if not row:
                    return False
                cur.execute(
                    sql.SQL(
                        "update {} set data = data || %s::jsonb, updated_at = now() "
                        "where collection = %s and id = %s returning data"
                    ).format(self._ident()),
                    (Jsonb(data), collection, doc_id),
                )
                after_row = cur.fetchone()
        before = dict(row[0])
        after = dict(after_row[0]) if after_row else {**before, **data}
        self._publish(collection, doc_id, UPDATED, before, after)
        return True

    def remove(self, collection: str, doc_id: str) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("delete from {} where collection = %s and id = %s returning data").format(self._ident()),
                    (collection, doc_id),
                )
                row = cur.fetchone()
        if not row:
            return False
        self._publish(collection, doc_id, DELETED, dict(row[0]), None)
        return True

    def select(self, collection: str, conditions: Sequence[Condition]) -> List[Tuple[str, Dict[str, Any]]]:
        where, params = compile_conditions(conditions)
        stmt = "select id, data from {} where collection = %s"
        if where:
            stmt += " and " + where
        stmt += " order by created_at, id"
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(sql.SQL(stmt).format(self._ident()), (collection, *params))
                rows = cur.fetchall()
        return [(str(r[0]), dict(r[1])) for r in rows]


__all__ = ["DBDocumentStore", "compile_conditions", "HAVE_PSYCOPG"]
