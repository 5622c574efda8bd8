"""
Postgres document store: query compilation and constructor guards.

Why: Query operators must map to a fixed set of JSONB predicates with field
names bound as parameters, never interpolated into SQL. These tests do not
need a live database.
"""
from __future__ import annotations

import pytest

pytest.importorskip("psycopg")

from moderation.documents import OPERATORS, make_condition  # noqa: E402
from moderation.documents_db import _PREDICATES, DBDocumentStore, compile_conditions  # noqa: E402
from moderation.events import UPDATED, ChangeDispatcher  # noqa: E402


def test_every_query_operator_has_a_predicate():
    assert set(_PREDICATES) == set(OPERATORS)
    for op in OPERATORS:
        where, params = compile_conditions([make_condition("status", op, "draft")])
        assert where.startswith("data ? %s::text and ")
        assert params[0] == "status" and params[1] == "status"
        assert len(params) == 3


def test_conditions_are_and_combined_and_fields_stay_parameters():
    evil = "status'); drop table documents; --"
    where, params = compile_conditions(
        [make_condition(evil, "==", "x"), make_condition("lecturerId", "!=", None)]
    )
    assert evil not in where
    assert where.count(" and ") == 3
    assert params[0] == evil and params[3] == "lecturerId"


def test_empty_conditions_compile_to_nothing():
    assert compile_conditions([]) == ("", [])


def test_invalid_table_name_is_rejected():
    with pytest.raises(ValueError):
        DBDocumentStore(dsn="postgresql://localhost/db", table="documents; drop")


def test_missing_dsn_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DOCUMENTS_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        DBDocumentStore()


def test_schema_sql_uses_configured_table():
    store = DBDocumentStore(dsn="postgresql://localhost/db", table="moderation.docs")
    ddl = store.schema_sql()
    assert "create table if not exists moderation.docs" in ddl
    assert "primary key (collection, id)" in ddl


def test_published_changes_are_detached_from_the_written_payload():
    dispatcher = ChangeDispatcher()
    seen = []

    def mutating_handler(change):
        change.after["tags"].append("handler")
        change.before["tags"].append("handler")
        seen.append(change)

    dispatcher.register("users", UPDATED, mutating_handler)
    store = DBDocumentStore(dsn="postgresql://localhost/db", dispatcher=dispatcher)
    before = {"tags": ["a"]}
    after = {"tags": ["a", "b"]}

    store._publish("users", "u-1", UPDATED, before, after)

    assert len(seen) == 1
    assert before == {"tags": ["a"]}
    assert after == {"tags": ["a", "b"]}
