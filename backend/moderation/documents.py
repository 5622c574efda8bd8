"""
Document accessor over a pluggable document store.

Why:
    Services only ever need "fetch a document, check a field, write a
    document". The accessor adds existence checks before mutation and logs
    every failure with collection and id, while the store port stays small
    enough for an in-memory fake and a Postgres-backed implementation.

Design:
    - `DocumentStoreProtocol` is the raw capability (no existence checks).
    - `InMemoryDocumentStore` backs tests and local development.
    - `DocumentAccessor` is what services use; it returns plain dicts with the
      document id merged in under `"id"`.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import operator
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple
from uuid import uuid4

from .errors import InvalidArgument, NotFound
from .events import CREATED, DELETED, UPDATED, ChangeDispatcher, DocumentChange

logger = logging.getLogger("moducate.documents")

USERS = "users"
ASSESSMENTS = "assessments"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Condition:
    field: str
    operator: str
    value: Any


def _contains(field_value: Any, value: Any) -> bool:
    return isinstance(field_value, list) and value in field_value


def _is_in(field_value: Any, value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset)) and field_value in value


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": _is_in,
    "array-contains": _contains,
}


def make_condition(field: str, op: str, value: Any) -> Condition:
    if not field or not isinstance(field, str):
        raise InvalidArgument("invalid_query_field")
    if op not in OPERATORS:
        raise InvalidArgument(f"unsupported_query_operator: {op}")
    return Condition(field=field, operator=op, value=value)


def _coerce_conditions(conditions: Iterable[Any] | None) -> List[Condition]:
    result: List[Condition] = []
    for cond in conditions or []:
        if isinstance(cond, Condition):
            result.append(make_condition(cond.field, cond.operator, cond.value))
        elif isinstance(cond, dict):
            result.append(make_condition(cond.get("field"), cond.get("operator"), cond.get("value")))
        else:
            field, op, value = cond
            result.append(make_condition(field, op, value))
    return result


def matches(data: Dict[str, Any], conditions: Sequence[Condition]) -> bool:
    """Return True when every condition holds; documents lacking a field never match it."""
    for cond in conditions:
        if cond.field not in data:
            return False
        try:
            if not OPERATORS[cond.operator](data[cond.field], cond.value):
                return False
        except TypeError:
            return False
    return True


class DocumentStoreProtocol(Protocol):
    def read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    def write(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    def insert(self, collection: str, data: Dict[str, Any]) -> str:
        ...

    def patch(self, collection: str, doc_id: str, data: Dict[str, Any]) -> bool:
        ...

    def remove(self, collection: str, doc_id: str) -> bool:
        ...

    def select(self, collection: str, conditions: Sequence[Condition]) -> List[Tuple[str, Dict[str, Any]]]:
        ...


class InMemoryDocumentStore:
    """Dict-backed store; publishes a `DocumentChange` after every write."""

    def __init__(self, dispatcher: ChangeDispatcher | None = None) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.dispatcher = dispatcher

    def _coll(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

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

    def read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        data = self._coll(collection).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def write(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        coll = self._coll(collection)
        before = coll.get(doc_id)
        coll[doc_id] = copy.deepcopy(data)
        self._publish(collection, doc_id, CREATED if before is None else UPDATED, before, coll[doc_id])

    def insert(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid4().hex
        self.write(collection, doc_id, data)
        return doc_id

    def patch(self, collection: str, doc_id: str, data: Dict[str, Any]) -> bool:
        coll = self._coll(collection)
        before = coll.get(doc_id)
        if before is None:
            return False
        after = {**before, **copy.deepcopy(data)}
        coll[doc_id] = after
        self._publish(collection, doc_id, UPDATED, before, after)
        return True

    def remove(self, collection: str, doc_id: str) -> bool:
        before = self._coll(collection).pop(doc_id, None)
        if before is None:
            return False
        self._publish(collection, doc_id, DELETED, before, None)
        return True

    def select(self, collection: str, conditions: Sequence[Condition]) -> List[Tuple[str, Dict[str, Any]]]:
        return [
            (doc_id, copy.deepcopy(data))
            for doc_id, data in self._coll(collection).items()
            if matches(data, conditions)
        ]


class DocumentAccessor:
    """Checked get/create/update/delete/query over a document store."""

    def __init__(self, store: DocumentStoreProtocol) -> None:
        self.store = store

    def get(self, collection: str, doc_id: str) -> Dict[str, Any]:
        try:
            if not doc_id:
                raise NotFound(f"Document not found in {collection} with ID: {doc_id}")
            data = self.store.read(collection, doc_id)
            if data is None:
                raise NotFound(f"Document not found in {collection} with ID: {doc_id}")
            return {"id": doc_id, **data}
        except Exception as exc:
            logger.warning("get failed collection=%s id=%s err=%s", collection, doc_id, exc.__class__.__name__)
            raise

    def create(self, collection: str, data: Dict[str, Any], doc_id: str | None = None) -> str:
        try:
            if doc_id:
                self.store.write(collection, doc_id, data)
                return doc_id
            return self.store.insert(collection, data)
        except Exception as exc:
            logger.warning("create failed collection=%s id=%s err=%s", collection, doc_id, exc.__class__.__name__)
            raise

    def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        try:
            if not doc_id or self.store.read(collection, doc_id) is None:
                raise NotFound(f"Document not found in {collection} with ID: {doc_id}")
            # The document may vanish between the check and the write.
            if not self.store.patch(collection, doc_id, patch):
                raise NotFound(f"Document not found in {collection} with ID: {doc_id}")
        except Exception as exc:
            logger.warning("update failed collection=%s id=%s err=%s", collection, doc_id, exc.__class__.__name__)
            raise

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            if not doc_id or self.store.read(collection, doc_id) is None:
                raise NotFound(f"Document not found in {collection} with ID: {doc_id}")
            if not self.store.remove(collection, doc_id):
                raise NotFound(f"Document not found in {collection} with ID: {doc_id}")
        except Exception as exc:
            logger.warning("delete failed collection=%s id=%s err=%s", collection, doc_id, exc.__class__.__name__)
            raise

    def query(self, collection: str, conditions: Iterable[Any] | None = None) -> List[Dict[str, Any]]:
        try:
            conds = _coerce_conditions(conditions)
            return [{"id": doc_id, **data} for doc_id, data in self.store.select(collection, conds)]
        except Exception as exc:
            logger.warning("query failed collection=%s err=%s", collection, exc.__class__.__name__)
            raise


__all__ = [
    "USERS",
    "ASSESSMENTS",
    "now_iso",
    "Condition",
    "OPERATORS",
    "make_condition",
    "matches",
    "DocumentStoreProtocol",
    "InMemoryDocumentStore",
    "DocumentAccessor",
]
