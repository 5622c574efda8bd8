"""
Document change notifications and handler registration.

Why:
    Reactions to document writes (claims synchronization, notification
    lookups) are plain functions registered on a dispatcher instead of
    platform-specific trigger decorators. Stores publish a `DocumentChange`
    after each successful write; whatever delivers the change calls
    `ChangeDispatcher.publish`.

Delivery contract:
    - At-least-once, best-effort: handlers must be idempotent.
    - No ordering guarantee across documents.
    - A failing handler is logged and never propagates to the writer.
    - Changes published while handlers run are queued and delivered after the
      current change instead of recursing into the handler stack.
    - The queue is per thread, so every writer drains its own changes before
      its write returns, also when requests share one dispatcher.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import threading
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

logger = logging.getLogger("moducate.events")

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"
_KINDS = frozenset({CREATED, UPDATED, DELETED})


@dataclass(frozen=True)
class DocumentChange:
    collection: str
    doc_id: str
    kind: str
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]

    def field_changed(self, field: str) -> bool:
        return (self.before or {}).get(field) != (self.after or {}).get(field)


ChangeHandler = Callable[[DocumentChange], None]


class ChangeDispatcher:
    def __init__(self) -> None:
        self._handlers: Dict[Tuple[str, str], List[ChangeHandler]] = {}
        self._local = threading.local()

    def register(self, collection: str, kind: str, handler: ChangeHandler) -> None:
        if kind not in _KINDS:
            raise ValueError(f"unknown change kind: {kind}")
        self._handlers.setdefault((collection, kind), []).append(handler)

    def handlers_for(self, collection: str, kind: str) -> List[ChangeHandler]:
        return list(self._handlers.get((collection, kind), []))

    def _queue(self) -> Deque[DocumentChange]:
        pending = getattr(self._local, "pending", None)
        if pending is None:
            pending = self._local.pending = deque()
        return pending

    def publish(self, change: DocumentChange) -> None:
        pending = self._queue()
        pending.append(change)
        if getattr(self._local, "draining", False):
            return
        self._local.draining = True
        try:
            while pending:
                self._deliver(pending.popleft())
        finally:
            self._local.draining = False

    def _deliver(self, change: DocumentChange) -> None:
        for handler in self.handlers_for(change.collection, change.kind):
            try:
                handler(change)
            except Exception:
                logger.exception(
                    "Change handler %s failed for %s/%s (%s)",
                    getattr(handler, "__name__", repr(handler)),
                    change.collection,
                    change.doc_id,
                    change.kind,
                )


__all__ = ["DocumentChange", "ChangeDispatcher", "ChangeHandler", "CREATED", "UPDATED", "DELETED"]
