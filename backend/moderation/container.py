"""
Composition root for the moderation backend.

Why:
    The document store and the identity provider are capabilities passed to
    each component instead of process-wide singletons. Tests build a container
    around in-memory fakes; the web app builds one from the environment.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Optional

from identity_access.authority import RoleAuthority
from identity_access.claims import ClaimsSynchronizer
from identity_access.providers import IdentityProviderProtocol, InMemoryIdentityProvider

from .documents import DocumentAccessor, DocumentStoreProtocol, InMemoryDocumentStore
from .events import ChangeDispatcher
from .services.assessments import AssessmentsService
from .services.users import UsersService
from .triggers import ModerationTriggers, Notifier

logger = logging.getLogger("moducate.container")


@dataclass
class ModerationContainer:
    store: DocumentStoreProtocol
    identity: IdentityProviderProtocol
    dispatcher: ChangeDispatcher
    documents: DocumentAccessor
    authority: RoleAuthority
    claims: ClaimsSynchronizer
    assessments: AssessmentsService
    users: UsersService
    triggers: ModerationTriggers


def build_container(
    store: Optional[DocumentStoreProtocol] = None,
    identity: Optional[IdentityProviderProtocol] = None,
    *,
    notifier: Optional[Notifier] = None,
    register_triggers: bool = True,
) -> ModerationContainer:
    """Wire services around `store` and `identity` (in-memory when omitted).

    A store exposing a `dispatcher` attribute gets the container's dispatcher
    unless it already has one, so its writes reach the registered triggers.
    """
    dispatcher = getattr(store, "dispatcher", None) or ChangeDispatcher()
    if store is None:
        store = InMemoryDocumentStore(dispatcher=dispatcher)
    elif hasattr(store, "dispatcher") and store.dispatcher is None:
        store.dispatcher = dispatcher
    identity = identity or InMemoryIdentityProvider()

    documents = DocumentAccessor(store)
    authority = RoleAuthority(documents, identity)
    claims = ClaimsSynchronizer(documents, identity)
    triggers = ModerationTriggers(documents, claims, notifier=notifier)
    if register_triggers:
        triggers.register(dispatcher)
    return ModerationContainer(
        store=store,
        identity=identity,
        dispatcher=dispatcher,
        documents=documents,
        authority=authority,
        claims=claims,
        assessments=AssessmentsService(documents, authority),
        users=UsersService(documents, identity, authority, claims),
        triggers=triggers,
    )


def _build_store_from_env() -> DocumentStoreProtocol:
    backend = (os.getenv("DOCUMENTS_BACKEND", "memory") or "memory").strip().lower()
    if backend == "db":
        from .documents_db import DBDocumentStore

        store = DBDocumentStore()
        if (os.getenv("DOCUMENTS_AUTO_CREATE_SCHEMA", "false") or "").strip().lower() == "true":
            store.ensure_schema()
        return store
    if backend != "memory":
        raise RuntimeError(f"Unknown DOCUMENTS_BACKEND: {backend}")
    return InMemoryDocumentStore()


def _build_identity_from_env() -> IdentityProviderProtocol:
    backend = (os.getenv("IDENTITY_BACKEND", "memory") or "memory").strip().lower()
    if backend == "keycloak":
        from identity_access.admin_client import KeycloakIdentityProvider

        return KeycloakIdentityProvider()
    if backend != "memory":
        raise RuntimeError(f"Unknown IDENTITY_BACKEND: {backend}")
    return InMemoryIdentityProvider()


def container_from_env() -> ModerationContainer:
    store = _build_store_from_env()
    identity = _build_identity_from_env()
    logger.info(
        "Moderation backends wired: documents=%s identity=%s",
        store.__class__.__name__,
        identity.__class__.__name__,
    )
    return build_container(store, identity)


__all__ = ["ModerationContainer", "build_container", "container_from_env"]
