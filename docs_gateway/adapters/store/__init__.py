"""Store adapter layer - abstracts over the hosted data and blob stores."""

from docs_gateway.adapters.store.base import (
    AbstractDocumentStore,
    AbstractIdentityStore,
    AccountProfile,
    AuthSession,
    DocumentRecord,
)
from docs_gateway.adapters.store.factory import Stores, create_stores
from docs_gateway.adapters.store.memory import InMemoryDocumentStore, InMemoryIdentityStore

__all__ = [
    "AbstractDocumentStore",
    "AbstractIdentityStore",
    "AccountProfile",
    "AuthSession",
    "DocumentRecord",
    "InMemoryDocumentStore",
    "InMemoryIdentityStore",
    "Stores",
    "create_stores",
]
