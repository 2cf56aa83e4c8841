"""Factory pattern for creating store adapter instances."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from docs_gateway.adapters.store.base import AbstractDocumentStore, AbstractIdentityStore
from docs_gateway.adapters.store.memory import (
    InMemoryDocumentStore,
    InMemoryIdentityStore,
    load_seed_file,
)
from docs_gateway.adapters.store.supabase import (
    SupabaseDocumentStore,
    SupabaseIdentityStore,
    SupabaseRestClient,
)
from docs_gateway.core.config import Settings
from docs_gateway.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


async def _noop() -> None:
    return None


@dataclass
class Stores:
    """Store adapters plus the coroutine releasing their resources."""

    identity: AbstractIdentityStore
    documents: AbstractDocumentStore
    aclose: Callable[[], Awaitable[None]] = _noop


def create_stores(settings: Settings) -> Stores:
    """Instantiate the store backend selected by ``STORE_BACKEND``.

    Args:
        settings: Resolved application settings.

    Returns:
        Stores: Identity and document adapters sharing one backend.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    backend = settings.store.backend.lower()

    if backend == "memory":
        identity = InMemoryIdentityStore()
        documents = InMemoryDocumentStore(
            base_url=settings.store.public_base_url,
            bucket=settings.store.documents_bucket,
            signing_secret=settings.store.signing_secret,
        )
        if settings.store.seed_file:
            accounts, rows = load_seed_file(settings.store.seed_file, identity, documents)
            logger.info("store.seeded", extra={"accounts": accounts, "documents": rows})
        return Stores(identity=identity, documents=documents)

    if backend == "supabase":
        cfg = settings.supabase
        missing = [
            name
            for name, value in (
                ("SUPABASE_URL", cfg.url),
                ("SUPABASE_SERVICE_ROLE_KEY", cfg.service_role_key),
                ("SUPABASE_ANON_KEY", cfg.anon_key),
            )
            if not value
        ]
        if missing:
            raise ValidationAppError(
                code="store_missing_config",
                message=f"Supabase backend requires {', '.join(missing)}",
            )

        client = SupabaseRestClient(
            url=cfg.url,
            service_role_key=cfg.service_role_key,
            anon_key=cfg.anon_key,
            timeout_seconds=settings.store.request_timeout_seconds,
        )
        return Stores(
            identity=SupabaseIdentityStore(client),
            documents=SupabaseDocumentStore(
                client,
                bucket=settings.store.documents_bucket,
            ),
            aclose=client.aclose,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, supabase",
    )
