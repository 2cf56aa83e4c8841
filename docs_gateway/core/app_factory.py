"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the process-lifetime state: store adapters, rate limiters and the
services built on them are created here, hung on ``app.state`` and injected
into routes, so every app instance (and every test) gets isolated state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from docs_gateway.adapters.store.factory import Stores, create_stores
from docs_gateway.api.routes import admin_router, documents_router, health_router
from docs_gateway.core.config import Settings, settings as default_settings
from docs_gateway.core.exception_handlers import setup_exception_handlers
from docs_gateway.core.logging import configure_logging
from docs_gateway.core.middleware import cors_middleware, request_id_middleware
from docs_gateway.core.openapi import apply_openapi_customizations
from docs_gateway.core.rate_limit import RateLimiters, build_rate_limiters
from docs_gateway.services.admin_auth_service import AdminAuthService
from docs_gateway.services.admin_setup_service import AdminSetupService
from docs_gateway.services.credential_resolver import CredentialResolver
from docs_gateway.services.document_service import DownloadCounterService, SignedAccessService

logger = logging.getLogger(__name__)


def _attach_services(app: FastAPI, cfg: Settings, stores: Stores, limiters: RateLimiters) -> None:
    app.state.settings = cfg
    app.state.stores = stores
    app.state.rate_limiters = limiters

    app.state.admin_auth_service = AdminAuthService(
        stores.identity,
        CredentialResolver(stores.identity),
        limiters,
        distinguish_non_admin=cfg.app.distinguish_non_admin_login,
    )
    app.state.admin_setup_service = AdminSetupService(
        stores.identity,
        setup_key=cfg.app.setup_key,
    )
    app.state.signed_access_service = SignedAccessService(
        stores.documents,
        limiters,
        ttl_seconds=cfg.store.signed_url_ttl_seconds,
    )
    app.state.download_counter_service = DownloadCounterService(stores.documents, limiters)


def create_app(
    cfg: Settings | None = None,
    *,
    stores: Stores | None = None,
    limiters: RateLimiters | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        cfg: Settings to build from (defaults to the environment-loaded settings).
        stores: Pre-built store adapters (defaults to the configured backend).
        limiters: Pre-built limiter state (defaults to fresh in-memory limiters).
        configure_logs: Install the root log handler (tests may skip it).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = cfg or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    stores = stores or create_stores(cfg)
    limiters = limiters or build_rate_limiters(cfg.rate_limit)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "gateway.startup",
            extra={
                "store_backend": cfg.store.backend,
                "rate_limit_enabled": limiters.enabled,
                "setup_enabled": bool(cfg.app.setup_key),
            },
        )
        try:
            yield
        finally:
            await stores.aclose()
            logger.info("gateway.shutdown")

    app = FastAPI(
        title="Document Access Gateway",
        description=(
            "Access-control gateway in front of the document store: admin "
            "login with brute-force lockout, short-lived signed download URLs "
            "and atomic download counting, each behind a per-client rate limit."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    _attach_services(app, cfg, stores, limiters)

    # Middleware (last registered runs first)
    app.middleware("http")(cors_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(admin_router)
    app.include_router(documents_router)
    app.include_router(health_router)

    # OpenAPI customizations (tags, error responses)
    apply_openapi_customizations(app)

    return app
