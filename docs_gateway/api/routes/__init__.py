from __future__ import annotations

from docs_gateway.api.routes.admin import router as admin_router
from docs_gateway.api.routes.documents import router as documents_router
from docs_gateway.api.routes.health import router as health_router

__all__ = ["admin_router", "documents_router", "health_router"]
