"""FastAPI dependencies resolving per-app services and the caller identity.

Services are built once by the app factory and stored on ``app.state``;
routes receive them through ``Depends`` so tests can swap in their own.
"""

from __future__ import annotations

from fastapi import Request

from docs_gateway.core.rate_limit import get_client_identity
from docs_gateway.services.admin_auth_service import AdminAuthService
from docs_gateway.services.admin_setup_service import AdminSetupService
from docs_gateway.services.document_service import DownloadCounterService, SignedAccessService


def client_identity(request: Request) -> str:
    trust_forwarded = request.app.state.settings.app.trust_forwarded_headers
    return get_client_identity(request, trust_forwarded=trust_forwarded)


def get_admin_auth_service(request: Request) -> AdminAuthService:
    return request.app.state.admin_auth_service


def get_admin_setup_service(request: Request) -> AdminSetupService:
    return request.app.state.admin_setup_service


def get_signed_access_service(request: Request) -> SignedAccessService:
    return request.app.state.signed_access_service


def get_download_counter_service(request: Request) -> DownloadCounterService:
    return request.app.state.download_counter_service
