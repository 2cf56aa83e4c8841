from typing import Annotated

from fastapi import APIRouter, Depends

from docs_gateway.api.dependencies import (
    client_identity,
    get_admin_auth_service,
    get_admin_setup_service,
)
from docs_gateway.schemas.auth import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminSetupRequest,
    AdminSetupResponse,
)
from docs_gateway.services.admin_auth_service import AdminAuthService
from docs_gateway.services.admin_setup_service import AdminSetupService

router = APIRouter(tags=["Admin"])


@router.post("/admin-login", response_model=AdminLoginResponse)
async def admin_login(
    payload: AdminLoginRequest,
    client_id: Annotated[str, Depends(client_identity)],
    service: Annotated[AdminAuthService, Depends(get_admin_auth_service)],
) -> AdminLoginResponse:
    """Exchange an admin username and password for a session.

    Unknown users, wrong passwords and (by default) non-admin accounts all
    answer with the same 401 so usernames cannot be enumerated. Repeated
    failures from one client lock it out with a 429 and a Retry-After hint.

    Returns:
        AdminLoginResponse: Session and user from the credential service.
    """
    result = await service.login(payload.username, payload.password, client_id=client_id)
    return AdminLoginResponse(session=result.session, user=result.user)


@router.post("/setup-admin", response_model=AdminSetupResponse)
async def setup_admin(
    payload: AdminSetupRequest,
    service: Annotated[AdminSetupService, Depends(get_admin_setup_service)],
) -> AdminSetupResponse:
    """Create the first admin account (requires the configured setup key)."""
    result = await service.setup(
        setup_key=payload.setup_key,
        username=payload.username,
        email=payload.email,
        password=payload.password,
    )
    return AdminSetupResponse(
        message=result.message,
        username=result.username,
        created=result.created,
        exists=result.exists,
    )
