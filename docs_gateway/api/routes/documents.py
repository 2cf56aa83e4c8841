from typing import Annotated

from fastapi import APIRouter, Depends

from docs_gateway.api.dependencies import (
    client_identity,
    get_download_counter_service,
    get_signed_access_service,
)
from docs_gateway.schemas.documents import (
    DocumentRequest,
    IncrementDownloadResponse,
    SignedUrlResponse,
)
from docs_gateway.services.document_service import DownloadCounterService, SignedAccessService

router = APIRouter(tags=["Documents"])


@router.post("/get-signed-url", response_model=SignedUrlResponse)
async def get_signed_url(
    payload: DocumentRequest,
    client_id: Annotated[str, Depends(client_identity)],
    service: Annotated[SignedAccessService, Depends(get_signed_access_service)],
) -> SignedUrlResponse:
    """Issue a short-lived download URL for an active document.

    Returns:
        SignedUrlResponse: ``signedUrl``, ``fileName`` and ``expiresIn`` (seconds).
    """
    access = await service.issue(payload.document_id, client_id=client_id)
    return SignedUrlResponse(
        signed_url=access.signed_url,
        file_name=access.file_name,
        expires_in=access.expires_in,
    )


@router.post("/increment-download", response_model=IncrementDownloadResponse)
async def increment_download(
    payload: DocumentRequest,
    client_id: Annotated[str, Depends(client_identity)],
    service: Annotated[DownloadCounterService, Depends(get_download_counter_service)],
) -> IncrementDownloadResponse:
    """Record one download of an active document.

    Returns:
        IncrementDownloadResponse: ``success`` and the post-increment ``newCount``.
    """
    new_count = await service.increment(payload.document_id, client_id=client_id)
    return IncrementDownloadResponse(success=True, new_count=new_count)
