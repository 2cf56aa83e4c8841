"""Document access services: signed URL issuance and download counting.

Both services share the same front half:
- Syntactic UUID validation (before any limiter or store access)
- Rate-limit check for the client
- Existence and availability check against the document store

then perform exactly one external issuance or mutation call.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from docs_gateway.adapters.store.base import AbstractDocumentStore, DocumentRecord
from docs_gateway.core.errors import (
    NotFoundAppError,
    StoreAppError,
    UnavailableAppError,
    ValidationAppError,
)
from docs_gateway.core.rate_limit import RateLimiters, hash_limiter_key, throttled_error

logger = logging.getLogger(__name__)

DOCUMENT_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

DEFAULT_SIGNED_URL_TTL_SECONDS = 300


def validate_document_id(document_id: str | None) -> str:
    """Validate a document id without touching any store.

    Args:
        document_id: Raw id from the request body.

    Returns:
        The id, unchanged.

    Raises:
        ValidationAppError: If the id is missing or not an RFC 4122 UUID.
    """
    if not document_id:
        raise ValidationAppError(code="missing_document_id", message="Document ID is required")
    if not DOCUMENT_ID_PATTERN.match(document_id):
        raise ValidationAppError(code="invalid_document_id", message="Invalid document ID format")
    return document_id


async def load_active_document(store: AbstractDocumentStore, document_id: str) -> DocumentRecord:
    """Fetch a document and require it to be active.

    Raises:
        NotFoundAppError: No such document.
        UnavailableAppError: Document exists but is withdrawn.
        StoreAppError: Store failure.
    """
    document = await store.get_document(document_id)
    if document is None:
        logger.info("document.not_found", extra={"document_id": document_id})
        raise NotFoundAppError(code="document_not_found", message="Document not found")
    if not document.is_active:
        logger.info(
            "document.unavailable",
            extra={"document_id": document_id, "status": document.status},
        )
        raise UnavailableAppError(code="document_unavailable", message="Document is not available")
    return document


@dataclass(frozen=True)
class SignedAccess:
    signed_url: str
    file_name: str
    expires_in: int


class SignedAccessService:
    """Issues short-lived download URLs for active documents."""

    def __init__(
        self,
        documents: AbstractDocumentStore,
        limiters: RateLimiters,
        *,
        ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS,
    ) -> None:
        self.documents = documents
        self.limiters = limiters
        self.ttl_seconds = ttl_seconds

    def _check_rate_limit(self, client_id: str) -> None:
        if not self.limiters.enabled:
            return
        result = self.limiters.signed_url.consume(f"ip:{client_id}")
        if result.allowed:
            return
        logger.warning(
            "signed_url.throttled",
            extra={
                "client_hash": hash_limiter_key(client_id),
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        raise throttled_error(
            result,
            code="rate_limited",
            message="Too many requests. Please try again later.",
        )

    async def issue(self, document_id: str | None, *, client_id: str) -> SignedAccess:
        """Mint a signed URL for a document.

        The grant is single-purpose and not renewable here: once it expires
        the client requests a new one.

        Args:
            document_id: Requested document id.
            client_id: ClientIdentity for throttling.

        Returns:
            SignedAccess with URL, display name and TTL.

        Raises:
            ValidationAppError, ThrottledAppError, NotFoundAppError,
            UnavailableAppError, StoreAppError.
        """
        document_id = validate_document_id(document_id)
        self._check_rate_limit(client_id)

        document = await load_active_document(self.documents, document_id)

        try:
            signed_url = await self.documents.create_signed_url(document.storage_key, self.ttl_seconds)
        except StoreAppError as exc:
            logger.error(
                "signed_url.issue_failed",
                extra={"document_id": document_id, "error_code": exc.code},
            )
            raise StoreAppError(
                code="signed_url_failed",
                message="Failed to generate download link",
            ) from exc

        logger.info(
            "signed_url.issued",
            extra={"document_id": document_id, "expires_in_s": self.ttl_seconds},
        )
        return SignedAccess(
            signed_url=signed_url,
            file_name=document.display_name,
            expires_in=self.ttl_seconds,
        )


class DownloadCounterService:
    """Counts downloads, throttled per client per document."""

    def __init__(self, documents: AbstractDocumentStore, limiters: RateLimiters) -> None:
        self.documents = documents
        self.limiters = limiters

    def _check_rate_limit(self, client_id: str, document_id: str) -> None:
        if not self.limiters.enabled:
            return
        key = f"{client_id}:{document_id.lower()}"
        result = self.limiters.increment.consume(key)
        if result.allowed:
            return
        logger.warning(
            "download_count.throttled",
            extra={
                "client_hash": hash_limiter_key(client_id),
                "document_id": document_id,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        raise throttled_error(
            result,
            code="rate_limited",
            message="Too many requests. Please slow down.",
        )

    async def increment(self, document_id: str | None, *, client_id: str) -> int:
        """Atomically add one download to an active document.

        Returns:
            The post-increment download count.

        Raises:
            ValidationAppError, ThrottledAppError, NotFoundAppError,
            UnavailableAppError, StoreAppError.
        """
        document_id = validate_document_id(document_id)
        self._check_rate_limit(client_id, document_id)

        await load_active_document(self.documents, document_id)

        new_count = await self.documents.increment_download_count(document_id)
        if new_count is None:
            # Deleted between the availability check and the update
            raise NotFoundAppError(code="document_not_found", message="Document not found")

        logger.info(
            "download_count.incremented",
            extra={"document_id": document_id, "new_count": new_count},
        )
        return new_count
