"""Tests for signed URL issuance and download counting."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from docs_gateway.adapters.store.base import DocumentRecord
from docs_gateway.core.errors import (
    NotFoundAppError,
    StoreAppError,
    ThrottledAppError,
    UnavailableAppError,
    ValidationAppError,
)
from docs_gateway.services.document_service import (
    DownloadCounterService,
    SignedAccessService,
    validate_document_id,
)

from conftest import ACTIVE_DOC_ID, UNKNOWN_DOC_ID, WITHDRAWN_DOC_ID

CLIENT = "203.0.113.7"


@pytest.mark.parametrize(
    "document_id",
    [
        ACTIVE_DOC_ID,
        ACTIVE_DOC_ID.upper(),
        "123e4567-e89b-12d3-a456-426614174000",
    ],
)
def test_validate_document_id_accepts_uuids(document_id):
    assert validate_document_id(document_id) == document_id


@pytest.mark.parametrize(
    "document_id,message",
    [
        (None, "Document ID is required"),
        ("", "Document ID is required"),
        ("not-a-uuid", "Invalid document ID format"),
        ("123e4567-e89b-62d3-a456-426614174000", "Invalid document ID format"),
        ("123e4567-e89b-12d3-c456-426614174000", "Invalid document ID format"),
        ("123e4567e89b12d3a456426614174000", "Invalid document ID format"),
    ],
)
def test_validate_document_id_rejects(document_id, message):
    with pytest.raises(ValidationAppError) as exc_info:
        validate_document_id(document_id)
    assert exc_info.value.message == message


class TestSignedAccessService:
    @pytest.mark.asyncio
    async def test_issues_verifiable_url(self, document_store, limiters):
        service = SignedAccessService(document_store, limiters, ttl_seconds=300)

        access = await service.issue(ACTIVE_DOC_ID, client_id=CLIENT)

        assert access.file_name == "Annual Report 2024.pdf"
        assert access.expires_in == 300
        assert document_store.verify_signed_url(access.signed_url) == "reports/annual-2024.pdf"

    @pytest.mark.asyncio
    async def test_malformed_id_never_touches_store_or_limiter(self, limiters):
        documents = AsyncMock()
        service = SignedAccessService(documents, limiters)

        with pytest.raises(ValidationAppError):
            await service.issue("not-a-uuid", client_id=CLIENT)

        documents.get_document.assert_not_called()
        documents.create_signed_url.assert_not_called()
        assert len(limiters.signed_url) == 0

    @pytest.mark.asyncio
    async def test_unknown_document_is_404(self, document_store, limiters):
        service = SignedAccessService(document_store, limiters)

        with pytest.raises(NotFoundAppError):
            await service.issue(UNKNOWN_DOC_ID, client_id=CLIENT)

    @pytest.mark.asyncio
    async def test_withdrawn_document_is_403_and_not_signed(self, limiters):
        documents = AsyncMock()
        documents.get_document.return_value = DocumentRecord(
            id=WITHDRAWN_DOC_ID,
            storage_key="reports/draft.pdf",
            display_name="Draft.pdf",
            status="withdrawn",
        )
        service = SignedAccessService(documents, limiters)

        with pytest.raises(UnavailableAppError) as exc_info:
            await service.issue(WITHDRAWN_DOC_ID, client_id=CLIENT)

        assert exc_info.value.message == "Document is not available"
        documents.create_signed_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_signing_failure_is_500(self, limiters):
        documents = AsyncMock()
        documents.get_document.return_value = DocumentRecord(
            id=ACTIVE_DOC_ID,
            storage_key="reports/annual-2024.pdf",
            display_name="Annual Report 2024.pdf",
            status="active",
        )
        documents.create_signed_url.side_effect = StoreAppError(code="boom", message="bucket gone")
        service = SignedAccessService(documents, limiters)

        with pytest.raises(StoreAppError) as exc_info:
            await service.issue(ACTIVE_DOC_ID, client_id=CLIENT)

        assert exc_info.value.message == "Failed to generate download link"

    @pytest.mark.asyncio
    async def test_throttles_after_window_budget(self, document_store, limiters, clock):
        service = SignedAccessService(document_store, limiters)
        for _ in range(30):
            await service.issue(ACTIVE_DOC_ID, client_id=CLIENT)

        with pytest.raises(ThrottledAppError) as exc_info:
            await service.issue(ACTIVE_DOC_ID, client_id=CLIENT)
        assert exc_info.value.retry_after_seconds == 60

        # Other clients are unaffected, and the window reopens
        await service.issue(ACTIVE_DOC_ID, client_id="198.51.100.1")
        clock.return_value += 60
        await service.issue(ACTIVE_DOC_ID, client_id=CLIENT)


class TestDownloadCounterService:
    @pytest.mark.asyncio
    async def test_increment_returns_new_count(self, document_store, limiters):
        service = DownloadCounterService(document_store, limiters)

        assert await service.increment(ACTIVE_DOC_ID, client_id=CLIENT) == 42

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, document_store, limiters):
        service = DownloadCounterService(document_store, limiters)

        counts = await asyncio.gather(
            *(service.increment(ACTIVE_DOC_ID, client_id=f"10.0.0.{i}") for i in range(50))
        )

        assert sorted(counts) == list(range(42, 92))
        record = await document_store.get_document(ACTIVE_DOC_ID)
        assert record.download_count == 91

    @pytest.mark.asyncio
    async def test_spacing_is_per_client_and_document(self, document_store, limiters, clock):
        other_id = document_store.add_document(
            storage_key="reports/other.pdf", display_name="Other.pdf"
        ).id
        service = DownloadCounterService(document_store, limiters)

        await service.increment(ACTIVE_DOC_ID, client_id=CLIENT)
        with pytest.raises(ThrottledAppError) as exc_info:
            await service.increment(ACTIVE_DOC_ID.upper(), client_id=CLIENT)
        assert exc_info.value.message == "Too many requests. Please slow down."

        await service.increment(other_id, client_id=CLIENT)
        await service.increment(ACTIVE_DOC_ID, client_id="198.51.100.1")

        clock.return_value += 6
        assert await service.increment(ACTIVE_DOC_ID, client_id=CLIENT) == 44

    @pytest.mark.asyncio
    async def test_withdrawn_document_is_not_counted(self, document_store, limiters):
        service = DownloadCounterService(document_store, limiters)

        with pytest.raises(UnavailableAppError):
            await service.increment(WITHDRAWN_DOC_ID, client_id=CLIENT)

        record = await document_store.get_document(WITHDRAWN_DOC_ID)
        assert record.download_count == 0

    @pytest.mark.asyncio
    async def test_malformed_id_never_touches_store(self, limiters):
        documents = AsyncMock()
        service = DownloadCounterService(documents, limiters)

        with pytest.raises(ValidationAppError):
            await service.increment("not-a-uuid", client_id=CLIENT)

        documents.get_document.assert_not_called()
        documents.increment_download_count.assert_not_called()

    @pytest.mark.asyncio
    async def test_document_deleted_mid_request_is_404(self, limiters):
        documents = AsyncMock()
        documents.get_document.return_value = DocumentRecord(
            id=ACTIVE_DOC_ID,
            storage_key="reports/annual-2024.pdf",
            display_name="Annual Report 2024.pdf",
            status="active",
        )
        documents.increment_download_count.return_value = None
        service = DownloadCounterService(documents, limiters)

        with pytest.raises(NotFoundAppError):
            await service.increment(ACTIVE_DOC_ID, client_id=CLIENT)
