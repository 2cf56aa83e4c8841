"""Pydantic schemas for document access endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DocumentRequest(BaseModel):
    """Body shared by get-signed-url and increment-download."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: str | None = Field(
        default=None,
        alias="documentId",
        description="Document UUID.",
    )


class SignedUrlResponse(BaseModel):
    """Short-lived download grant."""

    model_config = ConfigDict(populate_by_name=True)

    signed_url: str = Field(..., alias="signedUrl", description="Time-boxed download URL.")
    file_name: str = Field(..., alias="fileName", description="Display name of the document.")
    expires_in: int = Field(..., alias="expiresIn", description="Seconds until the URL expires.")


class IncrementDownloadResponse(BaseModel):
    """Result of a download count increment."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    new_count: int = Field(..., alias="newCount", description="Download count after the increment.")
