"""Request/response schemas for file upload, download and search endpoints."""

from datetime import datetime
from typing import Any

from pydantic import Field

from app.models import Document
from app.schemas.base import CamelModel


def download_url(api_prefix: str, document_id: int) -> str:
    return f"{api_prefix}/files/{document_id}/download"


class UploadConfigResponse(CamelModel):
    max_file_size: int
    allowed_types: list[str]
    max_files_per_upload: int


class UploadResult(CamelModel):
    """Result of a finished upload (single, multiple or chunked)."""

    id: int
    url: str
    checksum: str = Field(..., description="Hex SHA-256 of the stored file")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Document, api_prefix: str) -> "UploadResult":
        return cls(
            id=document.id,
            url=download_url(api_prefix, document.id),
            checksum=document.checksum,
            metadata=document.metadata_ or {},
        )


class MultipleUploadResponse(CamelModel):
    files: list[UploadResult]


class InitUploadRequest(CamelModel):
    file_name: str = Field(default="", description="Name of the file being uploaded")
    file_size: int = Field(..., description="Declared total size in bytes")
    total_chunks: int = Field(..., description="Number of chunks the client will send")
    metadata: dict[str, Any] | None = None


class InitUploadResponse(CamelModel):
    upload_id: str


class ChunkUploadResponse(CamelModel):
    chunk_index: int
    uploaded: bool = True


class CompleteUploadRequest(CamelModel):
    upload_id: str = ""


class DocumentOut(CamelModel):
    """Document metadata as listed, searched, or fetched."""

    id: int
    name: str
    size: int
    type: str
    uploaded_by: int
    created_at: datetime
    checksum: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    url: str

    @classmethod
    def from_document(cls, document: Document, api_prefix: str) -> "DocumentOut":
        return cls(
            id=document.id,
            name=document.original_name,
            size=document.size,
            type=document.mime_type,
            uploaded_by=document.owner_id,
            created_at=document.created_at,
            checksum=document.checksum,
            metadata=document.metadata_ or {},
            url=download_url(api_prefix, document.id),
        )


class SearchResponse(CamelModel):
    files: list[DocumentOut]


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class DocumentListResponse(CamelModel):
    files: list[DocumentOut]
    pagination: Pagination
