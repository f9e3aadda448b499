"""File endpoints: direct and chunked uploads, download, delete, metadata, list and search."""

import math
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse

from app.api.deps import (
    get_app_settings,
    get_assembler,
    get_current_account,
    get_current_account_id,
    get_document_service,
)
from app.core.clock import as_utc
from app.core.config import Settings
from app.core.errors import ValidationError
from app.models import Account
from app.repositories import DocumentFilters
from app.schemas.auth import MessageResponse
from app.schemas.files import (
    ChunkUploadResponse,
    CompleteUploadRequest,
    DocumentListResponse,
    DocumentOut,
    InitUploadRequest,
    InitUploadResponse,
    MultipleUploadResponse,
    Pagination,
    SearchResponse,
    UploadConfigResponse,
    UploadResult,
)
from app.services.documents import DocumentService, IncomingFile, parse_metadata
from app.services.uploads import ChunkedUploadAssembler

router = APIRouter()


def _read_upload(upload: UploadFile, limit: int) -> IncomingFile:
    """Read at most limit + 1 bytes so oversized files are detected without buffering them whole."""
    data = upload.file.read(limit + 1)
    return IncomingFile(
        filename=upload.filename or "upload.bin",
        content_type=upload.content_type,
        data=data,
    )


@router.get("/config", response_model=UploadConfigResponse)
def get_upload_config(
    documents: Annotated[DocumentService, Depends(get_document_service)],
) -> UploadConfigResponse:
    """Upload limits and allowed MIME types, for clients to validate before sending."""
    return UploadConfigResponse(**documents.upload_config())


@router.post("/upload", response_model=UploadResult)
def upload_single(
    account_id: Annotated[int, Depends(get_current_account_id)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    file: Annotated[UploadFile | None, File()] = None,
    metadata: Annotated[str | None, Form()] = None,
) -> UploadResult:
    """
    Upload one file as multipart/form-data field `file`, with optional JSON `metadata`.

    The declared content type must be on the allow-list and the file at most MAX_FILE_SIZE.
    """
    meta = parse_metadata(metadata)
    incoming = _read_upload(file, settings.MAX_FILE_SIZE) if file is not None else None
    document = documents.store_single(account_id, incoming, meta)
    return UploadResult.from_document(document, settings.API_PREFIX)


@router.post("/upload/multiple", response_model=MultipleUploadResponse)
def upload_multiple(
    account_id: Annotated[int, Depends(get_current_account_id)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    files: Annotated[list[UploadFile] | None, File()] = None,
    metadata: Annotated[str | None, Form()] = None,
) -> MultipleUploadResponse:
    """Upload up to MAX_FILES_PER_UPLOAD files under the multipart field `files`."""
    meta = parse_metadata(metadata)
    incoming = [_read_upload(f, settings.MAX_FILE_SIZE) for f in files or []]
    stored = documents.store_multiple(account_id, incoming, meta)
    return MultipleUploadResponse(
        files=[UploadResult.from_document(d, settings.API_PREFIX) for d in stored]
    )


@router.post("/upload/init", response_model=InitUploadResponse)
def init_upload(
    body: InitUploadRequest,
    account_id: Annotated[int, Depends(get_current_account_id)],
    assembler: Annotated[ChunkedUploadAssembler, Depends(get_assembler)],
) -> InitUploadResponse:
    """Open a chunked upload session; returns the uploadId to send with every chunk."""
    upload_id = assembler.init_upload(
        body.file_name,
        body.file_size,
        body.total_chunks,
        body.metadata,
        account_id,
    )
    return InitUploadResponse(upload_id=upload_id)


@router.post("/upload/chunk", response_model=ChunkUploadResponse)
def upload_chunk(
    account_id: Annotated[int, Depends(get_current_account_id)],
    assembler: Annotated[ChunkedUploadAssembler, Depends(get_assembler)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    upload_id: Annotated[str, Form(alias="uploadId")] = "",
    chunk_index: Annotated[int | None, Form(alias="chunkIndex")] = None,
    chunk: Annotated[UploadFile | None, File()] = None,
) -> ChunkUploadResponse:
    """Store one chunk (multipart fields `uploadId`, `chunkIndex`, `chunk`). Re-sending an index replaces it."""
    if chunk_index is None or chunk is None:
        details = []
        if chunk_index is None:
            details.append({"field": "chunkIndex", "message": "Chunk index is required"})
        if chunk is None:
            details.append({"field": "chunk", "message": "Chunk data is required"})
        raise ValidationError(details=details)
    data = chunk.file.read(settings.MAX_FILE_SIZE + 1)
    index = assembler.upload_chunk(upload_id, chunk_index, data, account_id)
    return ChunkUploadResponse(chunk_index=index, uploaded=True)


@router.post("/upload/complete", response_model=UploadResult)
def complete_upload(
    body: CompleteUploadRequest,
    account_id: Annotated[int, Depends(get_current_account_id)],
    assembler: Annotated[ChunkedUploadAssembler, Depends(get_assembler)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> UploadResult:
    """Assemble all chunks into the final document. 400 names the first missing chunk."""
    document = assembler.complete_upload(body.upload_id, account_id)
    return UploadResult.from_document(document, settings.API_PREFIX)


@router.post("/upload/{upload_id}/cancel", response_model=MessageResponse)
def cancel_upload(
    upload_id: str,
    account_id: Annotated[int, Depends(get_current_account_id)],
    assembler: Annotated[ChunkedUploadAssembler, Depends(get_assembler)],
) -> MessageResponse:
    assembler.cancel_upload(upload_id, account_id)
    return MessageResponse(message="Upload cancelled")


@router.get("/search", response_model=SearchResponse)
def search_files(
    actor: Annotated[Account, Depends(get_current_account)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    query: Annotated[str | None, Query()] = None,
    mime_type: Annotated[str | None, Query(alias="type")] = None,
    min_size: Annotated[int | None, Query(alias="minSize", ge=0)] = None,
    max_size: Annotated[int | None, Query(alias="maxSize", ge=0)] = None,
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
) -> SearchResponse:
    """
    Search documents by name/owner email substring, MIME type, size range and creation window.
    Non-admins only see their own documents.
    """
    results = documents.search(
        actor,
        DocumentFilters(
            query=query,
            mime_type=mime_type,
            min_size=min_size,
            max_size=max_size,
            created_from=as_utc(start),
            created_to=as_utc(end),
        ),
    )
    return SearchResponse(files=[DocumentOut.from_document(d, settings.API_PREFIX) for d in results])


@router.get("", response_model=DocumentListResponse)
def list_files(
    actor: Annotated[Account, Depends(get_current_account)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> DocumentListResponse:
    """Newest-first page of the caller's documents (all documents for admins)."""
    rows, total = documents.list_page(actor, page, limit)
    return DocumentListResponse(
        files=[DocumentOut.from_document(d, settings.API_PREFIX) for d in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/{document_id}/metadata", response_model=DocumentOut)
def get_file_metadata(
    document_id: int,
    actor: Annotated[Account, Depends(get_current_account)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> DocumentOut:
    document = documents.get_visible(actor, document_id)
    return DocumentOut.from_document(document, settings.API_PREFIX)


@router.get("/{document_id}/download")
def download_file(
    document_id: int,
    actor: Annotated[Account, Depends(get_current_account)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
) -> FileResponse:
    document, path = documents.download_path(actor, document_id)
    return FileResponse(path, filename=document.original_name, media_type=document.mime_type)


@router.delete("/{document_id}", response_model=MessageResponse)
def delete_file(
    document_id: int,
    actor: Annotated[Account, Depends(get_current_account)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
) -> MessageResponse:
    """Delete the document and its file. Owners may delete their own; admins may delete any."""
    documents.delete(actor, document_id)
    return MessageResponse(message="File deleted successfully")
