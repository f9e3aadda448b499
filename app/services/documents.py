"""Direct (non-chunked) uploads, document lookup, deletion and search."""

import json
import logging
import mimetypes
from dataclasses import dataclass
from typing import Any

from app.core.config import Settings
from app.core.errors import ForbiddenError, NotFoundError, StorageError, ValidationError
from app.models import Account, Document
from app.repositories import DocumentFilters, DocumentRepository
from app.services.storage import BlobStore, document_key, make_stored_name

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "image/png",
    "image/jpeg",
    "image/gif",
)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class IncomingFile:
    """A complete file received in one request."""

    filename: str
    content_type: str | None
    data: bytes


def guess_mime_type(filename: str) -> str:
    guess, _ = mimetypes.guess_type(filename or "")
    return guess or DEFAULT_MIME_TYPE


def parse_metadata(raw: str | None) -> dict[str, Any]:
    """Parse the optional JSON-object metadata form field."""
    if raw is None or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(
            details=[{"field": "metadata", "message": f"Invalid JSON: {e.msg}"}]
        ) from e
    if not isinstance(value, dict):
        raise ValidationError(
            details=[{"field": "metadata", "message": "Metadata must be a JSON object"}]
        )
    return value


def is_admin(actor: Account) -> bool:
    return actor.role == "admin"


class DocumentService:
    def __init__(self, documents: DocumentRepository, blobs: BlobStore, settings: Settings) -> None:
        self.documents = documents
        self.blobs = blobs
        self.settings = settings

    def upload_config(self) -> dict[str, Any]:
        return {
            "max_file_size": self.settings.MAX_FILE_SIZE,
            "allowed_types": list(ALLOWED_MIME_TYPES),
            "max_files_per_upload": self.settings.MAX_FILES_PER_UPLOAD,
        }

    def validate_file(self, incoming: IncomingFile, field: str = "file") -> None:
        mime = (incoming.content_type or "").split(";")[0].strip().lower()
        if mime not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                f"File type {mime or 'unknown'} is not allowed",
                details=[{"field": field, "message": f"File type {mime or 'unknown'} is not allowed"}],
            )
        if not incoming.data:
            raise ValidationError(
                "No file uploaded",
                details=[{"field": field, "message": "File is empty"}],
            )
        if len(incoming.data) > self.settings.MAX_FILE_SIZE:
            raise ValidationError(
                "File too large",
                details=[
                    {
                        "field": field,
                        "message": f"File size must not exceed {self.settings.MAX_FILE_SIZE} bytes",
                    }
                ],
            )

    def record_stored_blob(
        self,
        owner_id: int,
        original_name: str,
        stored_name: str,
        mime_type: str,
        metadata: dict[str, Any] | None,
    ) -> Document:
        """Create the document row for a blob already fully written under stored_name."""
        key = document_key(stored_name)
        size = self.blobs.size(key)
        checksum = self.blobs.checksum(key)
        return self.documents.add(
            Document(
                original_name=original_name,
                stored_name=stored_name,
                size=size,
                mime_type=mime_type,
                owner_id=owner_id,
                checksum=checksum,
                metadata_=metadata or {},
            )
        )

    def _store(self, owner_id: int, incoming: IncomingFile, metadata: dict[str, Any]) -> Document:
        stored_name = make_stored_name(incoming.filename)
        key = document_key(stored_name)
        self.blobs.put(key, incoming.data)
        try:
            document = self.record_stored_blob(
                owner_id,
                incoming.filename or stored_name,
                stored_name,
                (incoming.content_type or "").split(";")[0].strip().lower(),
                metadata,
            )
        except Exception:
            self.discard_blob(key)
            raise
        logger.info(
            "Stored document id=%s owner=%s size=%s", document.id, owner_id, document.size
        )
        return document

    def store_single(
        self, owner_id: int, incoming: IncomingFile | None, metadata: dict[str, Any]
    ) -> Document:
        if incoming is None:
            raise ValidationError("No file uploaded", details=[{"field": "file", "message": "File is required"}])
        self.validate_file(incoming)
        return self._store(owner_id, incoming, metadata)

    def store_multiple(
        self, owner_id: int, files: list[IncomingFile], metadata: dict[str, Any]
    ) -> list[Document]:
        """Validate every file first so a bad file rejects the whole batch before anything is written."""
        if not files:
            raise ValidationError("No files uploaded", details=[{"field": "files", "message": "At least one file is required"}])
        if len(files) > self.settings.MAX_FILES_PER_UPLOAD:
            raise ValidationError(
                "Too many files",
                details=[
                    {
                        "field": "files",
                        "message": f"At most {self.settings.MAX_FILES_PER_UPLOAD} files per upload",
                    }
                ],
            )
        for i, incoming in enumerate(files):
            self.validate_file(incoming, field=f"files[{i}]")
        return [self._store(owner_id, incoming, metadata) for incoming in files]

    def get_visible(self, actor: Account, document_id: int) -> Document:
        """Owner or admin only; anything else reads as not found."""
        document = self.documents.get(document_id)
        if document is None or (not is_admin(actor) and document.owner_id != actor.id):
            raise NotFoundError("File not found")
        return document

    def download_path(self, actor: Account, document_id: int):
        document = self.get_visible(actor, document_id)
        key = document_key(document.stored_name)
        if not self.blobs.exists(key):
            logger.error("Backing file missing for document id=%s", document.id)
            raise NotFoundError("File not found")
        return document, self.blobs.local_path(key)

    def delete(self, actor: Account, document_id: int) -> None:
        document = self.documents.get(document_id)
        if document is None:
            raise NotFoundError("File not found")
        if not is_admin(actor) and document.owner_id != actor.id:
            raise ForbiddenError("Insufficient permissions")
        key = document_key(document.stored_name)
        self.documents.delete(document)
        self.discard_blob(key)
        logger.info("Deleted document id=%s by account id=%s", document_id, actor.id)

    def search(self, actor: Account, filters: DocumentFilters) -> list[Document]:
        scope = None if is_admin(actor) else actor.id
        return self.documents.search(
            DocumentFilters(
                owner_id=scope,
                query=filters.query,
                mime_type=filters.mime_type,
                min_size=filters.min_size,
                max_size=filters.max_size,
                created_from=filters.created_from,
                created_to=filters.created_to,
            )
        )

    def list_page(self, actor: Account, page: int, limit: int) -> tuple[list[Document], int]:
        scope = None if is_admin(actor) else actor.id
        return self.documents.page(scope, (page - 1) * limit, limit)

    def discard_blob(self, key: str) -> None:
        try:
            self.blobs.delete(key)
        except StorageError:
            logger.warning("Could not delete blob %s; continuing", key)
