"""
Chunked uploads: init a session, receive chunks in any order, assemble them in index order.

Each session's lock is held for the whole of upload_chunk, complete_upload and cancel_upload.
After acquiring it, every operation re-checks that the store still holds the same session, so
a session consumed, cancelled or swept meanwhile surfaces as an invalid session instead of
being written to or assembled twice.
"""

import logging
from typing import Any

from app.core.clock import Clock, utcnow
from app.core.config import Settings
from app.core.errors import IncompleteUploadError, StorageError, UploadSessionNotFoundError, ValidationError
from app.models import Document
from app.services.documents import DocumentService, guess_mime_type
from app.services.storage import BlobStore, chunk_key, document_key, make_stored_name
from app.services.upload_sessions import (
    StoredChunk,
    UploadSession,
    UploadSessionStore,
    new_session_id,
)

logger = logging.getLogger(__name__)


def discard_session_chunks(session: UploadSession, blobs: BlobStore) -> int:
    """Best-effort delete of every chunk file of the session. Returns how many deletes failed."""
    failures = 0
    for index, chunk in sorted(session.chunks.items()):
        try:
            blobs.delete(chunk.location)
        except StorageError:
            failures += 1
            logger.warning("Could not delete chunk %s of upload session %s", index, session.id)
    session.chunks.clear()
    return failures


class ChunkedUploadAssembler:
    def __init__(
        self,
        sessions: UploadSessionStore,
        blobs: BlobStore,
        documents: DocumentService,
        settings: Settings,
        now: Clock = utcnow,
    ) -> None:
        self.sessions = sessions
        self.blobs = blobs
        self.documents = documents
        self.settings = settings
        self.now = now

    def _owned_session(self, session_id: str, owner_id: int) -> UploadSession:
        session = self.sessions.get(session_id) if session_id else None
        if session is None or session.owner_id != owner_id:
            raise UploadSessionNotFoundError()
        return session

    def init_upload(
        self,
        file_name: str,
        file_size: int,
        total_chunks: int,
        metadata: dict[str, Any] | None,
        owner_id: int,
    ) -> str:
        """Open a session and return its unguessable id."""
        if file_size is not None and file_size > self.settings.MAX_FILE_SIZE:
            raise ValidationError(
                "File size exceeds limit",
                details=[
                    {
                        "field": "fileSize",
                        "message": f"File size must not exceed {self.settings.MAX_FILE_SIZE} bytes",
                    }
                ],
            )
        details: list[dict] = []
        if not file_name or not file_name.strip():
            details.append({"field": "fileName", "message": "File name is required"})
        if file_size is None or file_size < 0:
            details.append({"field": "fileSize", "message": "File size must be a non-negative integer"})
        if total_chunks is None or total_chunks < 1:
            details.append({"field": "totalChunks", "message": "Total chunks must be at least 1"})
        if details:
            raise ValidationError(details=details)

        session = UploadSession(
            id=new_session_id(),
            file_name=file_name.strip(),
            file_size=file_size,
            total_chunks=total_chunks,
            owner_id=owner_id,
            created_at=self.now(),
            metadata=dict(metadata or {}),
        )
        self.sessions.add(session)
        logger.info(
            "Upload session %s opened by account id=%s (%s bytes in %s chunks)",
            session.id,
            owner_id,
            file_size,
            total_chunks,
        )
        return session.id

    def upload_chunk(self, session_id: str, chunk_index: int, data: bytes, owner_id: int) -> int:
        """Store one chunk, replacing any earlier chunk at the same index."""
        session = self._owned_session(session_id, owner_id)
        with session.lock:
            if not self.sessions.holds(session):
                raise UploadSessionNotFoundError()
            if not 0 <= chunk_index < session.total_chunks:
                raise ValidationError(
                    "Chunk index out of range",
                    details=[
                        {
                            "field": "chunkIndex",
                            "message": f"Chunk index must be between 0 and {session.total_chunks - 1}",
                        }
                    ],
                )
            previous = session.chunks.get(chunk_index)
            already = session.received_bytes - (previous.size if previous else 0)
            if already + len(data) > self.settings.MAX_FILE_SIZE:
                raise ValidationError(
                    "File size exceeds limit",
                    details=[
                        {
                            "field": "chunk",
                            "message": f"Uploaded chunks must not exceed {self.settings.MAX_FILE_SIZE} bytes in total",
                        }
                    ],
                )
            location = chunk_key(session.id, chunk_index)
            size = self.blobs.put(location, data)
            session.chunks[chunk_index] = StoredChunk(location=location, size=size)
        logger.debug("Stored chunk %s of upload session %s (%s bytes)", chunk_index, session.id, size)
        return chunk_index

    def complete_upload(self, session_id: str, owner_id: int) -> Document:
        """
        Assemble every chunk in index order into one stored document.

        A missing chunk raises IncompleteUploadError and leaves the session intact. A storage
        failure raises StorageError and also leaves the session and its chunks for a retry.
        """
        session = self._owned_session(session_id, owner_id)
        with session.lock:
            if not self.sessions.holds(session):
                raise UploadSessionNotFoundError()
            missing = session.first_missing_index()
            if missing is not None:
                raise IncompleteUploadError(missing)

            stored_name = make_stored_name(session.file_name)
            parts = [session.chunks[i].location for i in range(session.total_chunks)]
            self.blobs.assemble(document_key(stored_name), parts)
            try:
                document = self.documents.record_stored_blob(
                    session.owner_id,
                    session.file_name,
                    stored_name,
                    guess_mime_type(session.file_name),
                    session.metadata,
                )
            except Exception:
                self.documents.discard_blob(document_key(stored_name))
                raise

            self.sessions.discard(session)
            discard_session_chunks(session, self.blobs)
        logger.info(
            "Upload session %s completed as document id=%s (%s bytes)",
            session.id,
            document.id,
            document.size,
        )
        return document

    def cancel_upload(self, session_id: str, owner_id: int) -> None:
        """Drop the session and its chunks. Unknown sessions are a no-op."""
        session = self.sessions.get(session_id) if session_id else None
        if session is None or session.owner_id != owner_id:
            return
        with session.lock:
            if not self.sessions.discard(session):
                return
            discard_session_chunks(session, self.blobs)
        logger.info("Upload session %s cancelled", session.id)
