"""Unit tests for app.services.uploads: chunked upload sessions, assembly, cancellation."""

import hashlib
import itertools
import shutil
import tempfile
import threading
import unittest
from pathlib import Path

from pydantic import SecretStr

from app.core.config import Settings
from app.core.database import build_engine, build_session_factory
from app.core.errors import (
    IncompleteUploadError,
    StorageError,
    UploadSessionNotFoundError,
    ValidationError,
)
from app.models import Account, Base, Document
from app.repositories import SqlDocumentRepository
from app.services.documents import DocumentService
from app.services.storage import LocalBlobStore, document_key
from app.services.upload_sessions import UploadSessionStore
from app.services.uploads import ChunkedUploadAssembler

CHUNKS = [b"first chunk|", b"second chunk|", b"third and last chunk"]


def _settings(upload_dir: str, **overrides: object) -> Settings:
    defaults = {
        "DATABASE_URL": "sqlite://",
        "JWT_SECRET": SecretStr("unit-test-secret"),
        "UPLOAD_DIR": upload_dir,
        "MAX_FILE_SIZE": 1024,
    }
    defaults.update(overrides)
    return Settings(**defaults)


class AssemblerTestCase(unittest.TestCase):
    """Temp upload dir, in-memory database, one owner account."""

    def setUp(self) -> None:
        self.tmp = tempfile.mkdtemp()
        self.settings = _settings(self.tmp)
        self.engine = build_engine(self.settings.DATABASE_URL)
        Base.metadata.create_all(bind=self.engine)
        self.db = build_session_factory(self.engine)()
        self.owner = Account(email="owner@test.com", password_hash="x", name="Owner", role="user")
        self.other = Account(email="other@test.com", password_hash="x", name="Other", role="user")
        self.db.add_all([self.owner, self.other])
        self.db.commit()
        self.blobs = LocalBlobStore(self.tmp)
        self.sessions = UploadSessionStore()
        self.documents = DocumentService(SqlDocumentRepository(self.db), self.blobs, self.settings)
        self.assembler = ChunkedUploadAssembler(
            self.sessions, self.blobs, self.documents, self.settings
        )

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _init(self, total_chunks: int = 3, file_name: str = "report.pdf") -> str:
        return self.assembler.init_upload(
            file_name,
            sum(len(c) for c in CHUNKS[:total_chunks]),
            total_chunks,
            {"folder": "q3"},
            self.owner.id,
        )

    def _chunk_files(self) -> list[Path]:
        root = Path(self.tmp) / "chunks"
        return [p for p in root.rglob("*") if p.is_file()] if root.exists() else []


class TestInitUpload(AssemblerTestCase):
    def test_returns_unique_session_ids(self) -> None:
        first = self._init()
        second = self._init()
        self.assertNotEqual(first, second)
        self.assertEqual(len(self.sessions), 2)

    def test_declared_size_above_limit_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.assembler.init_upload("big.bin", 1025, 2, None, self.owner.id)
        self.assertEqual(ctx.exception.message, "File size exceeds limit")
        self.assertEqual(len(self.sessions), 0)

    def test_zero_chunks_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.assembler.init_upload("a.txt", 10, 0, None, self.owner.id)


class TestCompleteUpload(AssemblerTestCase):
    def test_out_of_order_chunks_assemble_in_index_order(self) -> None:
        upload_id = self._init()
        for index in (2, 0, 1):
            self.assembler.upload_chunk(upload_id, index, CHUNKS[index], self.owner.id)

        document = self.assembler.complete_upload(upload_id, self.owner.id)

        expected = b"".join(CHUNKS)
        stored = self.blobs.read(document_key(document.stored_name))
        self.assertEqual(stored, expected)
        self.assertEqual(document.checksum, hashlib.sha256(expected).hexdigest())
        self.assertEqual(document.size, len(expected))
        self.assertEqual(document.original_name, "report.pdf")
        self.assertEqual(document.mime_type, "application/pdf")
        self.assertEqual(document.metadata_, {"folder": "q3"})
        self.assertEqual(document.owner_id, self.owner.id)

    def test_every_permutation_reproduces_original_digest(self) -> None:
        expected_digest = hashlib.sha256(b"".join(CHUNKS)).hexdigest()
        for order in itertools.permutations(range(3)):
            upload_id = self._init()
            for index in order:
                self.assembler.upload_chunk(upload_id, index, CHUNKS[index], self.owner.id)
            document = self.assembler.complete_upload(upload_id, self.owner.id)
            self.assertEqual(document.checksum, expected_digest, msg=f"order={order}")

    def test_completion_removes_chunks_and_session(self) -> None:
        upload_id = self._init()
        for index, data in enumerate(CHUNKS):
            self.assembler.upload_chunk(upload_id, index, data, self.owner.id)
        self.assembler.complete_upload(upload_id, self.owner.id)
        self.assertEqual(self._chunk_files(), [])
        self.assertIsNone(self.sessions.get(upload_id))

    def test_second_completion_fails_without_duplicate_document(self) -> None:
        upload_id = self._init()
        for index, data in enumerate(CHUNKS):
            self.assembler.upload_chunk(upload_id, index, data, self.owner.id)
        self.assembler.complete_upload(upload_id, self.owner.id)
        with self.assertRaises(UploadSessionNotFoundError):
            self.assembler.complete_upload(upload_id, self.owner.id)
        self.assertEqual(self.db.query(Document).count(), 1)

    def test_missing_chunk_names_index_and_keeps_session(self) -> None:
        upload_id = self._init()
        self.assembler.upload_chunk(upload_id, 0, CHUNKS[0], self.owner.id)
        self.assembler.upload_chunk(upload_id, 1, CHUNKS[1], self.owner.id)

        with self.assertRaises(IncompleteUploadError) as ctx:
            self.assembler.complete_upload(upload_id, self.owner.id)
        self.assertEqual(ctx.exception.missing_index, 2)
        self.assertIsNotNone(self.sessions.get(upload_id))
        self.assertFalse((Path(self.tmp) / "files").exists() and any((Path(self.tmp) / "files").iterdir()))

        self.assembler.upload_chunk(upload_id, 2, CHUNKS[2], self.owner.id)
        document = self.assembler.complete_upload(upload_id, self.owner.id)
        self.assertEqual(document.checksum, hashlib.sha256(b"".join(CHUNKS)).hexdigest())

    def test_unreadable_chunk_keeps_session_for_retry(self) -> None:
        upload_id = self._init()
        for index, data in enumerate(CHUNKS):
            self.assembler.upload_chunk(upload_id, index, data, self.owner.id)
        session = self.sessions.get(upload_id)
        Path(self.blobs.local_path(session.chunks[1].location)).unlink()

        with self.assertRaises(StorageError) as ctx:
            self.assembler.complete_upload(upload_id, self.owner.id)
        self.assertNotIn(self.tmp, ctx.exception.message)
        self.assertIs(self.sessions.get(upload_id), session)
        self.assertEqual(self.db.query(Document).count(), 0)
        files_dir = Path(self.tmp) / "files"
        self.assertEqual(list(files_dir.iterdir()) if files_dir.exists() else [], [])

        self.assembler.upload_chunk(upload_id, 1, CHUNKS[1], self.owner.id)
        document = self.assembler.complete_upload(upload_id, self.owner.id)
        self.assertEqual(document.size, len(b"".join(CHUNKS)))

    def test_other_account_cannot_complete(self) -> None:
        upload_id = self._init(total_chunks=1)
        self.assembler.upload_chunk(upload_id, 0, CHUNKS[0], self.owner.id)
        with self.assertRaises(UploadSessionNotFoundError):
            self.assembler.complete_upload(upload_id, self.other.id)


class TestUploadChunk(AssemblerTestCase):
    def test_unknown_session_is_invalid(self) -> None:
        with self.assertRaises(UploadSessionNotFoundError) as ctx:
            self.assembler.upload_chunk("no-such-session", 0, b"x", self.owner.id)
        self.assertEqual(ctx.exception.message, "Invalid upload session")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_out_of_range_index_is_rejected(self) -> None:
        upload_id = self._init()
        for index in (-1, 3):
            with self.assertRaises(ValidationError):
                self.assembler.upload_chunk(upload_id, index, b"x", self.owner.id)
        self.assertEqual(self.sessions.get(upload_id).chunks, {})

    def test_retrying_an_index_replaces_the_chunk(self) -> None:
        upload_id = self._init(total_chunks=1)
        self.assembler.upload_chunk(upload_id, 0, b"stale bytes", self.owner.id)
        self.assembler.upload_chunk(upload_id, 0, b"fresh", self.owner.id)
        document = self.assembler.complete_upload(upload_id, self.owner.id)
        self.assertEqual(self.blobs.read(document_key(document.stored_name)), b"fresh")

    def test_chunks_beyond_max_file_size_are_rejected(self) -> None:
        upload_id = self.assembler.init_upload("a.bin", 1000, 2, None, self.owner.id)
        self.assembler.upload_chunk(upload_id, 0, b"a" * 1000, self.owner.id)
        with self.assertRaises(ValidationError):
            self.assembler.upload_chunk(upload_id, 1, b"b" * 25, self.owner.id)


class TestCancelUpload(AssemblerTestCase):
    def test_cancel_removes_chunks_and_invalidates_session(self) -> None:
        upload_id = self._init()
        self.assembler.upload_chunk(upload_id, 0, CHUNKS[0], self.owner.id)
        self.assembler.upload_chunk(upload_id, 1, CHUNKS[1], self.owner.id)
        self.assertEqual(len(self._chunk_files()), 2)

        self.assembler.cancel_upload(upload_id, self.owner.id)

        self.assertEqual(self._chunk_files(), [])
        self.assertIsNone(self.sessions.get(upload_id))
        with self.assertRaises(UploadSessionNotFoundError):
            self.assembler.upload_chunk(upload_id, 2, CHUNKS[2], self.owner.id)
        with self.assertRaises(UploadSessionNotFoundError):
            self.assembler.complete_upload(upload_id, self.owner.id)

    def test_cancel_unknown_session_is_a_noop(self) -> None:
        self.assembler.cancel_upload("no-such-session", self.owner.id)
        self.assembler.cancel_upload("", self.owner.id)

    def test_cancel_waits_for_in_flight_completion(self) -> None:
        upload_id = self._init(total_chunks=1)
        self.assembler.upload_chunk(upload_id, 0, CHUNKS[0], self.owner.id)
        session = self.sessions.get(upload_id)
        session.lock.acquire()
        worker = threading.Thread(
            target=self.assembler.cancel_upload, args=(upload_id, self.owner.id)
        )
        worker.start()
        worker.join(timeout=0.2)
        self.assertTrue(worker.is_alive())
        self.assertIsNotNone(self.sessions.get(upload_id))
        session.lock.release()
        worker.join(timeout=5)
        self.assertFalse(worker.is_alive())
        self.assertIsNone(self.sessions.get(upload_id))


if __name__ == "__main__":
    unittest.main()
