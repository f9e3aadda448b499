"""Unit tests for app.services.documents: direct uploads, permissions, search and paging."""

import hashlib
import shutil
import tempfile
import unittest
from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import patch

from pydantic import SecretStr

from app.core.clock import as_utc
from app.core.config import Settings
from app.core.database import build_engine, build_session_factory
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models import Account, Base, Document
from app.repositories import DocumentFilters, SqlDocumentRepository
from app.services.documents import DocumentService, IncomingFile, parse_metadata
from app.services.storage import LocalBlobStore, document_key, sanitize_file_name


def _file(
    name: str = "notes.txt",
    data: bytes = b"hello world",
    content_type: str | None = "text/plain",
) -> IncomingFile:
    return IncomingFile(filename=name, content_type=content_type, data=data)


class DocumentServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.mkdtemp()
        self.settings = Settings(
            DATABASE_URL="sqlite://",
            JWT_SECRET=SecretStr("unit-test-secret"),
            UPLOAD_DIR=self.tmp,
            MAX_FILE_SIZE=64,
            MAX_FILES_PER_UPLOAD=3,
        )
        self.engine = build_engine(self.settings.DATABASE_URL)
        Base.metadata.create_all(bind=self.engine)
        self.db = build_session_factory(self.engine)()
        self.alice = Account(email="alice@test.com", password_hash="x", name="Alice", role="user")
        self.bob = Account(email="bob@test.com", password_hash="x", name="Bob", role="user")
        self.admin = Account(email="root@test.com", password_hash="x", name="Root", role="admin")
        self.db.add_all([self.alice, self.bob, self.admin])
        self.db.commit()
        self.blobs = LocalBlobStore(self.tmp)
        self.service = DocumentService(SqlDocumentRepository(self.db), self.blobs, self.settings)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()
        shutil.rmtree(self.tmp, ignore_errors=True)


class TestStoreSingle(DocumentServiceTestCase):
    def test_stores_file_with_whole_file_checksum(self) -> None:
        document = self.service.store_single(self.alice.id, _file(), {"tag": "a"})
        self.assertEqual(document.checksum, hashlib.sha256(b"hello world").hexdigest())
        self.assertEqual(document.size, 11)
        self.assertEqual(document.mime_type, "text/plain")
        self.assertEqual(document.original_name, "notes.txt")
        self.assertEqual(document.metadata_, {"tag": "a"})
        self.assertEqual(self.blobs.read(document_key(document.stored_name)), b"hello world")

    def test_disallowed_type_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.service.store_single(self.alice.id, _file(name="a.exe", content_type="application/x-msdownload"), {})
        self.assertIn("not allowed", ctx.exception.message)
        self.assertEqual(self.db.query(Document).count(), 0)

    def test_oversized_file_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.service.store_single(self.alice.id, _file(data=b"x" * 65), {})
        self.assertEqual(ctx.exception.message, "File too large")

    def test_missing_or_empty_file_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.store_single(self.alice.id, None, {})
        with self.assertRaises(ValidationError):
            self.service.store_single(self.alice.id, _file(data=b""), {})

    def test_stored_name_is_sanitized_and_unique(self) -> None:
        first = self.service.store_single(self.alice.id, _file(name="../../etc/pass wd.txt"), {})
        second = self.service.store_single(self.alice.id, _file(name="../../etc/pass wd.txt"), {})
        self.assertNotEqual(first.stored_name, second.stored_name)
        self.assertTrue(first.stored_name.endswith("pass_wd.txt"))
        self.assertNotIn("/", first.stored_name)


class TestStoreMultiple(DocumentServiceTestCase):
    def test_stores_every_file(self) -> None:
        stored = self.service.store_multiple(
            self.alice.id,
            [_file("a.txt", b"aaa"), _file("b.png", b"\x89PNG", "image/png")],
            {},
        )
        self.assertEqual([d.original_name for d in stored], ["a.txt", "b.png"])

    def test_one_bad_file_rejects_whole_batch(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.service.store_multiple(
                self.alice.id,
                [_file("a.txt"), _file("b.zip", content_type="application/zip")],
                {},
            )
        self.assertEqual(ctx.exception.details[0]["field"], "files[1]")
        self.assertEqual(self.db.query(Document).count(), 0)

    def test_too_many_files_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.store_multiple(self.alice.id, [_file()] * 4, {})


class TestDeleteAndVisibility(DocumentServiceTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.doc = self.service.store_single(self.alice.id, _file(), {})

    def test_owner_deletes_row_and_file(self) -> None:
        key = document_key(self.doc.stored_name)
        self.service.delete(self.alice, self.doc.id)
        self.assertIsNone(self.db.get(Document, self.doc.id))
        self.assertFalse(self.blobs.exists(key))

    def test_admin_can_delete_any_document(self) -> None:
        self.service.delete(self.admin, self.doc.id)
        self.assertIsNone(self.db.get(Document, self.doc.id))

    def test_other_user_cannot_delete(self) -> None:
        with self.assertRaises(ForbiddenError) as ctx:
            self.service.delete(self.bob, self.doc.id)
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertIsNotNone(self.db.get(Document, self.doc.id))

    def test_delete_unknown_document_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.delete(self.alice, 9999)

    def test_delete_survives_missing_backing_file(self) -> None:
        self.blobs.delete(document_key(self.doc.stored_name))
        self.service.delete(self.alice, self.doc.id)
        self.assertIsNone(self.db.get(Document, self.doc.id))

    def test_other_users_document_reads_as_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.get_visible(self.bob, self.doc.id)
        self.assertEqual(self.service.get_visible(self.admin, self.doc.id).id, self.doc.id)

    def test_failed_row_delete_keeps_backing_file(self) -> None:
        key = document_key(self.doc.stored_name)
        with patch.object(self.service.documents, "delete", side_effect=RuntimeError("commit failed")):
            with self.assertRaises(RuntimeError):
                self.service.delete(self.alice, self.doc.id)
        self.assertTrue(self.blobs.exists(key))

    def test_download_path_points_at_stored_bytes(self) -> None:
        document, path = self.service.download_path(self.alice, self.doc.id)
        self.assertEqual(path.read_bytes(), b"hello world")
        self.assertEqual(document.id, self.doc.id)


class TestSearchAndList(DocumentServiceTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.report = self.service.store_single(self.alice.id, _file("Quarterly-Report.txt", b"q" * 40), {})
        self.logo = self.service.store_single(self.alice.id, _file("logo.png", b"p" * 5, "image/png"), {})
        self.bobs = self.service.store_single(self.bob.id, _file("report-bob.txt", b"b" * 10), {})

    def test_non_admin_only_sees_own_documents(self) -> None:
        ids = {d.id for d in self.service.search(self.alice, DocumentFilters())}
        self.assertEqual(ids, {self.report.id, self.logo.id})

    def test_admin_sees_everything(self) -> None:
        ids = {d.id for d in self.service.search(self.admin, DocumentFilters())}
        self.assertEqual(ids, {self.report.id, self.logo.id, self.bobs.id})

    def test_query_matches_name_case_insensitively(self) -> None:
        results = self.service.search(self.admin, DocumentFilters(query="REPORT"))
        self.assertEqual({d.id for d in results}, {self.report.id, self.bobs.id})

    def test_query_matches_owner_email(self) -> None:
        results = self.service.search(self.admin, DocumentFilters(query="bob@"))
        self.assertEqual([d.id for d in results], [self.bobs.id])

    def test_type_and_size_filters(self) -> None:
        by_type = self.service.search(self.alice, DocumentFilters(mime_type="image/png"))
        self.assertEqual([d.id for d in by_type], [self.logo.id])
        by_size = self.service.search(self.admin, DocumentFilters(min_size=6, max_size=20))
        self.assertEqual([d.id for d in by_size], [self.bobs.id])

    def test_date_window(self) -> None:
        future = datetime.now(UTC) + timedelta(days=1)
        self.assertEqual(self.service.search(self.admin, DocumentFilters(created_from=future)), [])
        past = datetime.now(UTC) - timedelta(days=1)
        self.assertEqual(len(self.service.search(self.admin, DocumentFilters(created_from=past))), 3)

    def test_date_window_with_non_utc_offset(self) -> None:
        plus_five = timezone(timedelta(hours=5))
        an_hour_ago = (datetime.now(UTC) - timedelta(hours=1)).astimezone(plus_five)
        in_an_hour = (datetime.now(UTC) + timedelta(hours=1)).astimezone(plus_five)
        self.assertEqual(
            len(self.service.search(self.admin, DocumentFilters(created_from=an_hour_ago))), 3
        )
        self.assertEqual(self.service.search(self.admin, DocumentFilters(created_from=in_an_hour)), [])
        self.assertEqual(
            len(self.service.search(self.admin, DocumentFilters(created_to=in_an_hour))), 3
        )

    def test_list_page_is_newest_first_with_total(self) -> None:
        rows, total = self.service.list_page(self.alice, page=1, limit=1)
        self.assertEqual(total, 2)
        self.assertEqual([d.id for d in rows], [self.logo.id])
        rows, _ = self.service.list_page(self.alice, page=2, limit=1)
        self.assertEqual([d.id for d in rows], [self.report.id])


class TestHelpers(unittest.TestCase):
    def test_parse_metadata(self) -> None:
        self.assertEqual(parse_metadata(None), {})
        self.assertEqual(parse_metadata('{"a": 1}'), {"a": 1})
        with self.assertRaises(ValidationError):
            parse_metadata("{not json")
        with self.assertRaises(ValidationError):
            parse_metadata("[1, 2]")

    def test_as_utc_normalizes_offsets_and_naive_values(self) -> None:
        offset = datetime(2026, 5, 1, 17, 0, tzinfo=timezone(timedelta(hours=5)))
        self.assertEqual(as_utc(offset), datetime(2026, 5, 1, 12, 0, tzinfo=UTC))
        self.assertEqual(as_utc(offset).tzinfo, UTC)
        self.assertEqual(as_utc(datetime(2026, 5, 1, 12, 0)), datetime(2026, 5, 1, 12, 0, tzinfo=UTC))
        self.assertIsNone(as_utc(None))

    def test_sanitize_file_name(self) -> None:
        self.assertEqual(sanitize_file_name("my report (final).pdf"), "my_report__final_.pdf")
        self.assertEqual(sanitize_file_name("..\\..\\win.ini"), "win.ini")
        self.assertEqual(sanitize_file_name(""), "upload.bin")


if __name__ == "__main__":
    unittest.main()
