"""Blob storage for document files and upload chunks, addressed by relative keys."""

import hashlib
import logging
import os
import re
import secrets
import time
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from app.core.errors import StorageError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_file_name(name: str) -> str:
    """Keep only the base name with [a-zA-Z0-9.-]; everything else becomes '_'."""
    base = Path((name or "").replace("\\", "/")).name
    cleaned = _UNSAFE_NAME_CHARS.sub("_", base).lstrip(".")
    return cleaned[:200] or "upload.bin"


def make_stored_name(original_name: str) -> str:
    """Unique on-disk name: millisecond timestamp, random suffix, sanitized original."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}-{sanitize_file_name(original_name)}"


def document_key(stored_name: str) -> str:
    return f"files/{stored_name}"


def chunk_key(session_id: str, index: int) -> str:
    return f"chunks/{session_id}/{index}.part"


class BlobStore(Protocol):
    def put(self, key: str, data: bytes) -> int: ...

    def read(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...

    def exists(self, key: str) -> bool: ...

    def assemble(self, key: str, parts: Iterable[str]) -> int: ...

    def checksum(self, key: str) -> str: ...

    def size(self, key: str) -> int: ...

    def local_path(self, key: str) -> Path: ...


class LocalBlobStore:
    """
    Blobs on local disk under root. Keys are relative POSIX paths.

    OSErrors are logged with the path and re-raised as StorageError with a generic message.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def local_path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root != path and self.root not in path.parents:
            raise StorageError()
        return path

    def put(self, key: str, data: bytes) -> int:
        """Write data to key, replacing any existing blob. Returns bytes written."""
        path = self.local_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error("Blob write failed for %s: %s", path, e)
            raise StorageError() from e
        return len(data)

    def read(self, key: str) -> bytes:
        path = self.local_path(key)
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error("Blob read failed for %s: %s", path, e)
            raise StorageError() from e

    def exists(self, key: str) -> bool:
        return self.local_path(key).is_file()

    def delete(self, key: str) -> None:
        """Remove the blob; a blob that is already gone is not an error."""
        path = self.local_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Blob delete failed for %s: %s", path, e)
            raise StorageError() from e
        parent = path.parent
        if parent != self.root and parent.name and key.startswith("chunks/"):
            try:
                parent.rmdir()
            except OSError:
                pass  # other chunks of the session still there

    def assemble(self, key: str, parts: Iterable[str]) -> int:
        """
        Concatenate the part blobs, in the given order, into key.

        Writes to a temporary sibling and renames it into place, so key either holds the full
        result or does not exist. The parts are left untouched. Returns the assembled size.
        """
        target = self.local_path(key)
        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        total = 0
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("wb") as out:
                for part in parts:
                    data = self.local_path(part).read_bytes()
                    out.write(data)
                    total += len(data)
            os.replace(tmp, target)
        except OSError as e:
            logger.error("Assembling %s failed: %s", target, e)
            tmp.unlink(missing_ok=True)
            raise StorageError() from e
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        return total

    def checksum(self, key: str) -> str:
        """Hex SHA-256 over the whole stored file, read in one piece."""
        return hashlib.sha256(self.read(key)).hexdigest()

    def size(self, key: str) -> int:
        path = self.local_path(key)
        try:
            return path.stat().st_size
        except OSError as e:
            logger.error("Blob stat failed for %s: %s", path, e)
            raise StorageError() from e
