"""In-memory registry of chunked upload sessions, owned by the application and injected."""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class StoredChunk:
    location: str
    size: int


@dataclass
class UploadSession:
    """
    One in-progress chunked upload.

    chunks is sparse until every index in [0, total_chunks) is filled. lock serializes
    chunk writes, completion, cancellation and sweeping of this session.
    """

    id: str
    file_name: str
    file_size: int
    total_chunks: int
    owner_id: int
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
    chunks: dict[int, StoredChunk] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def first_missing_index(self) -> int | None:
        for i in range(self.total_chunks):
            if i not in self.chunks:
                return i
        return None

    @property
    def received_bytes(self) -> int:
        return sum(c.size for c in self.chunks.values())


def new_session_id() -> str:
    return str(uuid.uuid4())


class UploadSessionStore:
    """Thread-safe map of session id to UploadSession. Not durable across restarts."""

    def __init__(self) -> None:
        self._sessions: dict[str, UploadSession] = {}
        self._lock = threading.Lock()

    def add(self, session: UploadSession) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def get(self, session_id: str) -> UploadSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def holds(self, session: UploadSession) -> bool:
        """True while this exact session object is still registered under its id."""
        with self._lock:
            return self._sessions.get(session.id) is session

    def discard(self, session: UploadSession) -> bool:
        """Remove the session only if it is still the registered one. Returns True if removed."""
        with self._lock:
            if self._sessions.get(session.id) is session:
                del self._sessions[session.id]
                return True
            return False

    def snapshot(self) -> list[UploadSession]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
