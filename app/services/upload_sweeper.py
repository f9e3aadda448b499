"""Upload session retention: discard sessions (and their chunks) older than the max age."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from app.core.clock import utcnow
from app.services.storage import BlobStore
from app.services.upload_sessions import UploadSessionStore
from app.services.uploads import discard_session_chunks

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def sweep_expired_sessions(
    sessions: UploadSessionStore,
    blobs: BlobStore,
    max_age: timedelta,
    now: datetime | None = None,
) -> int:
    """
    Discard every session created before now - max_age. Returns the number discarded.

    Iterates a snapshot. A session whose lock is held (chunk write or completion in flight)
    is skipped and picked up by the next sweep. Idempotent: safe to run repeatedly.
    """
    cutoff = (now or utcnow()) - max_age
    discarded = 0
    for session in sessions.snapshot():
        if session.created_at >= cutoff:
            continue
        if not session.lock.acquire(blocking=False):
            logger.debug("Upload session %s busy; skipping this sweep", session.id)
            continue
        try:
            if sessions.discard(session):
                discard_session_chunks(session, blobs)
                discarded += 1
        finally:
            session.lock.release()

    if discarded > 0:
        logger.info(
            "Upload sweep: cutoff=%s, sessions_discarded=%s",
            cutoff.isoformat(),
            discarded,
        )
    return discarded


async def run_sweeper(
    sessions: UploadSessionStore,
    blobs: BlobStore,
    settings: "Settings",
) -> None:
    """Sweep on a fixed interval until cancelled. Errors are logged and the loop keeps going."""
    max_age = timedelta(seconds=settings.UPLOAD_SESSION_MAX_AGE_SECONDS)
    while True:
        await asyncio.sleep(settings.UPLOAD_SWEEP_INTERVAL_SECONDS)
        try:
            await asyncio.to_thread(sweep_expired_sessions, sessions, blobs, max_age)
        except Exception as e:
            logger.exception("Upload sweep failed: %s", e)
