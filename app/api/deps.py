"""FastAPI dependencies: app-owned collaborators, per-request services, and bearer auth."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.database import get_db
from app.models import Account
from app.repositories import SqlAccountRepository, SqlDocumentRepository, SqlRefreshTokenRepository
from app.services.authenticator import Authenticator, verify_access_token
from app.services.documents import DocumentService
from app.services.storage import BlobStore
from app.services.upload_sessions import UploadSessionStore
from app.services.uploads import ChunkedUploadAssembler

security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_upload_sessions(request: Request) -> UploadSessionStore:
    return request.app.state.upload_sessions


def get_authenticator(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Authenticator:
    return Authenticator(SqlAccountRepository(db), SqlRefreshTokenRepository(db), settings)


def get_document_service(
    db: Annotated[Session, Depends(get_db)],
    blobs: Annotated[BlobStore, Depends(get_blob_store)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> DocumentService:
    return DocumentService(SqlDocumentRepository(db), blobs, settings)


def get_assembler(
    sessions: Annotated[UploadSessionStore, Depends(get_upload_sessions)],
    blobs: Annotated[BlobStore, Depends(get_blob_store)],
    documents: Annotated[DocumentService, Depends(get_document_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ChunkedUploadAssembler:
    return ChunkedUploadAssembler(sessions, blobs, documents, settings)


def get_current_account_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> int:
    """Dependency: require a valid Bearer access token. 401 if missing, 403 if invalid."""
    token = credentials.credentials if credentials is not None else None
    return verify_access_token(token, settings)


def get_current_account(
    account_id: Annotated[int, Depends(get_current_account_id)],
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
) -> Account:
    """Dependency: the active account behind the access token. 404 if it no longer exists."""
    return authenticator.get_profile(account_id)
