"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    TokenPairOut,
    UserOut,
)
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
from app.schemas.health import HealthResponse

__all__ = [
    "AuthResponse",
    "ChunkUploadResponse",
    "CompleteUploadRequest",
    "DocumentListResponse",
    "DocumentOut",
    "HealthResponse",
    "InitUploadRequest",
    "InitUploadResponse",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "MultipleUploadResponse",
    "Pagination",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "RefreshRequest",
    "RefreshResponse",
    "RegisterRequest",
    "SearchResponse",
    "TokenPairOut",
    "UploadConfigResponse",
    "UploadResult",
    "UserOut",
]
