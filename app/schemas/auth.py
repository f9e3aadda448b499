"""Request/response schemas for auth endpoints."""

from datetime import datetime

from pydantic import Field

from app.schemas.base import CamelModel


# Request bodies stay permissive; field rules live in the Authenticator so every violation
# is reported together with field-level detail.
class RegisterRequest(CamelModel):
    """New account credentials and profile."""

    email: str = Field(default="", description="Email address (case-insensitive, unique)")
    password: str = Field(default="", description="8+ chars with upper, lower and a digit")
    name: str = Field(default="", description="Display name (2-50 characters)")
    role: str = Field(default="user", description="'admin' or 'user'")


class LoginRequest(CamelModel):
    """Credentials for login."""

    email: str = Field(default="", description="Email address")
    password: str = Field(default="", description="Password")


class RefreshRequest(CamelModel):
    refresh_token: str | None = Field(default=None, description="Refresh token from login")


class LogoutRequest(CamelModel):
    refresh_token: str | None = Field(
        default=None, description="Refresh token to revoke (optional)"
    )


class ProfileUpdateRequest(CamelModel):
    name: str | None = Field(default=None, description="New display name (2-50 characters)")


class UserOut(CamelModel):
    """Account as returned to clients (no password hash or lockout state)."""

    id: int
    email: str
    name: str
    role: str
    created_at: datetime | None = None
    last_login_at: datetime | None = None


class TokenPairOut(CamelModel):
    access_token: str = Field(..., description="Short-lived JWT access token")
    refresh_token: str = Field(..., description="Long-lived, revocable refresh token")
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class AuthResponse(CamelModel):
    """Response for register and login."""

    message: str
    user: UserOut
    tokens: TokenPairOut


class RefreshResponse(CamelModel):
    access_token: str
    expires_in: int


class ProfileResponse(CamelModel):
    message: str | None = None
    user: UserOut


class MessageResponse(CamelModel):
    message: str
