"""Register, login, token refresh, logout and profile endpoints."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, status

from app.api.deps import get_authenticator, get_current_account_id
from app.models import Account
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
from app.services.authenticator import Authenticator, TokenPair

router = APIRouter()


def _auth_response(message: str, account: Account, tokens: TokenPair) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=UserOut.model_validate(account),
        tokens=TokenPairOut(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
        ),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
) -> AuthResponse:
    """
    Create an account and return it with an access/refresh token pair.

    400 with per-field details when the input is invalid; 409 when the email is taken.
    """
    account, tokens = authenticator.register(body.email, body.password, body.name, body.role)
    return _auth_response("User registered successfully", account, tokens)


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
) -> AuthResponse:
    """
    Authenticate with email and password; returns the user and a token pair.
    Include the access token in the Authorization header as: Bearer <accessToken>

    After five consecutive failures the account is locked for 30 minutes (423).
    """
    account, tokens = authenticator.login(body.email, body.password)
    return _auth_response("Login successful", account, tokens)


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    body: RefreshRequest,
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
) -> RefreshResponse:
    """Exchange a valid, unrevoked refresh token for a new access token."""
    access_token, expires_in = authenticator.refresh(body.refresh_token)
    return RefreshResponse(access_token=access_token, expires_in=expires_in)


@router.post("/logout", response_model=MessageResponse)
def logout(
    _account_id: Annotated[int, Depends(get_current_account_id)],
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
    body: Annotated[LogoutRequest | None, Body()] = None,
) -> MessageResponse:
    """Revoke the given refresh token, if any."""
    authenticator.logout(body.refresh_token if body is not None else None)
    return MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    account_id: Annotated[int, Depends(get_current_account_id)],
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
) -> ProfileResponse:
    account = authenticator.get_profile(account_id)
    return ProfileResponse(user=UserOut.model_validate(account))


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    body: ProfileUpdateRequest,
    account_id: Annotated[int, Depends(get_current_account_id)],
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
) -> ProfileResponse:
    account = authenticator.update_profile(account_id, body.name)
    return ProfileResponse(
        message="Profile updated successfully",
        user=UserOut.model_validate(account),
    )
