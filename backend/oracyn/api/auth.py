# oracyn/api/auth.py
"""
Authentication and account routes.

Responsibilities:
- Registration, login, logout
- Access token refresh from a long-lived refresh token (httpOnly cookie)
- Profile and password management
- Email verification and password reset tokens
- Account deactivation (soft delete)
"""

from datetime import timedelta
import time
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from oracyn.api.deps import (
    get_current_user,
    get_db,
    get_settings,
    require_verified_user,
)
from oracyn.core.config import Settings
from oracyn.core.errors import AuthenticationFailed, Conflict, ValidationFailed
from oracyn.core.logging import get_logger
from oracyn.core.security import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    generate_one_time_token,
    hash_password,
    verify_password,
)
from oracyn.db.models import User, as_utc, utcnow
from oracyn.repositories.user_repository import UserRepository
from oracyn.schemas.pydantic_schemas import (
    EmailRequest,
    MessageResponse,
    PasswordChange,
    PasswordReset,
    ProfileUpdate,
    RefreshRequest,
    TokenRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
)

LOGGER = get_logger(__name__)

# Router configuration for all auth-related endpoints
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
        path="/api/auth",
    )


def _clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        path="/api/auth",
    )


def _expired(expires_at) -> bool:
    return expires_at is None or as_utc(expires_at) < utcnow()


def _issue_tokens(user: User, response: Response, settings: Settings) -> TokenResponse:
    refresh_token = create_refresh_token(user, settings)
    _set_refresh_cookie(response, refresh_token, settings)
    return TokenResponse(
        access_token=create_access_token(user, settings),
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


# ---------------------------------------------------------------------
# User Registration
# - Validates unique email and username
# - Hashes password before storing
# - Issues an email verification token
# ---------------------------------------------------------------------
@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    users = UserRepository(db)
    if users.get_by_email(data.email):
        raise Conflict("Email already exists", code="EMAIL_EXISTS")
    if users.get_by_username(data.username):
        raise Conflict("Username already exists", code="USERNAME_EXISTS")

    user = users.create(
        email=data.email,
        username=data.username,
        hashed_password=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        profession=data.profession,
        bio=data.bio,
        verification_token=generate_one_time_token(),
        verification_token_expires=utcnow() + timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
    )
    # Email delivery is not part of this service
    LOGGER.info(f"Registered user {user.id}; verification token issued")
    return user


# ---------------------------------------------------------------------
# User Login
# - Verifies credentials
# - Issues access token + refresh token (cookie and body)
# ---------------------------------------------------------------------
@router.post("/login", response_model=TokenResponse)
def login_user(
    data: UserLogin,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    users = UserRepository(db)
    user = users.get_by_email(data.email)

    if not user or not verify_password(data.password, user.hashed_password):
        raise AuthenticationFailed("Invalid email or password", code="INVALID_CREDENTIALS")
    if not user.is_active:
        raise AuthenticationFailed("Account is deactivated.", code="ACCOUNT_DEACTIVATED")

    users.update(user, last_login_at=utcnow())
    return _issue_tokens(user, response, settings)


# ---------------------------------------------------------------------
# Token refresh
# - Refresh token from the httpOnly cookie, or from the body
# - Any failure is terminal: the client has to log in again
# ---------------------------------------------------------------------
@router.post("/refresh", response_model=TokenResponse)
def refresh_tokens(
    request: Request,
    response: Response,
    data: Optional[RefreshRequest] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    token = (data.refresh_token if data else None) or request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not token:
        raise AuthenticationFailed("Refresh token required.", code="INVALID_REFRESH_TOKEN")

    try:
        claims = decode_refresh_token(token, settings)
        user = UserRepository(db).get_by_id(int(claims["sub"]))
    except (TokenError, ValueError) as e:
        LOGGER.info(f"Refresh rejected: {e}")
        user = None

    if user is None or not user.is_active:
        # Built by hand: a raised error would drop the cookie deletion
        failure = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Invalid refresh token. Please log in again.",
                     "code": "INVALID_REFRESH_TOKEN"},
            headers={"WWW-Authenticate": "Bearer"},
        )
        _clear_refresh_cookie(failure, settings)
        return failure

    return _issue_tokens(user, response, settings)


@router.post("/logout", response_model=MessageResponse)
def logout_user(
    response: Response,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    _clear_refresh_cookie(response, settings)
    return MessageResponse(message="Logged out successfully.")


# ---------------------------------------------------------------------
# Current user / profile
# ---------------------------------------------------------------------
@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserResponse)
def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changes = data.model_dump(exclude_unset=True)
    return UserRepository(db).update(current_user, **changes)


@router.put("/password", response_model=MessageResponse)
def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(data.current_password, current_user.hashed_password):
        raise ValidationFailed("Current password is incorrect", code="INVALID_PASSWORD")

    UserRepository(db).update(current_user, hashed_password=hash_password(data.new_password))
    return MessageResponse(message="Password changed successfully.")


# ---------------------------------------------------------------------
# Email verification / password reset
# ---------------------------------------------------------------------
@router.post("/verify-email", response_model=MessageResponse)
def verify_email(data: TokenRequest, db: Session = Depends(get_db)):
    users = UserRepository(db)
    user = users.get_by_verification_token(data.token)
    if not user or _expired(user.verification_token_expires):
        raise ValidationFailed("Invalid or expired verification token", code="INVALID_TOKEN")

    users.update(user, is_verified=True, verification_token=None, verification_token_expires=None)
    return MessageResponse(message="Email verified successfully.")


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    data: EmailRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    users = UserRepository(db)
    user = users.get_by_email(data.email)
    if user and user.is_active and not user.is_verified:
        users.update(
            user,
            verification_token=generate_one_time_token(),
            verification_token_expires=utcnow() + timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
        )
        LOGGER.info(f"Verification token re-issued for user {user.id}")
    # Same answer whether or not the account exists
    return MessageResponse(message="If the account exists, a verification email has been sent.")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    data: EmailRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    users = UserRepository(db)
    user = users.get_by_email(data.email)
    if user and user.is_active:
        users.update(
            user,
            reset_token=generate_one_time_token(),
            reset_token_expires=utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        )
        LOGGER.info(f"Password reset token issued for user {user.id}")
    return MessageResponse(message="If the account exists, a password reset email has been sent.")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(data: PasswordReset, db: Session = Depends(get_db)):
    users = UserRepository(db)
    user = users.get_by_reset_token(data.token)
    if not user or not user.is_active or _expired(user.reset_token_expires):
        raise ValidationFailed("Invalid or expired reset token", code="INVALID_TOKEN")

    users.update(
        user,
        hashed_password=hash_password(data.password),
        reset_token=None,
        reset_token_expires=None,
    )
    return MessageResponse(message="Password has been reset.")


# ---------------------------------------------------------------------
# Account deactivation (soft delete, verified users only)
# ---------------------------------------------------------------------
@router.delete("/account", response_model=MessageResponse)
def delete_account(
    response: Response,
    current_user: User = Depends(require_verified_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    UserRepository(db).deactivate(current_user, stamp=int(time.time() * 1000))
    _clear_refresh_cookie(response, settings)
    LOGGER.info(f"Deactivated account {current_user.id}")
    return MessageResponse(message="Account deactivated successfully.")
