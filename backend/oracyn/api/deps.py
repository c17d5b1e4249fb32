# oracyn/api/deps.py
"""
Request dependencies.

Everything a route needs (database session, AI client, storage,
orchestrators, the authenticated user) is resolved here from the objects
the application factory placed on `app.state`. Tests swap any of them with
`app.dependency_overrides`.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from oracyn.core.config import Settings
from oracyn.core.errors import AuthenticationFailed, Forbidden
from oracyn.core.security import (
    TokenExpired,
    TokenInvalid,
    decode_access_token,
    decode_service_token,
)
from oracyn.db.models import User
from oracyn.repositories.user_repository import UserRepository
from oracyn.services.ai_client import AIServiceClient
from oracyn.services.background import ChatLocks, TaskTracker
from oracyn.services.chart_service import ChartService
from oracyn.services.chat_service import ChatService
from oracyn.services.upload_service import UploadService

ACCESS_COOKIE_NAME = "accessToken"

# OAuth2 bearer token configuration.
# auto_error=False so a missing token is reported with our own error code.
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    auto_error=False
)


@dataclass
class Identity:
    """Minimal caller identity attached to `request.state`."""
    user_id: int
    email: str
    is_verified: bool


# ---------------------------------------------------------------------
# Application-scoped objects
# ---------------------------------------------------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request):
    """Creates a new DB session per request and ensures proper cleanup."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_ai_client(request: Request) -> AIServiceClient:
    return request.app.state.ai_client


def get_storage(request: Request):
    return request.app.state.storage


def get_chat_locks(request: Request) -> ChatLocks:
    return request.app.state.chat_locks


def get_task_tracker(request: Request) -> TaskTracker:
    return request.app.state.task_tracker


def get_session_factory(request: Request):
    return request.app.state.session_factory


# ---------------------------------------------------------------------
# Orchestrators
# ---------------------------------------------------------------------
def get_chat_service(
    db: Session = Depends(get_db),
    ai_client=Depends(get_ai_client),
    locks: ChatLocks = Depends(get_chat_locks),
    storage=Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> ChatService:
    return ChatService(db, ai_client, locks, settings.CHAT_HISTORY_LIMIT, storage=storage)


def get_upload_service(
    db: Session = Depends(get_db),
    ai_client=Depends(get_ai_client),
    storage=Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> UploadService:
    return UploadService(db, ai_client, storage, settings)


def get_chart_service(
    db: Session = Depends(get_db),
    ai_client=Depends(get_ai_client),
) -> ChartService:
    return ChartService(db, ai_client)


# ---------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------
def _extract_token(request: Request, bearer: Optional[str]) -> Optional[str]:
    # Authorization header first, then the access-token cookie
    return bearer or request.cookies.get(ACCESS_COOKIE_NAME)


def authenticate(token: Optional[str], db: Session, settings: Settings) -> User:
    """
    Resolve a bearer token to an active user.

    Each failure has its own code so clients can tell a missing token from
    an expired one and refresh instead of logging out.
    """
    if not token:
        raise AuthenticationFailed("Access denied. No token provided.", code="NO_TOKEN")

    try:
        claims = decode_access_token(token, settings)
    except TokenExpired:
        raise AuthenticationFailed("Access token has expired.", code="TOKEN_EXPIRED")
    except TokenInvalid:
        raise AuthenticationFailed("Access denied. Invalid token.", code="INVALID_TOKEN")

    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationFailed("Access denied. Invalid token.", code="INVALID_TOKEN")

    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise AuthenticationFailed("Access denied. User not found.", code="USER_NOT_FOUND")
    if not user.is_active:
        raise AuthenticationFailed("Access denied. Account is deactivated.", code="ACCOUNT_DEACTIVATED")
    return user


# ---------------------------------------------------------------------
# Dependency: Get current authenticated user (REQUIRED)
# ---------------------------------------------------------------------
def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    user = authenticate(_extract_token(request, token), db, settings)
    request.state.identity = Identity(user.id, user.email, bool(user.is_verified))
    return user


# ---------------------------------------------------------------------
# Dependency: Get current user (OPTIONAL)
# - Used for endpoints with mixed public/private behaviour
# - Returns None if token is missing or invalid
# ---------------------------------------------------------------------
def get_current_user_optional(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    raw = _extract_token(request, token)
    if not raw:
        return None
    try:
        user = authenticate(raw, db, settings)
    except AuthenticationFailed:
        return None
    request.state.identity = Identity(user.id, user.email, bool(user.is_verified))
    return user


def require_verified_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_verified:
        raise Forbidden(
            "Email verification required. Please verify your email to access this resource.",
            code="EMAIL_VERIFICATION_REQUIRED",
        )
    return current_user


# ---------------------------------------------------------------------
# Dependency: calls made by the AI service itself
# ---------------------------------------------------------------------
def require_service_token(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
) -> dict:
    if not token:
        raise AuthenticationFailed("Service token required.", code="NO_TOKEN")
    try:
        return decode_service_token(token, settings.ai_service_secret, settings.JWT_ALGORITHM)
    except TokenExpired:
        raise AuthenticationFailed("Service token has expired.", code="TOKEN_EXPIRED")
    except TokenInvalid:
        raise AuthenticationFailed("Invalid service token.", code="INVALID_TOKEN")
