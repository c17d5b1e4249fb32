from datetime import datetime, timedelta, timezone
from typing import Any, Dict
import secrets

from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext

"""
Security utilities for authentication.

Responsibilities:
- Password hashing and verification
- Access / refresh token creation and validation
- Short-lived service tokens for calls to the AI service
- Random one-time tokens (email verification, password reset)
"""

# Password hashing context using bcrypt.
# `deprecated="auto"` allows smooth upgrades of hashing schemes in the future.
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
SERVICE_NAME = "oracyn-backend"


class TokenError(Exception):
    """Base class for token validation failures."""


class TokenExpired(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


# ------------------------
# Password utilities
# ------------------------
def hash_password(password: str) -> str:
    """
    Hash a plain-text password using a secure one-way hashing algorithm.
    The returned hash is safe to store in the database.
    """
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plain-text password against a previously hashed password.
    Returns True if the password matches, otherwise False.
    """
    return pwd_context.verify(plain, hashed)


# ------------------------
# User tokens
# ------------------------
def _user_claims(user) -> Dict[str, Any]:
    return {
        "sub": str(user.id),
        "email": user.email,
        "username": user.username,
        "is_verified": bool(user.is_verified),
    }


def _encode(claims: Dict[str, Any], secret: str, algorithm: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = dict(claims)
    payload["iat"] = now
    payload["exp"] = now + expires_delta
    return jwt.encode(payload, secret, algorithm=algorithm)


def create_access_token(user, settings) -> str:
    """
    Create a signed, short-lived access token for `user`.
    """
    claims = _user_claims(user)
    claims.update(type=ACCESS_TOKEN, iss=settings.JWT_ISSUER, aud=settings.JWT_AUDIENCE)
    return _encode(
        claims,
        settings.JWT_SECRET,
        settings.JWT_ALGORITHM,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user, settings) -> str:
    """
    Create a long-lived refresh token. It is signed with its own secret so
    an access token can never be replayed as a refresh token.
    """
    claims = _user_claims(user)
    claims.update(type=REFRESH_TOKEN, iss=settings.JWT_ISSUER, aud=settings.JWT_AUDIENCE)
    return _encode(
        claims,
        settings.JWT_REFRESH_SECRET,
        settings.JWT_ALGORITHM,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def _decode(token: str, secret: str, settings, expected_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError as e:
        raise TokenExpired("Token has expired") from e
    except JWTError as e:
        # Covers invalid signature, wrong issuer/audience, or malformed payload
        raise TokenInvalid(str(e)) from e

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise TokenInvalid(f"Not a valid {expected_type} token")
    return payload


def decode_access_token(token: str, settings) -> Dict[str, Any]:
    """
    Decode and validate an access token.

    Raises `TokenExpired` or `TokenInvalid` so callers can tell the two
    apart.
    """
    return _decode(token, settings.JWT_SECRET, settings, ACCESS_TOKEN)


def decode_refresh_token(token: str, settings) -> Dict[str, Any]:
    return _decode(token, settings.JWT_REFRESH_SECRET, settings, REFRESH_TOKEN)


# ------------------------
# Service-to-service tokens
# ------------------------
def create_service_token(secret: str, ttl_minutes: int, algorithm: str = "HS256") -> str:
    """
    Create the bearer token attached to every AI service request.
    A fresh token is minted per request.
    """
    return _encode({"service": SERVICE_NAME}, secret, algorithm, timedelta(minutes=ttl_minutes))


def decode_service_token(token: str, secret: str, algorithm: str = "HS256") -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except ExpiredSignatureError as e:
        raise TokenExpired("Service token has expired") from e
    except JWTError as e:
        raise TokenInvalid(str(e)) from e

    if not payload.get("service"):
        raise TokenInvalid("Missing service claim")
    return payload


def generate_one_time_token() -> str:
    """URL-safe random token for email verification and password reset."""
    return secrets.token_urlsafe(32)
