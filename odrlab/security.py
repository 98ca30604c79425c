"""
Password hashing, JWT issuance / verification, and auth cookie helpers.
"""

import base64
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Response
from jose import ExpiredSignatureError, JWTError, jwt

from odrlab.config import Settings
from odrlab.errors import ConfigurationError

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"
SESSION_COOKIE = "odrindia_session"

ACCESS_AUDIENCE = "odrindia-users"
REFRESH_AUDIENCE = "odrindia-refresh"

# Claim names that have carried the user id across token generations
USER_ID_CLAIMS = ("id", "userId", "sub")

# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


class InvalidTokenError(Exception):
    """Token is malformed, tampered with, or issued for another audience."""


class TokenExpiredError(InvalidTokenError):
    """Token signature is valid but its ``exp`` claim has passed."""


# ═══════════════════════════════════════════════════════════════
#  Passwords
# ═══════════════════════════════════════════════════════════════

def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt."""
    hashed = bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Check a plain-text password against a stored hash; False for password-less accounts."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


# ═══════════════════════════════════════════════════════════════
#  Tokens
# ═══════════════════════════════════════════════════════════════

def _require_secret(settings: Settings) -> str:
    if not settings.SECRET_KEY:
        raise ConfigurationError("SECRET_KEY is not configured")
    return settings.SECRET_KEY


def _token_claims(user) -> Dict[str, Any]:
    return {
        "sub": str(user.id),
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "userRole": user.user_role.value,
    }


def _encode(claims: Dict[str, Any], settings: Settings, audience: str, lifetime: timedelta) -> str:
    secret = _require_secret(settings)
    now = datetime.now(timezone.utc)
    to_encode = dict(claims)
    to_encode.update({
        "iat": now,
        "exp": now + lifetime,
        "iss": settings.TOKEN_ISSUER,
        "aud": audience,
    })
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(user, settings: Settings) -> str:
    """Create a short-lived access JWT for ``user``."""
    return _encode(
        _token_claims(user), settings, ACCESS_AUDIENCE,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user, settings: Settings) -> str:
    """Create a long-lived refresh JWT for ``user``."""
    return _encode(
        _token_claims(user), settings, REFRESH_AUDIENCE,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def decode_token(token: str, settings: Settings, audience: str = ACCESS_AUDIENCE) -> Dict[str, Any]:
    """
    Verify signature, expiry and audience, returning the claims.
    Raises TokenExpiredError / InvalidTokenError, or ConfigurationError
    when no secret is configured.
    """
    secret = _require_secret(settings)
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[settings.ALGORITHM],
            audience=audience,
            options={"verify_iss": False},
        )
    except ExpiredSignatureError as e:
        raise TokenExpiredError("Token expired") from e
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e


def extract_user_id(payload: Dict[str, Any]) -> Optional[int]:
    """Return the user id from the first legacy claim name that holds one."""
    for claim in USER_ID_CLAIMS:
        value = payload.get(claim)
        if value in (None, ""):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    return None


# ═══════════════════════════════════════════════════════════════
#  Cookies
# ═══════════════════════════════════════════════════════════════

def _cookie_options(settings: Settings) -> Dict[str, Any]:
    if settings.is_production:
        return {"httponly": True, "secure": True, "samesite": "none", "path": "/"}
    return {"httponly": True, "secure": False, "samesite": "lax", "path": "/"}


def set_auth_cookies(response: Response, user, settings: Settings) -> None:
    """Attach access, refresh and legacy session cookies to a response."""
    access_token = create_access_token(user, settings)
    refresh_token = create_refresh_token(user, settings)
    options = _cookie_options(settings)

    response.set_cookie(
        key=ACCESS_COOKIE,
        value=access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **options,
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        **options,
    )

    # Legacy base64-JSON session cookie still read by older frontends
    now = datetime.now(timezone.utc)
    session_data = {
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "userRole": user.user_role.value,
        },
        "exp": (now + timedelta(hours=settings.SESSION_COOKIE_HOURS)).isoformat(),
        "iat": now.isoformat(),
    }
    response.set_cookie(
        key=SESSION_COOKIE,
        value=base64.b64encode(json.dumps(session_data).encode("utf-8")).decode("ascii"),
        max_age=settings.SESSION_COOKIE_HOURS * 60 * 60,
        **options,
    )
    logger.info(f"Authentication cookies set for user {user.id}")


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    options = _cookie_options(settings)
    for key in (ACCESS_COOKIE, REFRESH_COOKIE, SESSION_COOKIE):
        response.delete_cookie(key=key, **options)
