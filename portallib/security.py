"""
Master-Data Portal Security Module

Bearer JWT verification. Tokens are issued by the portal's identity
service; this backend only checks signature, issuer, audience and expiry.

Auth Enforcement Modes (via AUTH_ENFORCEMENT setting):
    - "optional": Unauthenticated requests get a default anonymous context
    - "required": All requests must have valid JWT (401 on missing/invalid token)

Usage:
    router = APIRouter(dependencies=[Depends(get_current_user)])
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .config import settings
from .types import UserContext

logger = logging.getLogger(__name__)

# auto_error=False so optional mode can fall back to anonymous
security = HTTPBearer(auto_error=False)

ANONYMOUS_USER_ID = "anonymous"
ANONYMOUS_EMAIL = "anonymous@mdportal.local"


class AuthError(HTTPException):
    """Authentication error exception."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=401, detail=detail)


def create_token(
    sub: str,
    email: str,
    *,
    role: Optional[str] = None,
    expires_minutes: int = 60,
) -> str:
    """
    Create a signed JWT (tooling and tests; production tokens come from the
    identity service).
    """
    now = datetime.now(tz=timezone.utc)
    payload = {
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
        "sub": sub,
        "email": email,
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded payload dict if valid, None otherwise
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        return None


def _user_from_payload(payload: dict) -> UserContext:
    return UserContext(
        user_id=str(payload.get("sub", "")),
        email=payload.get("email", ""),
        role=payload.get("role"),
    )


async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UserContext:
    """
    Current user, honoring AUTH_ENFORCEMENT.

    Raises:
        AuthError: If auth is required and no valid token was provided
    """
    payload = decode_token(creds.credentials) if creds is not None else None
    if payload:
        return _user_from_payload(payload)

    if settings.auth_enforcement == "required":
        raise AuthError("Authentication required")

    return UserContext(user_id=ANONYMOUS_USER_ID, email=ANONYMOUS_EMAIL)

