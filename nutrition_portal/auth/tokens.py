"""
Nutrition Portal - Bearer Token Management

Creates and validates JWT bearer tokens carrying:
- Account ID (sub)
- Role (for RBAC)
- Unique token ID (jti, for revocation and audit correlation)

Security:
- The token alone identifies the acting account and role
- No expiry unless ACCESS_TOKEN_EXPIRE_MINUTES is configured
- Logout revokes the jti server side (see revocation.py)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import secrets

from jose import jwt, JWTError
from jose.utils import base64url_decode, base64url_encode
from pydantic import BaseModel, Field, ValidationError

from nutrition_portal.auth.models import Role
from nutrition_portal.config import settings


class TokenPayload(BaseModel):
    """
    JWT token payload structure.

    Attributes:
        sub: Subject (account ID, as string per JWT convention)
        role: Canonical account role
        jti: Unique token ID
        iat: Issued-at timestamp
        exp: Expiration timestamp, absent for non-expiring tokens
    """
    sub: str = Field(..., description="Account ID")
    role: Role = Field(..., description="Account role")
    jti: str = Field(..., description="Token ID")
    iat: datetime = Field(..., description="Issued at time")
    exp: Optional[datetime] = Field(default=None, description="Expiration time")

    @property
    def account_id(self) -> int:
        return int(self.sub)


class InvalidTokenError(Exception):
    """Raised when bearer token validation fails."""
    pass


def _is_canonical(token: str) -> bool:
    """
    Each segment must be the exact base64url encoding of its bytes.

    The last character of a segment can carry unused bits that decoders
    ignore, so several spellings decode to the same signature.
    """
    segments = token.split(".")
    if len(segments) != 3:
        return False
    try:
        return all(
            base64url_encode(base64url_decode(segment.encode("ascii"))).decode("ascii") == segment
            for segment in segments
        )
    except (ValueError, UnicodeError):
        return False


def issue_bearer_token(
    account_id: int,
    role: Role,
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, str]:
    """
    Create a new signed bearer token.

    Args:
        account_id: Account's numeric identifier
        role: Account's canonical role
        expires_delta: Optional expiry override; defaults to the configured lifetime

    Returns:
        Tuple of (encoded JWT string, token ID)

    Example:
        >>> token, jti = issue_bearer_token(7, Role.VO)
        >>> validate_bearer_token(token).account_id
        7
    """
    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(account_id),
        "role": Role.parse(role).value,
        "jti": secrets.token_hex(16),
        "iat": now,
    }

    if expires_delta is None and settings.ACCESS_TOKEN_EXPIRE_MINUTES:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    if expires_delta is not None:
        payload["exp"] = now + expires_delta

    encoded_jwt = jwt.encode(
        payload,
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )

    return encoded_jwt, payload["jti"]


def validate_bearer_token(token: str) -> TokenPayload:
    """
    Verify and decode a bearer token.

    Args:
        token: Encoded JWT string

    Returns:
        Decoded TokenPayload

    Raises:
        InvalidTokenError: If token is missing, malformed, tampered or expired
    """
    if not token:
        raise InvalidTokenError("Token missing")

    if not _is_canonical(token):
        raise InvalidTokenError("Token is not canonically encoded")

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        parsed = TokenPayload(**payload)
        if not parsed.sub.isdigit():
            raise InvalidTokenError("Token subject is not an account ID")
        return parsed
    except (JWTError, ValidationError) as e:
        raise InvalidTokenError(f"Token validation failed: {str(e)}")
