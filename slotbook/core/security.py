"""Bearer token helpers.

Tokens are issued by the external auth provider and signed with the shared
secret. This service only decodes them; ``create_access_token`` exists for
service-to-service calls and tests.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from slotbook.core.config import settings


def create_access_token(
    subject: str,
    role: str,
    expires_delta: timedelta | None = None,
    additional_claims: dict | None = None,
) -> str:
    """Create a signed JWT access token.

    Args:
        subject: The actor ID the token identifies
        role: Actor role claim (user, admin, system)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": subject,
        "role": role,
        "type": "access",
        "exp": now + expires_delta,
        "iat": now,
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT access token.

    Args:
        token: The JWT token string

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
