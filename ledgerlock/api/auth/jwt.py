"""
Signer Token Handling

Create and verify the bearer tokens that bind a caller to an address.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from ledgerlock.api.config import settings


TOKEN_TYPE = "signer"


def create_signer_token(address: str, expires_minutes: Optional[int] = None) -> str:
    """
    Create a token whose subject is the signer's address.

    Args:
        address: Address the bearer may sign for
        expires_minutes: Lifetime override; defaults to settings

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes or settings.SIGNER_TOKEN_EXPIRE_MINUTES

    payload = {
        "sub": address,
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
        "type": TOKEN_TYPE,
        "jti": str(uuid4()),
    }

    return jwt.encode(
        payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def verify_token(token: str) -> Optional[dict]:
    """
    Verify and decode a signer token.

    Returns:
        Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        return None
    except InvalidTokenError:
        return None

    if payload.get("type") != TOKEN_TYPE or not payload.get("sub"):
        return None

    return payload
