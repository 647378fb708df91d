"""
FastAPI Dependencies

Common dependencies for dependency injection.
"""

from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ledgerlock.core.event_bus import get_event_bus
from ledgerlock.core.exceptions import Unauthorized
from ledgerlock.api.auth.jwt import verify_token
from ledgerlock.api.config import settings
from ledgerlock.api.access.engine import AuthorizationEngine
from ledgerlock.api.ledger.adapter import SqlLedger, get_ledger
from ledgerlock.api.ledger.authority import SignerContext, authorities_for


security = HTTPBearer()


def get_authorization_engine(
    ledger: SqlLedger = Depends(get_ledger),
) -> AuthorizationEngine:
    """Engine bound to the process ledger and event bus."""
    return AuthorizationEngine(
        ledger,
        event_bus=get_event_bus(),
        address_pattern=settings.ADDRESS_PATTERN,
        audit_max_limit=settings.AUDIT_LOG_MAX_LIMIT,
    )


async def get_current_signer(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    ledger: SqlLedger = Depends(get_ledger),
) -> SignerContext:
    """
    Resolve the caller's signer identity from its bearer token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = verify_token(credentials.credentials)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    address = payload["sub"]
    return SignerContext(
        address=address,
        authorities=authorities_for(address, ledger.owner_address),
        token_id=payload.get("jti"),
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if "iat" in payload else None,
    )


async def get_owner_signer(
    signer: SignerContext = Depends(get_current_signer),
) -> SignerContext:
    """
    Require the ledger owner.

    Raises:
        Unauthorized: If the signer is not the owner
    """
    if not signer.is_owner:
        raise Unauthorized("Administrative authority required", signer=signer.address)
    return signer
