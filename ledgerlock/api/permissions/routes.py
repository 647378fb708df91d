"""
Permission Routes

Grant and revoke are owner-only and idempotent.
"""

from fastapi import APIRouter, Depends

from ledgerlock.api.access.engine import AuthorizationEngine
from ledgerlock.api.dependencies import (
    get_authorization_engine,
    get_current_signer,
    get_owner_signer,
)
from ledgerlock.api.ledger.authority import SignerContext
from ledgerlock.api.ledger.schemas import CommitResponse, ErrorResponse
from ledgerlock.api.permissions.schemas import PermissionEdgeRequest, PermissionEdgeResponse


router = APIRouter()


@router.post(
    "/grant",
    response_model=CommitResponse,
    summary="Grant access",
    responses={403: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def grant_access(
    data: PermissionEdgeRequest,
    owner: SignerContext = Depends(get_owner_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> CommitResponse:
    """Allow `requester` to access `resource`. The reverse direction is unaffected."""
    receipt = await engine.grant_access(data.requester, data.resource, signer=owner.address)
    return CommitResponse.from_receipt(receipt)


@router.post(
    "/revoke",
    response_model=CommitResponse,
    summary="Revoke access",
    responses={403: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def revoke_access(
    data: PermissionEdgeRequest,
    owner: SignerContext = Depends(get_owner_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> CommitResponse:
    """Withdraw `requester`'s access to `resource`. Succeeds even if never granted."""
    receipt = await engine.revoke_access(data.requester, data.resource, signer=owner.address)
    return CommitResponse.from_receipt(receipt)


@router.get(
    "/{requester}/{resource}",
    response_model=PermissionEdgeResponse,
    summary="Check an edge without logging",
)
async def get_permission(
    requester: str,
    resource: str,
    signer: SignerContext = Depends(get_current_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> PermissionEdgeResponse:
    granted = await engine.has_access(requester, resource)
    return PermissionEdgeResponse(requester=requester, resource=resource, granted=granted)
