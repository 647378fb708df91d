"""
Identity Routes

Registration is owner-only; lookups need any valid signer token.
"""

from fastapi import APIRouter, Depends, status

from ledgerlock.api.access.engine import AuthorizationEngine
from ledgerlock.api.dependencies import (
    get_authorization_engine,
    get_current_signer,
    get_owner_signer,
)
from ledgerlock.api.identity.schemas import IdentityResponse, RegisterIdentityRequest
from ledgerlock.api.ledger.authority import SignerContext
from ledgerlock.api.ledger.schemas import CommitResponse, ErrorResponse


router = APIRouter()


@router.post(
    "/register",
    response_model=CommitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an identity",
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def register_identity(
    data: RegisterIdentityRequest,
    owner: SignerContext = Depends(get_owner_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> CommitResponse:
    """
    Register a user or device.

    - **address**: Unique identifier; may be registered once
    - **name**: Display name
    - **role**: Free-form classification, e.g. `Device_Lock`
    """
    receipt = await engine.register_identity(data.address, data.name, data.role, signer=owner.address)
    return CommitResponse.from_receipt(receipt)


@router.get(
    "/{address}",
    response_model=IdentityResponse,
    summary="Get a registered identity",
    responses={404: {"model": ErrorResponse}},
)
async def get_identity(
    address: str,
    signer: SignerContext = Depends(get_current_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> IdentityResponse:
    identity = await engine.get_identity(address)
    return IdentityResponse.model_validate(identity)
