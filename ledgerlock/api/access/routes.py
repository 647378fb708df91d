"""
Access Routes

Access requests (signed by the requester) and audit log reads.
"""

from datetime import datetime
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Query

from ledgerlock.api.access.audit import AccessLogFilter
from ledgerlock.api.access.engine import AuthorizationEngine
from ledgerlock.api.access.schemas import (
    AccessAttemptResponse,
    AccessLogExportResponse,
    AccessLogResponse,
    AccessLogSummaryResponse,
    AccessRequest,
    AccessResponse,
)
from ledgerlock.api.config import settings
from ledgerlock.api.dependencies import get_authorization_engine, get_current_signer
from ledgerlock.api.ledger.authority import SignerContext
from ledgerlock.api.ledger.operations import EventRange
from ledgerlock.api.ledger.schemas import ErrorResponse


router = APIRouter()


def get_log_query(
    requester: Optional[str] = Query(None, description="Only attempts by this requester"),
    resource: Optional[str] = Query(None, description="Only attempts on this resource"),
    is_success: Optional[bool] = Query(None, description="Only granted (true) or denied (false)"),
    since: Optional[datetime] = Query(None, description="Earliest timestamp, inclusive"),
    until: Optional[datetime] = Query(None, description="Latest timestamp, inclusive"),
    from_sequence: Optional[int] = Query(None, ge=1),
    to_sequence: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=settings.AUDIT_LOG_MAX_LIMIT),
) -> Tuple[AccessLogFilter, EventRange]:
    """Collect filter and range query parameters."""
    return (
        AccessLogFilter(
            requester=requester,
            resource=resource,
            is_success=is_success,
            since=since,
            until=until,
        ),
        EventRange(from_sequence=from_sequence, to_sequence=to_sequence, limit=limit),
    )


# ==================== Request Access ====================


@router.post(
    "/request",
    response_model=AccessResponse,
    summary="Request access to a resource",
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def request_access(
    data: AccessRequest,
    signer: SignerContext = Depends(get_current_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> AccessResponse:
    """
    Check the requester's permission and log the attempt.

    The bearer token must belong to `requester`: the attempt is committed
    under the requester's signature. If the attempt cannot be logged the
    response is an error, never a grant.
    """
    decision = await engine.request_access(data.requester, data.resource, signer=signer.address)
    return AccessResponse(
        access_granted=decision.access_granted,
        sequence_id=decision.event.sequence_id,
        tx_hash=decision.event.tx_hash,
        timestamp=decision.event.timestamp,
    )


# ==================== Audit Log ====================


@router.get(
    "/logs",
    response_model=AccessLogResponse,
    summary="Query the access log",
)
async def get_access_logs(
    query: Tuple[AccessLogFilter, EventRange] = Depends(get_log_query),
    signer: SignerContext = Depends(get_current_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> AccessLogResponse:
    """Access attempts in commit order, optionally filtered."""
    log_filter, event_range = query
    events = [
        AccessAttemptResponse.model_validate(event)
        async for event in engine.query_access_log(log_filter, event_range)
    ]
    return AccessLogResponse(
        events=events,
        count=len(events),
        last_sequence_id=events[-1].sequence_id if events else None,
    )


@router.get(
    "/logs/export",
    response_model=AccessLogExportResponse,
    summary="Export the access log",
)
async def export_access_logs(
    query: Tuple[AccessLogFilter, EventRange] = Depends(get_log_query),
    signer: SignerContext = Depends(get_current_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> AccessLogExportResponse:
    """Access log slice with a SHA-256 integrity hash."""
    log_filter, event_range = query
    export = await engine.export_access_log(log_filter, event_range)
    return AccessLogExportResponse(**export)


@router.get(
    "/logs/summary",
    response_model=AccessLogSummaryResponse,
    summary="Summarize the access log",
)
async def summarize_access_logs(
    query: Tuple[AccessLogFilter, EventRange] = Depends(get_log_query),
    signer: SignerContext = Depends(get_current_signer),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
) -> AccessLogSummaryResponse:
    """Granted/denied counts per requester and resource."""
    log_filter, event_range = query
    summary = await engine.summarize_access_log(log_filter, event_range)
    return AccessLogSummaryResponse.model_validate(summary)
