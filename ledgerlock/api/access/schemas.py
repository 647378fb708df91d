"""
Access Schemas

Pydantic models for access requests and the audit log.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ==================== Request Access ====================


class AccessRequest(BaseModel):
    """Access attempt submitted by the requester itself."""

    requester: str = Field(..., max_length=130)
    resource: str = Field(..., max_length=130)


class AccessResponse(BaseModel):
    """Decision for a logged access attempt."""

    access_granted: bool
    sequence_id: int
    tx_hash: str
    timestamp: datetime


# ==================== Audit Log ====================


class AccessAttemptResponse(BaseModel):
    """One access log entry."""

    requester: str
    resource: str
    is_success: bool
    timestamp: datetime
    sequence_id: int
    tx_hash: str

    model_config = ConfigDict(from_attributes=True)


class AccessLogResponse(BaseModel):
    """Ordered slice of the access log."""

    events: List[AccessAttemptResponse]
    count: int
    last_sequence_id: Optional[int] = None


class AccessLogExportResponse(BaseModel):
    """Access log export with integrity hash."""

    export_timestamp: str
    filter: Dict[str, Any]
    event_count: int
    events: List[Dict[str, Any]]
    integrity_hash: Optional[str] = None


class AccessLogSummaryResponse(BaseModel):
    """Aggregated access log report."""

    report_id: str
    generated_at: datetime
    total_attempts: int
    granted: int
    denied: int
    by_requester: Dict[str, int] = {}
    by_resource: Dict[str, int] = {}
    denied_by_requester: Dict[str, int] = {}
    first_sequence_id: Optional[int] = None
    last_sequence_id: Optional[int] = None
    integrity_hash: str

    model_config = ConfigDict(from_attributes=True)
