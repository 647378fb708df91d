"""
Ledger Schemas

Pydantic models shared by every endpoint that commits.
"""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel

from ledgerlock.api.ledger.operations import Receipt


class CommitResponse(BaseModel):
    """Acknowledgement of a committed operation."""

    ok: bool = True
    commit_ref: str
    sequence_id: int
    committed_at: datetime

    @classmethod
    def from_receipt(cls, receipt: Receipt) -> "CommitResponse":
        return cls(
            commit_ref=receipt.tx_hash,
            sequence_id=receipt.sequence_id,
            committed_at=receipt.committed_at,
        )


class ErrorDetail(BaseModel):
    """Error kind plus the underlying reason."""

    kind: str
    reason: str
    recoverable: bool = False
    details: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """Envelope for every domain error."""

    error: ErrorDetail
