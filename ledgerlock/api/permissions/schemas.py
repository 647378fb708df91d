"""
Permission Schemas

Pydantic models for the permission matrix.
"""

from pydantic import BaseModel, Field


class PermissionEdgeRequest(BaseModel):
    """Directed edge: requester may access resource."""

    requester: str = Field(..., max_length=130)
    resource: str = Field(..., max_length=130)


class PermissionEdgeResponse(BaseModel):
    """Current state of one edge."""

    requester: str
    resource: str
    granted: bool
