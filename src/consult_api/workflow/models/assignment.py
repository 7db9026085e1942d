"""
Request Assignment Model

One row per advisor offered a given request, ranked.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from consult_api.workflow.enums import AssignmentStatus


class RequestAssignment(BaseModel):
    """Request assignment database model."""

    id: int
    request_id: int
    advisor_id: int
    rank: int
    status: AssignmentStatus
    responded_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
