"""
Request Transition Model

Append-only audit row written on every request status change.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from consult_api.workflow.enums import RequestStatus


class RequestTransition(BaseModel):
    """Request transition database model."""

    id: int
    request_id: int
    from_status: Optional[RequestStatus] = None
    to_status: RequestStatus
    actor_user_id: Optional[int] = None
    actor_role: str
    created_at: datetime

    class Config:
        from_attributes = True
