"""
Consultation Request Model

Database model for consultation_requests rows.
"""

from datetime import datetime
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import field_validator

from consult_api.workflow.enums import RequestStatus
from consult_api.workflow.enums import UserTier
from consult_api.workflow.pricing import Money


class FileReference(BaseModel):
    """Reference to a file held by the storage service. Bytes are never read here."""

    file_id: int
    name: str


class ConsultationRequest(BaseModel):
    """Consultation request database model."""

    id: int
    user_id: int
    advisor_id: Optional[int] = None
    status: RequestStatus
    user_tier_snapshot: UserTier = UserTier.FREE
    priority_weight: int = 0
    discount_rate_bps: int = 0

    # Pricing snapshot (NUMERIC(12,3), KWD has three minor digits)
    gross_amount: Optional[Money] = None
    discount_amount: Optional[Money] = None
    net_amount: Optional[Money] = None
    currency: str = "KWD"

    summary: str
    files: List[FileReference] = []

    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    rated_at: Optional[datetime] = None

    @field_validator("files", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []

    class Config:
        from_attributes = True
