"""
Advisor Models

Read-only views of the advisor directory and the tier pricing policy.
Both tables are owned by other subsystems.
"""

from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import field_validator

from consult_api.workflow.enums import AdvisorStatus
from consult_api.workflow.enums import UserTier


class Advisor(BaseModel):
    """Advisor (consultant) database model."""

    id: int
    name: str
    email: Optional[str] = None
    specialty: Optional[str] = None
    specialties: List[str] = []
    languages: List[str] = []
    availability: Optional[list] = None  # None = unknown, [] = no free slots
    experience_years: int = 0
    rating_avg: int = 0  # scaled 0-500 (x100)
    status: AdvisorStatus = AdvisorStatus.ACTIVE

    @field_validator("specialties", "languages", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []

    @field_validator("experience_years", "rating_avg", mode="before")
    @classmethod
    def _none_as_zero(cls, value):
        return value or 0

    class Config:
        from_attributes = True


class TierPolicy(BaseModel):
    """Ranking weight and discount attached to a subscription tier."""

    tier: UserTier
    priority_weight: int = 0
    discount_rate_bps: int = 0

    class Config:
        from_attributes = True
