"""
Advisor Rating Model
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AdvisorRating(BaseModel):
    """Advisor rating database model."""

    id: int
    request_id: int
    advisor_id: int
    user_id: int
    score: int
    comment: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
