"""
Caller Identity

Built from the trusted headers forwarded by the upstream auth layer.
"""

from typing import Optional

from pydantic import BaseModel

from consult_api.workflow.enums import Role
from consult_api.workflow.enums import UserTier


class Identity(BaseModel):
    """Authenticated caller."""

    user_id: int
    role: Role = Role.USER
    advisor_id: Optional[int] = None
    tier: UserTier = UserTier.FREE

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role in (Role.SYSTEM, Role.ADMIN)

    @property
    def is_advisor(self) -> bool:
        return self.role == Role.ADVISOR and self.advisor_id is not None

    def describe(self) -> str:
        return f"{self.role.value}:{self.user_id}"
