"""
Advisor Repository

Read-only access to the advisor directory (consult.consultants).
"""

from typing import List
from typing import Optional

from consult_api.workflow.db.repository_base import BaseRepository
from consult_api.workflow.models import Advisor


class AdvisorRepository(BaseRepository):
    """Advisor directory repository."""

    model = Advisor

    async def get(self, advisor_id: int) -> Optional[Advisor]:
        return await self._fetch_one("SELECT * FROM consult.consultants WHERE id = $1", advisor_id)

    async def list_active(self) -> List[Advisor]:
        return await self._fetch_all("SELECT * FROM consult.consultants WHERE status = 'active' ORDER BY id")
