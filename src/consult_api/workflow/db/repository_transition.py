"""
Transition Repository

Append-only log of request status changes (no updates, no deletes).
"""

from typing import List
from typing import Optional

from consult_api.workflow.db.repository_base import BaseRepository
from consult_api.workflow.enums import RequestStatus
from consult_api.workflow.models import RequestTransition


class TransitionRepository(BaseRepository):
    """Request transition repository."""

    model = RequestTransition

    async def append(
        self,
        request_id: int,
        from_status: Optional[RequestStatus],
        to_status: RequestStatus,
        actor_user_id: Optional[int],
        actor_role: str,
    ) -> RequestTransition:
        """Record one status change."""
        return await self._fetch_one(
            """
            INSERT INTO consult.request_transitions (request_id, from_status, to_status, actor_user_id, actor_role)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            request_id,
            RequestStatus(from_status).value if from_status is not None else None,
            RequestStatus(to_status).value,
            actor_user_id,
            actor_role,
        )

    async def list_by_request(self, request_id: int) -> List[RequestTransition]:
        return await self._fetch_all(
            "SELECT * FROM consult.request_transitions WHERE request_id = $1 ORDER BY id",
            request_id,
        )
