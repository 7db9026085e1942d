"""
Assignment Repository

Queries for consult.request_assignments (the ranked offer ledger).
"""

from datetime import datetime
from typing import List
from typing import Optional

from consult_api.workflow.db.repository_base import BaseRepository
from consult_api.workflow.enums import AssignmentStatus
from consult_api.workflow.models import RequestAssignment


class AssignmentRepository(BaseRepository):
    """Request assignment repository."""

    model = RequestAssignment

    async def create(self, request_id: int, advisor_id: int, rank: int) -> Optional[RequestAssignment]:
        """
        Offer a request to an advisor.

        Returns:
            New assignment, or None if the advisor already has one on this request
        """
        return await self._fetch_one(
            """
            INSERT INTO consult.request_assignments (request_id, advisor_id, rank, status)
            VALUES ($1, $2, $3, 'offered')
            ON CONFLICT (request_id, advisor_id) DO NOTHING
            RETURNING *
            """,
            request_id,
            advisor_id,
            rank,
        )

    async def get(self, assignment_id: int) -> Optional[RequestAssignment]:
        return await self._fetch_one("SELECT * FROM consult.request_assignments WHERE id = $1", assignment_id)

    async def get_by_request_and_advisor(self, request_id: int, advisor_id: int) -> Optional[RequestAssignment]:
        return await self._fetch_one(
            "SELECT * FROM consult.request_assignments WHERE request_id = $1 AND advisor_id = $2",
            request_id,
            advisor_id,
        )

    async def list_by_request(self, request_id: int) -> List[RequestAssignment]:
        return await self._fetch_all(
            "SELECT * FROM consult.request_assignments WHERE request_id = $1 ORDER BY rank, id",
            request_id,
        )

    async def list_by_advisor(self, advisor_id: int) -> List[RequestAssignment]:
        """List an advisor's assignments, newest first."""
        return await self._fetch_all(
            "SELECT * FROM consult.request_assignments WHERE advisor_id = $1 ORDER BY created_at DESC, id DESC",
            advisor_id,
        )

    async def max_rank(self, request_id: int) -> int:
        value = await self.conn.fetchval(
            "SELECT COALESCE(MAX(rank), 0) FROM consult.request_assignments WHERE request_id = $1",
            request_id,
        )
        return int(value or 0)

    async def respond(self, assignment_id: int, to_status: AssignmentStatus) -> Optional[RequestAssignment]:
        """
        Resolve an offer.

        Returns:
            Updated assignment, or None if it was no longer 'offered'
        """
        return await self._fetch_one(
            """
            UPDATE consult.request_assignments
            SET status = $2, responded_at = NOW()
            WHERE id = $1 AND status = 'offered'
            RETURNING *
            """,
            assignment_id,
            AssignmentStatus(to_status).value,
        )

    async def expire_offered(self, request_id: int) -> List[RequestAssignment]:
        """Expire every still-offered assignment of a request."""
        return await self._fetch_all(
            """
            UPDATE consult.request_assignments
            SET status = 'expired', responded_at = NOW()
            WHERE request_id = $1 AND status = 'offered'
            RETURNING *
            """,
            request_id,
        )

    async def expire_stale(self, cutoff: datetime) -> List[RequestAssignment]:
        """Expire offers created before cutoff whose request is still awaiting an advisor."""
        return await self._fetch_all(
            """
            UPDATE consult.request_assignments a
            SET status = 'expired', responded_at = NOW()
            FROM consult.consultation_requests r
            WHERE a.request_id = r.id
              AND a.status = 'offered'
              AND a.created_at < $1
              AND r.status = 'pending_advisor'
            RETURNING a.*
            """,
            cutoff,
        )
