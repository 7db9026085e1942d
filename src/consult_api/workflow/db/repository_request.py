"""
Request Repository

Queries for consult.consultation_requests. Status changes are conditional on
the expected current status so that a racing writer is detected, not overwritten.
"""

from decimal import Decimal
from typing import List
from typing import Optional
from typing import Tuple

from consult_api.workflow.db.repository_base import BaseRepository
from consult_api.workflow.db.repository_base import as_model
from consult_api.workflow.enums import RequestStatus
from consult_api.workflow.enums import UserTier
from consult_api.workflow.models import ConsultationRequest
from consult_api.workflow.models import FileReference
from consult_api.workflow.models import RequestAssignment

# Timestamp columns a transition may stamp with NOW()
STAMP_COLUMNS = {"paid_at", "completed_at", "released_at", "closed_at", "rated_at"}


class RequestRepository(BaseRepository):
    """Consultation request repository."""

    model = ConsultationRequest

    async def create(
        self,
        user_id: int,
        summary: str,
        status: RequestStatus,
        user_tier: UserTier,
        priority_weight: int,
        discount_rate_bps: int,
        gross_amount: Optional[Decimal],
        discount_amount: Optional[Decimal],
        net_amount: Optional[Decimal],
        currency: str,
        files: List[FileReference],
    ) -> ConsultationRequest:
        """Insert a new request and return it."""
        return await self._fetch_one(
            """
            INSERT INTO consult.consultation_requests
                (user_id, summary, status, user_tier_snapshot, priority_weight, discount_rate_bps,
                 gross_amount, discount_amount, net_amount, currency, files)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING *
            """,
            user_id,
            summary,
            RequestStatus(status).value,
            UserTier(user_tier).value,
            priority_weight,
            discount_rate_bps,
            gross_amount,
            discount_amount,
            net_amount,
            currency,
            [file.model_dump() for file in files],
        )

    async def get(self, request_id: int) -> Optional[ConsultationRequest]:
        return await self._fetch_one("SELECT * FROM consult.consultation_requests WHERE id = $1", request_id)

    async def get_for_update(self, request_id: int) -> Optional[ConsultationRequest]:
        """Load a request and lock its row until the transaction ends."""
        return await self._fetch_one(
            "SELECT * FROM consult.consultation_requests WHERE id = $1 FOR UPDATE",
            request_id,
        )

    async def transition(
        self,
        request_id: int,
        from_status: RequestStatus,
        to_status: RequestStatus,
        advisor_id: Optional[int] = None,
        stamp: Optional[str] = None,
    ) -> Optional[ConsultationRequest]:
        """
        Move a request from_status -> to_status.

        Args:
            request_id: Request to update
            from_status: Status the row must still have
            to_status: New status
            advisor_id: Advisor to record (left unchanged when None)
            stamp: Timestamp column to set to NOW()

        Returns:
            Updated request, or None if the row is no longer in from_status
        """
        stamp_sql = ""
        if stamp is not None:
            if stamp not in STAMP_COLUMNS:
                raise ValueError(f"Unknown timestamp column: {stamp}")
            stamp_sql = f", {stamp} = NOW()"

        return await self._fetch_one(
            f"""
            UPDATE consult.consultation_requests
            SET status = $3,
                advisor_id = COALESCE($4, advisor_id),
                updated_at = NOW(){stamp_sql}
            WHERE id = $1 AND status = $2
            RETURNING *
            """,
            request_id,
            RequestStatus(from_status).value,
            RequestStatus(to_status).value,
            advisor_id,
        )

    async def set_pricing(
        self,
        request_id: int,
        gross_amount: Decimal,
        discount_amount: Decimal,
        net_amount: Decimal,
    ) -> ConsultationRequest:
        return await self._fetch_one(
            """
            UPDATE consult.consultation_requests
            SET gross_amount = $2, discount_amount = $3, net_amount = $4, updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            request_id,
            gross_amount,
            discount_amount,
            net_amount,
        )

    async def set_files(self, request_id: int, files: List[FileReference]) -> ConsultationRequest:
        return await self._fetch_one(
            """
            UPDATE consult.consultation_requests
            SET files = $2, updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            request_id,
            [file.model_dump() for file in files],
        )

    async def list_by_user(self, user_id: int) -> List[ConsultationRequest]:
        """List a user's requests, newest first."""
        return await self._fetch_all(
            """
            SELECT * FROM consult.consultation_requests
            WHERE user_id = $1
            ORDER BY created_at DESC, id DESC
            """,
            user_id,
        )

    async def list_for_advisor(self, advisor_id: int) -> List[Tuple[ConsultationRequest, RequestAssignment]]:
        """List every request offered to an advisor, paired with that advisor's assignment."""
        rows = await self.conn.fetch(
            """
            SELECT r.*,
                   a.id AS assignment_id,
                   a.rank AS assignment_rank,
                   a.status AS assignment_status,
                   a.responded_at AS assignment_responded_at,
                   a.created_at AS assignment_created_at
            FROM consult.consultation_requests r
            JOIN consult.request_assignments a ON a.request_id = r.id
            WHERE a.advisor_id = $1
            ORDER BY r.created_at DESC, r.id DESC
            """,
            advisor_id,
        )
        pairs = []
        for row in rows:
            data = dict(row)
            assignment = RequestAssignment(
                id=data.pop("assignment_id"),
                request_id=data["id"],
                advisor_id=advisor_id,
                rank=data.pop("assignment_rank"),
                status=data.pop("assignment_status"),
                responded_at=data.pop("assignment_responded_at"),
                created_at=data.pop("assignment_created_at"),
            )
            pairs.append((as_model(ConsultationRequest, data), assignment))
        return pairs
