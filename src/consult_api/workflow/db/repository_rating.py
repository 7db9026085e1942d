"""
Rating Repository

Post-close advisor ratings (one per request).
"""

from typing import Optional

from consult_api.workflow.db.repository_base import BaseRepository
from consult_api.workflow.models import AdvisorRating


class RatingRepository(BaseRepository):
    """Advisor rating repository."""

    model = AdvisorRating

    async def create(
        self, request_id: int, advisor_id: int, user_id: int, score: int, comment: Optional[str] = None
    ) -> AdvisorRating:
        return await self._fetch_one(
            """
            INSERT INTO consult.advisor_ratings (request_id, advisor_id, user_id, score, comment)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            request_id,
            advisor_id,
            user_id,
            score,
            comment,
        )

    async def get_by_request(self, request_id: int) -> Optional[AdvisorRating]:
        return await self._fetch_one("SELECT * FROM consult.advisor_ratings WHERE request_id = $1", request_id)
