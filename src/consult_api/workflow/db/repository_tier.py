"""
Tier Repository

Read-only access to the per-tier pricing policy (consult.tier_limits).
"""

from consult_api.workflow.db.repository_base import BaseRepository
from consult_api.workflow.enums import UserTier
from consult_api.workflow.models import TierPolicy


class TierRepository(BaseRepository):
    """Tier policy repository."""

    model = TierPolicy

    async def get_policy(self, tier: UserTier) -> TierPolicy:
        """Return the tier's policy, or a zero-weight, zero-discount policy when the tier has no row."""
        policy = await self._fetch_one(
            "SELECT tier, priority_weight, discount_rate_bps FROM consult.tier_limits WHERE tier = $1",
            UserTier(tier).value,
        )
        return policy or TierPolicy(tier=tier)
