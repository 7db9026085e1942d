"""
Advisor Ranking

Deterministic scoring of active advisors for a consultation request.

score = tier_priority_weight * 1000 + rating_avg + experience_years * 10

Ties are broken by advisor id ascending so the same inputs always produce the
same offer order.
"""

from typing import Iterable
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import Field

from consult_api.workflow.enums import AdvisorStatus
from consult_api.workflow.models import Advisor

TIER_WEIGHT_MULTIPLIER = 1000
EXPERIENCE_MULTIPLIER = 10


class RankingFilters(BaseModel):
    """Optional narrowing applied before scoring."""

    specialty: Optional[str] = None
    language: Optional[str] = None
    min_rating: Optional[float] = Field(default=None, ge=1, le=5)
    require_availability: bool = False


class RankedAdvisor(BaseModel):
    """An eligible advisor with its score and 1-based position."""

    advisor: Advisor
    score: int
    rank: int


def rating_stars(advisor: Advisor) -> float:
    """Star rating of an advisor; values above 5 are stored scaled x100."""
    rating = advisor.rating_avg or 0
    return rating / 100 if rating > 5 else float(rating)


def is_eligible(advisor: Advisor, filters: Optional[RankingFilters] = None) -> bool:
    """Return True if the advisor is active and passes every filter that is set."""
    if advisor.status != AdvisorStatus.ACTIVE:
        return False
    if filters is None:
        return True

    if filters.specialty and advisor.specialty != filters.specialty and filters.specialty not in advisor.specialties:
        return False
    if filters.language and filters.language not in advisor.languages:
        return False
    if filters.min_rating is not None and rating_stars(advisor) < filters.min_rating:
        return False
    # None means availability is unknown; only an explicit empty list excludes
    if filters.require_availability and advisor.availability is not None and len(advisor.availability) == 0:
        return False
    return True


def score_advisor(advisor: Advisor, tier_priority_weight: int = 0) -> int:
    return (
        tier_priority_weight * TIER_WEIGHT_MULTIPLIER
        + (advisor.rating_avg or 0)
        + (advisor.experience_years or 0) * EXPERIENCE_MULTIPLIER
    )


def rank_advisors(
    advisors: Iterable[Advisor],
    tier_priority_weight: int = 0,
    filters: Optional[RankingFilters] = None,
    exclude_ids: Iterable[int] = (),
) -> List[RankedAdvisor]:
    """
    Rank eligible advisors for a request.

    Args:
        advisors: Candidate advisors (inactive ones are dropped)
        tier_priority_weight: Priority weight of the requesting user's tier
        filters: Optional specialty/language/rating/availability filters
        exclude_ids: Advisors that must not be offered again

    Returns:
        Eligible advisors ordered by score descending, then id ascending, ranked from 1
    """
    excluded = set(exclude_ids)
    scored = [
        (score_advisor(advisor, tier_priority_weight), advisor)
        for advisor in advisors
        if advisor.id not in excluded and is_eligible(advisor, filters)
    ]
    scored.sort(key=lambda entry: (-entry[0], entry[1].id))
    return [RankedAdvisor(advisor=advisor, score=score, rank=index) for index, (score, advisor) in enumerate(scored, 1)]
