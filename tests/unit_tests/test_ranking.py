"""Unit tests for advisor eligibility and ranking."""

import pytest

from consult_api.workflow.enums import AdvisorStatus
from consult_api.workflow.models import Advisor
from consult_api.workflow.ranking import RankingFilters
from consult_api.workflow.ranking import is_eligible
from consult_api.workflow.ranking import rank_advisors
from consult_api.workflow.ranking import rating_stars
from consult_api.workflow.ranking import score_advisor
from tests.fixtures.workflow_fixtures import ADVISORS


def make_advisor(advisor_id, **fields):
    return Advisor(id=advisor_id, name=f"Advisor {advisor_id}", **fields)


class TestScore:
    def test_score_formula(self):
        advisor = make_advisor(1, rating_avg=450, experience_years=7)

        assert score_advisor(advisor) == 520
        assert score_advisor(advisor, tier_priority_weight=2) == 2520

    def test_missing_fields_score_zero(self):
        advisor = Advisor.model_validate(
            {"id": 9, "name": "New", "rating_avg": None, "experience_years": None, "languages": None}
        )

        assert score_advisor(advisor) == 0
        assert advisor.languages == []

    @pytest.mark.parametrize("stored,stars", [(480, 4.8), (5, 5.0), (0, 0.0), (100, 1.0)])
    def test_rating_stars(self, stored, stars):
        assert rating_stars(make_advisor(1, rating_avg=stored)) == stars


class TestRankAdvisors:
    def test_orders_by_score_and_skips_inactive(self):
        ranked = rank_advisors(ADVISORS)

        assert [entry.advisor.id for entry in ranked] == [1, 2, 3, 4]
        assert [entry.rank for entry in ranked] == [1, 2, 3, 4]
        assert [entry.score for entry in ranked] == [580, 570, 450, 320]

    def test_ties_break_on_lower_id(self):
        advisors = [make_advisor(7, rating_avg=400), make_advisor(3, rating_avg=400), make_advisor(5, rating_avg=400)]

        assert [entry.advisor.id for entry in rank_advisors(advisors)] == [3, 5, 7]

    def test_same_input_same_order(self):
        first = rank_advisors(ADVISORS, tier_priority_weight=1)
        second = rank_advisors(list(reversed(ADVISORS)), tier_priority_weight=1)

        assert [entry.advisor.id for entry in first] == [entry.advisor.id for entry in second]

    def test_tier_weight_shifts_every_score(self):
        ranked = rank_advisors(ADVISORS, tier_priority_weight=2)

        assert ranked[0].score == 2580

    def test_excluded_ids_are_dropped(self):
        ranked = rank_advisors(ADVISORS, exclude_ids={1, 2})

        assert [entry.advisor.id for entry in ranked] == [3, 4]
        assert ranked[0].rank == 1

    def test_no_active_advisor(self):
        assert rank_advisors([make_advisor(1, status=AdvisorStatus.INACTIVE)]) == []


class TestFilters:
    @pytest.mark.parametrize(
        "filters,expected_ids",
        [
            (RankingFilters(specialty="legal"), [1, 3]),
            (RankingFilters(specialty="contracts"), [1]),
            (RankingFilters(language="ar"), [1, 3]),
            (RankingFilters(min_rating=4.5), [1, 2]),
            (RankingFilters(require_availability=True), [1, 3, 4]),
            (RankingFilters(specialty="legal", language="en"), [1]),
            (RankingFilters(specialty="medicine"), []),
        ],
        ids=[
            "primary_specialty",
            "secondary_specialty",
            "language",
            "min_rating",
            "availability",
            "combined",
            "no_match",
        ],
    )
    def test_filters(self, filters, expected_ids):
        ranked = rank_advisors(ADVISORS, filters=filters)

        assert [entry.advisor.id for entry in ranked] == expected_ids

    def test_unknown_availability_is_not_excluded(self):
        advisor = make_advisor(1, availability=None)

        assert is_eligible(advisor, RankingFilters(require_availability=True))

    def test_empty_language_list_fails_language_filter(self):
        assert not is_eligible(make_advisor(1, languages=[]), RankingFilters(language="en"))

    def test_min_rating_bounds(self):
        with pytest.raises(ValueError):
            RankingFilters(min_rating=6)
