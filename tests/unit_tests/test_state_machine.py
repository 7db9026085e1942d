"""Unit tests for the consultation request transition table."""

import itertools

import pytest

from consult_api.errors import StateError
from consult_api.workflow.enums import RequestStatus
from consult_api.workflow.state_machine import ALLOWED_TRANSITIONS
from consult_api.workflow.state_machine import CANCELLABLE
from consult_api.workflow.state_machine import assert_transition
from consult_api.workflow.state_machine import can_transition
from consult_api.workflow.state_machine import is_terminal

S = RequestStatus

EXPECTED_EDGES = {
    (S.DRAFT, S.SUBMITTED),
    (S.SUBMITTED, S.PENDING_ADVISOR),
    (S.SUBMITTED, S.CANCELLED),
    (S.PENDING_ADVISOR, S.ACCEPTED),
    (S.PENDING_ADVISOR, S.REJECTED),
    (S.PENDING_ADVISOR, S.CANCELLED),
    (S.ACCEPTED, S.PAYMENT_RESERVED),
    (S.ACCEPTED, S.CANCELLED),
    (S.PAYMENT_RESERVED, S.PAID),
    (S.PAYMENT_RESERVED, S.ACCEPTED),
    (S.PAYMENT_RESERVED, S.CANCELLED),
    (S.PAID, S.IN_PROGRESS),
    (S.IN_PROGRESS, S.COMPLETED),
    (S.COMPLETED, S.RELEASED),
    (S.RELEASED, S.CLOSED),
    (S.CLOSED, S.RATED),
}


class TestTransitionTable:
    """The table is total over RequestStatus and contains exactly the lifecycle edges."""

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(RequestStatus)

    @pytest.mark.parametrize("from_status,to_status", list(itertools.product(RequestStatus, RequestStatus)))
    def test_can_transition_matches_edges(self, from_status, to_status):
        assert can_transition(from_status, to_status) is ((from_status, to_status) in EXPECTED_EDGES)

    @pytest.mark.parametrize("status", [S.RATED, S.CANCELLED, S.REJECTED, S.AWAITING_PAYMENT])
    def test_terminal_statuses(self, status):
        assert is_terminal(status)

    def test_paid_is_not_reachable_from_accepted(self):
        """Payment must be reserved before the gateway can confirm it."""
        assert not can_transition(S.ACCEPTED, S.PAID)

    def test_cancellable_statuses(self):
        assert CANCELLABLE == {S.SUBMITTED, S.PENDING_ADVISOR, S.ACCEPTED, S.PAYMENT_RESERVED}

    def test_accepts_plain_strings(self):
        assert can_transition("paid", "in_progress")


class TestAssertTransition:
    def test_allowed_edge_passes(self):
        assert_transition(S.COMPLETED, S.RELEASED)

    def test_disallowed_edge_raises_state_error(self):
        with pytest.raises(StateError) as exc_info:
            assert_transition(S.PAYMENT_RESERVED, S.IN_PROGRESS)

        assert exc_info.value.details == {"from_status": "payment_reserved", "to_status": "in_progress"}
        assert "payment_reserved" in exc_info.value.message

    def test_self_transition_is_rejected(self):
        with pytest.raises(StateError):
            assert_transition(S.RATED, S.RATED)
