"""
Workflow Database Module

asyncpg pool, migrations and the connection-scoped repositories.
"""

from consult_api.workflow.db.repository_advisor import AdvisorRepository
from consult_api.workflow.db.repository_assignment import AssignmentRepository
from consult_api.workflow.db.repository_order import OrderRepository
from consult_api.workflow.db.repository_rating import RatingRepository
from consult_api.workflow.db.repository_request import RequestRepository
from consult_api.workflow.db.repository_tier import TierRepository
from consult_api.workflow.db.repository_transition import TransitionRepository


class Repositories:
    """Every repository bound to one transaction's connection."""

    def __init__(
        self,
        requests,
        assignments,
        transitions,
        orders,
        advisors,
        tiers,
        ratings,
    ):
        self.requests = requests
        self.assignments = assignments
        self.transitions = transitions
        self.orders = orders
        self.advisors = advisors
        self.tiers = tiers
        self.ratings = ratings

    @classmethod
    def for_connection(cls, conn) -> "Repositories":
        return cls(
            requests=RequestRepository(conn),
            assignments=AssignmentRepository(conn),
            transitions=TransitionRepository(conn),
            orders=OrderRepository(conn),
            advisors=AdvisorRepository(conn),
            tiers=TierRepository(conn),
            ratings=RatingRepository(conn),
        )


__all__ = [
    "Repositories",
    "RequestRepository",
    "AssignmentRepository",
    "TransitionRepository",
    "OrderRepository",
    "AdvisorRepository",
    "TierRepository",
    "RatingRepository",
]
