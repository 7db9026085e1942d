"""
Workflow Models Module

Pydantic models for the consultation workflow database entities.
"""

from consult_api.workflow.models.request import ConsultationRequest, FileReference
from consult_api.workflow.models.assignment import RequestAssignment
from consult_api.workflow.models.transition import RequestTransition
from consult_api.workflow.models.order import Order
from consult_api.workflow.models.advisor import Advisor, TierPolicy
from consult_api.workflow.models.rating import AdvisorRating
from consult_api.workflow.models.identity import Identity

__all__ = [
    "ConsultationRequest",
    "FileReference",
    "RequestAssignment",
    "RequestTransition",
    "Order",
    "Advisor",
    "TierPolicy",
    "AdvisorRating",
    "Identity",
]
