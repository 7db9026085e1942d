"""
Consultation Procedure Input Schemas

Input models for the consultations.* and partner.* procedures. Field names are
camelCase on the wire (requestId, assignmentId) and snake_case in Python.
"""

from decimal import Decimal
from typing import List
from typing import Optional

from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel

from consult_api.workflow.enums import Decision
from consult_api.workflow.models import FileReference
from consult_api.workflow.pricing import MAX_AMOUNT
from consult_api.workflow.ranking import RankingFilters


class ProcedureInput(BaseModel):
    """Base for procedure inputs: camelCase aliases, snake_case names also accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ════════════════════════════════════════════════════════════════════════════
# Shared
# ════════════════════════════════════════════════════════════════════════════


class FileReferenceInput(ProcedureInput):
    file_id: int = Field(gt=0)
    name: str = Field(min_length=1, max_length=255)

    def to_reference(self) -> FileReference:
        return FileReference(file_id=self.file_id, name=self.name)


class RequestIdInput(ProcedureInput):
    request_id: int = Field(gt=0)


# ════════════════════════════════════════════════════════════════════════════
# Request creation and matching
# ════════════════════════════════════════════════════════════════════════════


class CreateRequestInput(ProcedureInput):
    summary: str
    amount: Optional[Decimal] = Field(
        default=None, le=MAX_AMOUNT, validation_alias=AliasChoices("amount", "grossAmountKwd")
    )
    files: List[FileReferenceInput] = Field(default_factory=list)


class AssignAdvisorInput(RequestIdInput):
    advisor_id: Optional[int] = Field(default=None, gt=0)


class MatchAdvisorsInput(RequestIdInput):
    specialty: Optional[str] = None
    language: Optional[str] = None
    min_rating: Optional[float] = Field(default=None, ge=1, le=5)
    require_availability: bool = False

    def to_filters(self) -> RankingFilters:
        return RankingFilters(
            specialty=self.specialty,
            language=self.language,
            min_rating=self.min_rating,
            require_availability=self.require_availability,
        )


class AdvisorRespondInput(ProcedureInput):
    assignment_id: int = Field(gt=0)
    decision: Decision


class ExpireOffersInput(ProcedureInput):
    older_than_minutes: Optional[int] = Field(default=None, ge=0)


# ════════════════════════════════════════════════════════════════════════════
# Payment and settlement
# ════════════════════════════════════════════════════════════════════════════


class ReservePaymentInput(RequestIdInput):
    amount: Optional[Decimal] = Field(
        default=None, gt=0, le=MAX_AMOUNT, validation_alias=AliasChoices("amount", "grossAmountKwd")
    )


class ConfirmPaymentInput(ProcedureInput):
    order_id: int = Field(gt=0)
    success: bool
    gateway_payment_id: Optional[str] = Field(default=None, max_length=255)
    gateway_reference: Optional[str] = Field(default=None, max_length=255)


class ReleasePaymentInput(RequestIdInput):
    platform_fee_bps: Optional[int] = Field(default=None, ge=0, le=10000)


# ════════════════════════════════════════════════════════════════════════════
# Closing and files
# ════════════════════════════════════════════════════════════════════════════


class RateAdvisorInput(RequestIdInput):
    score: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)


class AttachFilesInput(RequestIdInput):
    files: List[FileReferenceInput] = Field(min_length=1)
