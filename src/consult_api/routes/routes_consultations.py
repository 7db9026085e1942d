"""
Consultation Procedures

consultations.* procedures. Each handler receives the workflow controller, the
caller identity and the validated input, and returns plain data that the
transport wraps in a tRPC envelope.
"""

from consult_api.rpc import ProcedureRouter
from consult_api.schemas.schemas_consultations import AdvisorRespondInput
from consult_api.schemas.schemas_consultations import AssignAdvisorInput
from consult_api.schemas.schemas_consultations import AttachFilesInput
from consult_api.schemas.schemas_consultations import ConfirmPaymentInput
from consult_api.schemas.schemas_consultations import CreateRequestInput
from consult_api.schemas.schemas_consultations import ExpireOffersInput
from consult_api.schemas.schemas_consultations import MatchAdvisorsInput
from consult_api.schemas.schemas_consultations import RateAdvisorInput
from consult_api.schemas.schemas_consultations import ReleasePaymentInput
from consult_api.schemas.schemas_consultations import RequestIdInput
from consult_api.schemas.schemas_consultations import ReservePaymentInput

CONSULTATIONS = ProcedureRouter("consultations")


# ════════════════════════════════════════════════════════════════════════════
# Mutations
# ════════════════════════════════════════════════════════════════════════════


@CONSULTATIONS.mutation("create", CreateRequestInput)
async def create(workflow, identity, data: CreateRequestInput):
    return await workflow.create_request(
        identity,
        summary=data.summary,
        amount=data.amount,
        files=[file.to_reference() for file in data.files],
    )


@CONSULTATIONS.mutation("assign", AssignAdvisorInput, admin_only=True)
async def assign(workflow, identity, data: AssignAdvisorInput):
    return await workflow.assign_advisor(identity, data.request_id, data.advisor_id)


@CONSULTATIONS.mutation("match", MatchAdvisorsInput)
async def match(workflow, identity, data: MatchAdvisorsInput):
    return await workflow.match_advisors(identity, data.request_id, data.to_filters())


@CONSULTATIONS.mutation("advisorRespond", AdvisorRespondInput)
async def advisor_respond(workflow, identity, data: AdvisorRespondInput):
    return await workflow.advisor_respond(identity, data.assignment_id, data.decision)


@CONSULTATIONS.mutation("promoteNextCandidate", RequestIdInput, admin_only=True)
async def promote_next_candidate(workflow, identity, data: RequestIdInput):
    return await workflow.promote_next_candidate(identity, data.request_id)


@CONSULTATIONS.mutation("expireOffers", ExpireOffersInput, admin_only=True)
async def expire_offers(workflow, identity, data: ExpireOffersInput):
    expired = await workflow.expire_offers(identity, data.older_than_minutes)
    return {"expired": len(expired), "assignmentIds": [assignment.id for assignment in expired]}


@CONSULTATIONS.mutation("reservePayment", ReservePaymentInput)
async def reserve_payment(workflow, identity, data: ReservePaymentInput):
    return await workflow.reserve_payment(identity, data.request_id, data.amount)


@CONSULTATIONS.mutation("confirmPayment", ConfirmPaymentInput, webhook=True)
async def confirm_payment(workflow, identity, data: ConfirmPaymentInput):
    return await workflow.confirm_payment(
        identity,
        data.order_id,
        success=data.success,
        gateway_payment_id=data.gateway_payment_id,
        gateway_reference=data.gateway_reference,
    )


@CONSULTATIONS.mutation("startSession", RequestIdInput)
async def start_session(workflow, identity, data: RequestIdInput):
    return await workflow.start_session(identity, data.request_id)


@CONSULTATIONS.mutation("completeSession", RequestIdInput)
async def complete_session(workflow, identity, data: RequestIdInput):
    return await workflow.complete_session(identity, data.request_id)


@CONSULTATIONS.mutation("releasePayment", ReleasePaymentInput)
async def release_payment(workflow, identity, data: ReleasePaymentInput):
    return await workflow.release_payment(identity, data.request_id, data.platform_fee_bps)


@CONSULTATIONS.mutation("completeAndRelease", RequestIdInput)
async def complete_and_release(workflow, identity, data: RequestIdInput):
    return await workflow.complete_and_release(identity, data.request_id)


@CONSULTATIONS.mutation("cancel", RequestIdInput)
async def cancel(workflow, identity, data: RequestIdInput):
    return await workflow.cancel_request(identity, data.request_id)


@CONSULTATIONS.mutation("close", RequestIdInput)
async def close(workflow, identity, data: RequestIdInput):
    return await workflow.close_request(identity, data.request_id)


@CONSULTATIONS.mutation("rate", RateAdvisorInput)
async def rate(workflow, identity, data: RateAdvisorInput):
    return await workflow.rate_advisor(identity, data.request_id, data.score, data.comment)


@CONSULTATIONS.mutation("attachFiles", AttachFilesInput)
async def attach_files(workflow, identity, data: AttachFilesInput):
    return await workflow.attach_files(identity, data.request_id, [file.to_reference() for file in data.files])


# ════════════════════════════════════════════════════════════════════════════
# Queries
# ════════════════════════════════════════════════════════════════════════════


@CONSULTATIONS.query("list")
async def list_requests(workflow, identity, data):
    return await workflow.list_requests(identity)


@CONSULTATIONS.query("get", RequestIdInput)
async def get_request(workflow, identity, data: RequestIdInput):
    return await workflow.get_request(identity, data.request_id)


@CONSULTATIONS.query("history", RequestIdInput)
async def history(workflow, identity, data: RequestIdInput):
    return await workflow.list_transitions(identity, data.request_id)


@CONSULTATIONS.query("advisorAssignments")
async def advisor_assignments(workflow, identity, data):
    return await workflow.advisor_assignments(identity)
