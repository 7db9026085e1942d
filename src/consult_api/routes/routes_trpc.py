"""
tRPC Endpoint

Single HTTP entry point that dispatches to the registered consultations.* and
partner.* procedures.
"""

from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from consult_api.dependencies import get_optional_identity
from consult_api.dependencies import get_settings
from consult_api.dependencies import get_workflow
from consult_api.dependencies import require_identity
from consult_api.dependencies import verify_webhook_secret
from consult_api.errors import ForbiddenError
from consult_api.monitoring.logger import log_request_info
from consult_api.routes.routes_consultations import CONSULTATIONS
from consult_api.routes.routes_partner import PARTNER
from consult_api.rpc import ProcedureRouter
from consult_api.rpc import read_input
from consult_api.rpc import success_envelope
from consult_api.settings import Settings
from consult_api.workflow.models import Identity
from consult_api.workflow.orchestrator import ConsultationWorkflow

PROCEDURES = ProcedureRouter()
PROCEDURES.include(CONSULTATIONS)
PROCEDURES.include(PARTNER)

ROUTER_TRPC = APIRouter(tags=["tRPC"], prefix="/trpc")


@ROUTER_TRPC.api_route(
    "/{procedure}",
    methods=["GET", "POST"],
    summary="Call a consultations.* or partner.* procedure",
    responses={
        status.HTTP_200_OK: {"description": "{\"result\": {\"data\": ...}}"},
        status.HTTP_400_BAD_REQUEST: {"description": "Invalid procedure input"},
        status.HTTP_401_UNAUTHORIZED: {"description": "No identity forwarded by the auth layer"},
        status.HTTP_403_FORBIDDEN: {"description": "Caller may not perform this call"},
        status.HTTP_404_NOT_FOUND: {"description": "Unknown procedure or missing entity"},
        status.HTTP_405_METHOD_NOT_ALLOWED: {"description": "Query called with POST or mutation with GET"},
        status.HTTP_409_CONFLICT: {"description": "State already advanced by a racing actor"},
        status.HTTP_412_PRECONDITION_FAILED: {"description": "Operation invalid for the current status"},
        status.HTTP_502_BAD_GATEWAY: {"description": "Payment gateway failure"},
    },
)
async def call_procedure(
    procedure: str,
    request: Request,
    identity: Optional[Identity] = Depends(get_optional_identity),
    settings: Settings = Depends(get_settings),
):
    """
    Dispatch one tRPC call.

    Mutations are POSTed as {"id": n, "json": input} (a bare input object is also
    accepted); queries are fetched with GET ?input=<url-encoded JSON>.
    """
    log_request_info(request)

    target = PROCEDURES.get(procedure)
    target.check_method(request.method)

    if target.webhook:
        caller = verify_webhook_secret(request, settings)
    else:
        caller = require_identity(identity)
        if target.admin_only and not caller.is_admin:
            raise ForbiddenError(f"{target.path} requires the admin role", path=target.path)

    data = target.parse_input(await read_input(request))
    workflow: ConsultationWorkflow = get_workflow(request)

    result = await target.handler(workflow, caller, data)

    logger.debug("Procedure completed", procedure=target.path, kind=target.kind, caller=caller.describe())
    return JSONResponse(status_code=status.HTTP_200_OK, content=success_envelope(result))
