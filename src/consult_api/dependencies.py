"""FastAPI dependencies for accessing app state and the caller identity."""

import hmac
from typing import Optional

from fastapi import Header
from fastapi import Request

from consult_api.errors import AuthenticationError
from consult_api.errors import ForbiddenError
from consult_api.errors import UpstreamError
from consult_api.settings import Settings
from consult_api.workflow.enums import Role
from consult_api.workflow.enums import UserTier
from consult_api.workflow.models import Identity
from consult_api.workflow.orchestrator import ConsultationWorkflow

# Roles the upstream auth layer may assert; "system" is reserved for webhooks and triggers
HEADER_ROLES = {Role.USER, Role.ADVISOR, Role.ADMIN}

GATEWAY_IDENTITY = Identity(user_id=0, role=Role.SYSTEM)


def get_settings(request: Request) -> Settings:
    """
    Get application settings from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    Settings
        Application settings instance
    """
    return request.app.state.settings


def get_workflow(request: Request) -> ConsultationWorkflow:
    """
    Get the consultation workflow controller from app state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    ConsultationWorkflow
        Controller bound to the database pool and payment gateway

    Raises
    ------
    UpstreamError
        If the workflow database is not configured
    """
    workflow = getattr(request.app.state, "workflow", None)
    if workflow is None:
        raise UpstreamError("Consultation workflow database is not configured")
    return workflow


def _parse_int(value: Optional[str], header: str) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError as e:
        raise AuthenticationError(f"{header} header must be an integer") from e


async def get_optional_identity(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
    x_advisor_id: Optional[str] = Header(default=None, alias="X-Advisor-Id"),
    x_user_tier: Optional[str] = Header(default=None, alias="X-User-Tier"),
) -> Optional[Identity]:
    """
    Build the caller identity from the headers injected by the upstream auth layer.

    The service never authenticates on its own; these headers are trusted.

    Parameters
    ----------
    x_user_id : str, optional
        Authenticated user id
    x_user_role : str, optional
        user, advisor or admin (default user)
    x_advisor_id : str, optional
        Consultant id of an advisor account
    x_user_tier : str, optional
        Subscription tier (default free)

    Returns
    -------
    Identity or None
        None when no user id was forwarded

    Raises
    ------
    AuthenticationError
        If a forwarded header is malformed
    """
    user_id = _parse_int(x_user_id, "X-User-Id")
    if user_id is None:
        return None

    try:
        role = Role((x_user_role or Role.USER.value).strip().lower())
    except ValueError as e:
        raise AuthenticationError(f"Unknown role in X-User-Role: {x_user_role}") from e
    if role not in HEADER_ROLES:
        raise AuthenticationError(f"Role '{role.value}' cannot be asserted by a caller")

    try:
        tier = UserTier((x_user_tier or UserTier.FREE.value).strip().lower())
    except ValueError as e:
        raise AuthenticationError(f"Unknown tier in X-User-Tier: {x_user_tier}") from e

    return Identity(
        user_id=user_id,
        role=role,
        advisor_id=_parse_int(x_advisor_id, "X-Advisor-Id"),
        tier=tier,
    )


def require_identity(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise AuthenticationError("Authentication required")
    return identity


def verify_webhook_secret(request: Request, settings: Settings) -> Identity:
    """
    Check the X-Webhook-Secret header of a payment gateway callback.

    Returns
    -------
    Identity
        The system identity gateway callbacks act as

    Raises
    ------
    ForbiddenError
        If webhooks are not configured or the secret does not match
    """
    expected = settings.payment_webhook_secret
    if not expected:
        raise ForbiddenError("Payment webhooks are not configured")

    provided = request.headers.get("X-Webhook-Secret", "")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        raise ForbiddenError("Invalid webhook secret")
    return GATEWAY_IDENTITY
