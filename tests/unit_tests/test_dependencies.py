"""Unit tests for dependencies.py."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from consult_api.dependencies import GATEWAY_IDENTITY
from consult_api.dependencies import get_optional_identity
from consult_api.dependencies import get_settings
from consult_api.dependencies import get_workflow
from consult_api.dependencies import require_identity
from consult_api.dependencies import verify_webhook_secret
from consult_api.errors import AuthenticationError
from consult_api.errors import ForbiddenError
from consult_api.errors import UpstreamError
from consult_api.workflow.enums import Role
from consult_api.workflow.enums import UserTier
from tests.consts import WEBHOOK_SECRET


def request_with_state(**state):
    request = MagicMock()
    request.app.state = SimpleNamespace(**state)
    return request


class TestGetOptionalIdentity:
    @pytest.mark.asyncio
    async def test_full_identity(self):
        identity = await get_optional_identity(
            x_user_id="507", x_user_role="Advisor", x_advisor_id="7", x_user_tier="pro"
        )

        assert identity.user_id == 507
        assert identity.role == Role.ADVISOR
        assert identity.advisor_id == 7
        assert identity.tier == UserTier.PRO
        assert identity.is_advisor

    @pytest.mark.asyncio
    async def test_defaults(self):
        identity = await get_optional_identity(x_user_id="100", x_user_role=None, x_advisor_id=None, x_user_tier=None)

        assert identity.role == Role.USER
        assert identity.tier == UserTier.FREE

    @pytest.mark.asyncio
    async def test_no_user_id(self):
        assert await get_optional_identity(x_user_id=None, x_user_role="admin", x_advisor_id=None, x_user_tier=None) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [
            {"x_user_id": "abc"},
            {"x_user_id": "1", "x_user_role": "superuser"},
            {"x_user_id": "1", "x_user_role": "system"},
            {"x_user_id": "1", "x_user_tier": "platinum"},
            {"x_user_id": "1", "x_advisor_id": "seven"},
        ],
        ids=["bad_user_id", "unknown_role", "system_role", "unknown_tier", "bad_advisor_id"],
    )
    async def test_malformed_headers(self, headers):
        arguments = {"x_user_id": None, "x_user_role": None, "x_advisor_id": None, "x_user_tier": None}
        arguments.update(headers)

        with pytest.raises(AuthenticationError):
            await get_optional_identity(**arguments)


class TestRequireIdentity:
    def test_missing_identity(self):
        with pytest.raises(AuthenticationError):
            require_identity(None)

    def test_passes_identity_through(self):
        assert require_identity(GATEWAY_IDENTITY) is GATEWAY_IDENTITY


class TestAppState:
    def test_get_settings(self, mock_settings):
        assert get_settings(request_with_state(settings=mock_settings)) is mock_settings

    def test_get_workflow_disabled(self):
        with pytest.raises(UpstreamError):
            get_workflow(request_with_state(workflow=None))

    def test_get_workflow(self, workflow):
        assert get_workflow(request_with_state(workflow=workflow)) is workflow


class TestVerifyWebhookSecret:
    def test_valid_secret(self, mock_settings):
        request = MagicMock()
        request.headers = {"X-Webhook-Secret": WEBHOOK_SECRET}

        identity = verify_webhook_secret(request, mock_settings)

        assert identity.role == Role.SYSTEM
        assert identity.is_system

    @pytest.mark.parametrize("headers", [{}, {"X-Webhook-Secret": "wrong"}])
    def test_invalid_secret(self, mock_settings, headers):
        request = MagicMock()
        request.headers = headers

        with pytest.raises(ForbiddenError):
            verify_webhook_secret(request, mock_settings)

    def test_webhooks_disabled_without_secret(self, mock_settings):
        request = MagicMock()
        request.headers = {"X-Webhook-Secret": ""}
        settings = mock_settings.model_copy(update={"payment_webhook_secret": None})

        with pytest.raises(ForbiddenError):
            verify_webhook_secret(request, settings)
