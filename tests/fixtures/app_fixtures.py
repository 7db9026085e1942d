"""Fixtures for FastAPI application and settings."""

import sys
from pathlib import Path
from typing import Any
from typing import Dict
from typing import Optional
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from starlette.testclient import TestClient as StarletteTestClient

from tests.consts import USER_HEADERS
from tests.consts import WEBHOOK_SECRET

# Ensure tests can import from parent directory
THIS_DIR = Path(__file__).parent
TESTS_DIR = THIS_DIR.parent
TESTS_DIR_PARENT = (TESTS_DIR / "..").resolve()
sys.path.insert(0, str(TESTS_DIR_PARENT))

# Default headers: a plain user forwarded by the auth layer
DEFAULT_TEST_HEADERS = USER_HEADERS


class AuthenticatedTestClient(StarletteTestClient):
    """Test client that automatically includes the identity headers of the auth layer."""

    def __init__(self, *args: Any, default_headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> None:
        """Initialize with default headers."""
        super().__init__(*args, **kwargs)
        self._default_headers = default_headers or DEFAULT_TEST_HEADERS

    def _merge_headers(self, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Merge default headers with provided headers."""
        merged = dict(self._default_headers)
        if headers:
            merged.update(headers)
        return merged

    def get(self, url: str, **kwargs: Any) -> Any:
        """GET request with default headers."""
        kwargs["headers"] = self._merge_headers(kwargs.get("headers"))
        return super().get(url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        """POST request with default headers."""
        kwargs["headers"] = self._merge_headers(kwargs.get("headers"))
        return super().post(url, **kwargs)


@pytest.fixture
def mock_settings():
    """Settings with test configuration; no database, so create_app leaves the workflow unset."""
    from consult_api.settings import Settings

    with patch.dict(
        "os.environ",
        {
            "PAYMENT_WEBHOOK_SECRET": WEBHOOK_SECRET,
            "PAYMENT_GATEWAY": "placeholder",
            "LOG_LEVEL": "DEBUG",
        },
    ):
        settings = Settings(_env_file=None, database_url=None)
        yield settings


@pytest.fixture
def app(mock_settings):
    """Create FastAPI test application with mocked settings (workflow disabled)."""
    from consult_api.main import create_app

    app = create_app(settings=mock_settings)
    yield app


@pytest.fixture
def app_with_workflow(app, workflow):
    """FastAPI app whose workflow controller runs against the in-memory store."""
    app.state.workflow = workflow
    yield app


@pytest.fixture
def client(app_with_workflow):
    """Create FastAPI test client with default user headers."""
    with AuthenticatedTestClient(app_with_workflow) as test_client:
        yield test_client


@pytest.fixture
def unauthenticated_client(app_with_workflow):
    """Create FastAPI test client without identity headers (for testing auth failures)."""
    with TestClient(app_with_workflow) as test_client:
        yield test_client


@pytest.fixture
def client_without_workflow(app):
    """Test client for an app started without DATABASE_URL."""
    with AuthenticatedTestClient(app) as test_client:
        yield test_client
