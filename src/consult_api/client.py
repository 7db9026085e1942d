"""
Async client for the consultation tRPC endpoint.

Used by operational scripts (see scripts/expire_offers.py) and integration
tests. Mirrors what the mobile client's request wrapper does: POST
{"id": 0, "json": input}, unwrap {"result": {"data": ...}}, and retry as GET
when the server answers METHOD_NOT_SUPPORTED.
"""

import json
from typing import Any
from typing import Dict
from typing import Optional

import httpx
from loguru import logger

from consult_api.errors import AuthenticationError
from consult_api.errors import ConflictError
from consult_api.errors import ForbiddenError
from consult_api.errors import MethodNotSupportedError
from consult_api.errors import NotFoundError
from consult_api.errors import ParseError
from consult_api.errors import StateError
from consult_api.errors import UpstreamError
from consult_api.errors import ValidationError
from consult_api.errors import WorkflowError

# Error data.code -> exception raised to the caller
ERROR_CLASSES = {
    cls.code: cls
    for cls in (
        ValidationError,
        ParseError,
        NotFoundError,
        ConflictError,
        StateError,
        ForbiddenError,
        UpstreamError,
        AuthenticationError,
        MethodNotSupportedError,
    )
}


class ConsultationClient:
    """tRPC client for consultations.* and partner.* procedures."""

    def __init__(
        self,
        base_url: str,
        user_id: Optional[int] = None,
        role: Optional[str] = None,
        advisor_id: Optional[int] = None,
        tier: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service root, e.g. http://localhost:8000
            user_id: Forwarded as X-User-Id (the auth layer's job in production)
            role: Forwarded as X-User-Role
            advisor_id: Forwarded as X-Advisor-Id
            tier: Forwarded as X-User-Tier
            headers: Extra headers (e.g. X-Webhook-Secret)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        identity_headers = {
            "X-User-Id": user_id,
            "X-User-Role": role,
            "X-Advisor-Id": advisor_id,
            "X-User-Tier": tier,
        }
        all_headers = {key: str(value) for key, value in identity_headers.items() if value is not None}
        all_headers.update(headers or {})

        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=all_headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ConsultationClient":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def query(self, path: str, input: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(path, input, method="GET")

    async def mutation(self, path: str, input: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(path, input, method="POST")

    async def request(self, path: str, input: Optional[Dict[str, Any]] = None, method: str = "AUTO") -> Any:
        """
        Call a procedure and return its unwrapped data.

        Args:
            path: Procedure path, e.g. consultations.create
            input: Procedure input
            method: GET, POST, or AUTO (POST, then GET on METHOD_NOT_SUPPORTED)

        Raises:
            WorkflowError: Subclass matching the error code returned by the server
            UpstreamError: Transport failure or a non-JSON response
        """
        method = method.upper()
        payload = input if input is not None else {}

        if method == "GET":
            return await self._send("GET", path, payload)
        if method == "POST":
            return await self._send("POST", path, payload)

        try:
            return await self._send("POST", path, payload)
        except MethodNotSupportedError:
            logger.debug("Retrying procedure as GET", procedure=path)
            return await self._send("GET", path, payload)

    async def _send(self, method: str, path: str, payload: Dict[str, Any]) -> Any:
        url = f"/api/trpc/{path}"
        try:
            if method == "GET":
                response = await self._client.get(url, params={"input": json.dumps(payload)})
            else:
                response = await self._client.post(url, json={"id": 0, "json": payload})
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Request to {path} timed out", path=path) from e
        except httpx.RequestError as e:
            raise UpstreamError(f"Could not reach consultation service: {e}", path=path) from e

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Invalid response from {path} ({response.status_code})", path=path, status_code=response.status_code
            ) from e

        if not isinstance(body, dict):
            raise UpstreamError(f"Unexpected response shape from {path}", path=path)

        error = body.get("error")
        if error or response.is_error:
            raise self._to_exception(path, response.status_code, error or {})

        data = (body.get("result") or {}).get("data")
        # superjson servers wrap the payload once more
        if isinstance(data, dict) and "json" in data and set(data) <= {"json", "meta"}:
            return data["json"]
        return data

    @staticmethod
    def _to_exception(path: str, status_code: int, error: Dict[str, Any]) -> WorkflowError:
        data = error.get("data") or {}
        code = data.get("code")
        message = error.get("message") or f"Request to {path} failed ({status_code})"
        error_class = ERROR_CLASSES.get(code, WorkflowError)
        return error_class(message, path=data.get("path") or path, http_status=data.get("httpStatus", status_code))
