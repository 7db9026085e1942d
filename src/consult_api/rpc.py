"""
tRPC-compatible procedure registry and envelopes.

Procedures are registered per namespace with ProcedureRouter and served from a
single endpoint (see routes/routes_trpc.py):

    POST /api/trpc/consultations.create     body: {"id": 1, "json": {...}} or {...}
    GET  /api/trpc/consultations.list?input=<url-encoded JSON>

Success bodies are {"result": {"data": ...}}; errors use errors.error_envelope.
"""

import json
from decimal import Decimal
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import Optional
from typing import Type

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from consult_api.errors import MethodNotSupportedError
from consult_api.errors import NotFoundError
from consult_api.errors import ParseError

QUERY = "query"
MUTATION = "mutation"

# HTTP method each procedure kind is served on
KIND_METHODS = {QUERY: "GET", MUTATION: "POST"}

Handler = Callable[..., Awaitable[Any]]


class Procedure:
    """One callable procedure."""

    def __init__(
        self,
        path: str,
        kind: str,
        handler: Handler,
        input_model: Optional[Type[BaseModel]] = None,
        admin_only: bool = False,
        webhook: bool = False,
    ):
        self.path = path
        self.kind = kind
        self.handler = handler
        self.input_model = input_model
        self.admin_only = admin_only
        self.webhook = webhook

    @property
    def method(self) -> str:
        return KIND_METHODS[self.kind]

    def check_method(self, method: str) -> None:
        """Raise MethodNotSupportedError when a query is POSTed or a mutation is fetched with GET."""
        if method.upper() != self.method:
            raise MethodNotSupportedError(
                f"Unsupported {method.upper()}-request to {self.kind} procedure at path \"{self.path}\"",
                path=self.path,
                expected_method=self.method,
            )

    def parse_input(self, raw: Any) -> Optional[BaseModel]:
        """Validate raw input; pydantic.ValidationError propagates to the BAD_REQUEST handler."""
        if self.input_model is None:
            return None
        return self.input_model.model_validate(raw if raw is not None else {})


class ProcedureRouter:
    """
    Collects the procedures of one namespace.

    Usage:
        CONSULTATIONS = ProcedureRouter("consultations")

        @CONSULTATIONS.mutation("create", CreateRequestInput)
        async def create(workflow, identity, data): ...
    """

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self.procedures: Dict[str, Procedure] = {}

    def _path(self, name: str) -> str:
        return f"{self.namespace}.{name}" if self.namespace else name

    def _register(self, kind: str, name: str, input_model, **options) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            path = self._path(name)
            if path in self.procedures:
                raise ValueError(f"Procedure already registered: {path}")
            self.procedures[path] = Procedure(path, kind, handler, input_model, **options)
            return handler

        return decorator

    def query(self, name: str, input_model: Optional[Type[BaseModel]] = None, **options):
        return self._register(QUERY, name, input_model, **options)

    def mutation(self, name: str, input_model: Optional[Type[BaseModel]] = None, **options):
        return self._register(MUTATION, name, input_model, **options)

    def include(self, other: "ProcedureRouter") -> None:
        """Merge another router's procedures into this one."""
        for path, procedure in other.procedures.items():
            if path in self.procedures:
                raise ValueError(f"Procedure already registered: {path}")
            self.procedures[path] = procedure

    def get(self, path: str) -> Procedure:
        procedure = self.procedures.get(path)
        if procedure is None:
            raise NotFoundError(f"No \"query\"-procedure or \"mutation\"-procedure on path \"{path}\"", path=path)
        return procedure


def _unwrap(payload: Any) -> Any:
    # superjson clients send {"json": input, "meta": {...}}; batch-less tRPC clients add an "id"
    if isinstance(payload, dict) and "json" in payload:
        return payload["json"]
    return payload


def _loads(raw) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Procedure input is not valid JSON: {e}") from e


async def read_input(request: Request) -> Any:
    """Extract the procedure input from the query string (GET) or body (POST)."""
    if request.method.upper() == "GET":
        raw = request.query_params.get("input")
        if raw is None or raw == "":
            return None
        return _unwrap(_loads(raw))

    body = await request.body()
    if not body:
        return None
    return _unwrap(_loads(body))


def camelize(value: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase."""
    if isinstance(value, dict):
        return {to_camel(key) if isinstance(key, str) else key: camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value


def success_envelope(data: Any) -> dict:
    """
    Wrap procedure output as {"result": {"data": ...}} with JSON-safe, camelCase keys.

    Money goes out as a JSON number whether it sits on a model (the Money type) or
    in a plain result dict.
    """
    return {"result": {"data": camelize(jsonable_encoder(data, custom_encoder={Decimal: float}))}}
