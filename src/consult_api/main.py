from textwrap import dedent
from typing import Optional

import pydantic
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from loguru import logger

from consult_api.errors import WorkflowError
from consult_api.errors import handle_broad_exceptions
from consult_api.errors import handle_pydantic_validation_errors
from consult_api.errors import handle_workflow_errors
from consult_api.monitoring.logger import configure_logger
from consult_api.monitoring.request_context import RequestContextMiddleware
from consult_api.payments.gateway import build_payment_gateway
from consult_api.routes.routes_health import ROUTER_HEALTH
from consult_api.routes.routes_trpc import ROUTER_TRPC
from consult_api.settings import Settings
from consult_api.workflow.db.pool import WorkflowDBPool
from consult_api.workflow.orchestrator import ConsultationWorkflow


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create a FastAPI application.

    Configuration is loaded from environment variables (or a .env file) via pydantic-settings.
    The consultation workflow is enabled when DATABASE_URL is set.
    """
    settings = settings or Settings()

    configure_logger(level=settings.log_level, json_logs=settings.json_logs)

    logger.info(
        "Configuration loaded successfully",
        database_configured=bool(settings.database_url),
        payment_gateway=settings.payment_gateway,
        webhook_secret_set=bool(settings.payment_webhook_secret),
        initial_offer_fanout=settings.initial_offer_fanout,
        platform_fee_bps=settings.platform_fee_bps,
    )

    app = FastAPI(
        title="Consultation Workflow API",
        version="v1",
        description=dedent(
            """
        Consultation request lifecycle: create, offer to ranked advisors, accept/decline,
        reserve payment, run the session, and settle the advisor payout.

        | Surface | Notes |
        | --- | --- |
        | `/api/trpc/{procedure}` | tRPC-compatible procedures (`consultations.*`, `partner.*`) |
        | `/api/health` | liveness |
        | `/api/health/ready` | database readiness |
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
    )
    app.state.settings = settings
    app.state.db_pool = None
    app.state.workflow = None

    # Add request context middleware for tracking who/where requests come from
    app.add_middleware(RequestContextMiddleware)
    app.include_router(ROUTER_HEALTH, prefix="/api")
    app.include_router(ROUTER_TRPC, prefix="/api")

    if settings.database_url:
        logger.info("Initializing consultation workflow")

        db_pool = WorkflowDBPool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        payment_gateway = build_payment_gateway(settings)

        app.state.db_pool = db_pool
        app.state.payment_gateway = payment_gateway
        app.state.workflow = ConsultationWorkflow(db_pool, payment_gateway, settings)

        @app.on_event("startup")
        async def startup_workflow():
            """Open the database pool and apply schema.sql."""
            await app.state.db_pool.initialize()
            logger.success("Consultation workflow database initialized", gateway=app.state.payment_gateway.name)

        @app.on_event("shutdown")
        async def shutdown_workflow():
            """Close database connections and the gateway client."""
            await app.state.payment_gateway.close()
            await app.state.db_pool.close()
            logger.info("Consultation workflow shut down")

    else:
        logger.warning("Consultation workflow disabled (DATABASE_URL not set)")

    app.add_exception_handler(
        exc_class_or_status_code=WorkflowError,
        handler=handle_workflow_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=RequestValidationError,
        handler=handle_pydantic_validation_errors,
    )

    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name
