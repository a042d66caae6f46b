"""FastAPI application factory"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from lease_engine.api.middleware import MetricsMiddleware, RequestIDMiddleware
from lease_engine.api.v1 import applications, decision, payments, plan
from lease_engine.config import settings
from lease_engine.domain.exceptions import (
    ApplicationNotFound,
    DomainException,
    ForbiddenAction,
    PlanNotSet,
    StateConflict,
    ValidationError,
)
from lease_engine.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)


def _error_status(exc: DomainException) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, (ApplicationNotFound, PlanNotSet)):
        return 404
    if isinstance(exc, ForbiddenAction):
        return 403
    if isinstance(exc, StateConflict):
        return 409
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Map domain errors to {error: code}; conflicts also report the stored status"""
    if isinstance(exc, StateConflict):
        body = {
            "error": StateConflict.code,
            "reason": exc.code,
            "current": exc.current,
            "action": exc.action,
        }
        if exc.needs:
            body["needs"] = list(exc.needs)
        return JSONResponse(status_code=409, content=body)
    return JSONResponse(status_code=_error_status(exc), content={"error": exc.code, "detail": str(exc)})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Lease Engine",
        description="Lease payment plans, obligations, allocation and application lifecycle",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(applications.router, prefix="/v1", tags=["applications"])
    app.include_router(decision.router, prefix="/v1", tags=["lifecycle"])
    app.include_router(plan.router, prefix="/v1", tags=["plans"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])

    return app


app = create_app()
