"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from installment_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from installment_engine.api.v1 import installments, plans, reports, sweeps
from installment_engine.domain.exceptions import (
    DomainException,
    InstallmentNotFound,
    InvoiceNotFound,
    PlanNotFound,
)
from installment_engine.infrastructure.observability.logging import setup_logging
from installment_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)

NOT_FOUND_ERRORS = (InvoiceNotFound, PlanNotFound, InstallmentNotFound)

CATEGORY_STATUS_CODES = {
    "validation": 422,
    "conflict": 409,
    "downstream": 502,
}


def status_code_for(exc: DomainException) -> int:
    if isinstance(exc, NOT_FOUND_ERRORS):
        return 404
    return CATEGORY_STATUS_CODES.get(exc.category, 500)


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render domain errors with both Arabic and English messages"""
    status_code = status_code_for(exc)
    request_id = getattr(request.state, "request_id", "unknown")
    if exc.category == "downstream":
        logging.error(
            f"Downstream failure: {exc.detail}",
            extra={"request_id": request_id, "error": exc.kind.value},
        )
    else:
        logging.warning(
            f"Request rejected: {exc.kind.value}",
            extra={"request_id": request_id, "error": exc.kind.value, "detail": exc.detail},
        )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Installment Payment Plan Engine",
        description="Installment plans, automated collections, late fees and plan analytics",
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
    app.include_router(plans.router, prefix="/v1", tags=["plans"])
    app.include_router(installments.router, prefix="/v1", tags=["installments"])
    app.include_router(sweeps.router, prefix="/v1", tags=["sweeps"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
