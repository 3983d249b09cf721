from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from starlette.exceptions import HTTPException as StarletteHTTPException

from petichat.apps.api.errors import (
    http_exception_handler,
    petichat_exception_handler,
    tenant_predicate_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from petichat.apps.api.response import API_VERSION
from petichat.apps.api.routes.auth import router as auth_router
from petichat.apps.api.routes.cases import router as cases_router
from petichat.apps.api.routes.documents import router as documents_router
from petichat.apps.api.routes.editor import router as editor_router
from petichat.apps.api.routes.health import router as health_router
from petichat.apps.api.routes.jobs import router as jobs_router
from petichat.apps.api.routes.jurisprudence import router as jurisprudence_router
from petichat.apps.api.routes.metrics import router as metrics_router
from petichat.apps.api.routes.templates import router as templates_router
from petichat.apps.api.routes.theses import router as theses_router
from petichat.core.errors import PetichatError
from petichat.core.logging import configure_logging
from petichat.persistence.guards import TenantPredicateError
from petichat.providers.ai.registry import ProviderRegistry
from petichat.services.export import LocalFileExporter
from petichat.services.telemetry import record_request


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="PetiChat API")
    # Collaborators are app-scoped so tests can swap them on app.state.
    app.state.providers = ProviderRegistry()
    app.state.exporter = LocalFileExporter()

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        record_request(
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=(time.monotonic() - start) * 1000.0,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(PetichatError)
    async def _petichat_exception_handler(request: Request, exc: PetichatError):
        return await petichat_exception_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await http_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(TenantPredicateError)
    async def _tenant_predicate_exception_handler(request: Request, exc: TenantPredicateError):
        return await tenant_predicate_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    # Mount versioned v1 API routes.
    for router in (
        health_router,
        auth_router,
        cases_router,
        theses_router,
        jurisprudence_router,
        documents_router,
        editor_router,
        jobs_router,
        metrics_router,
        templates_router,
    ):
        app.include_router(router, prefix=f"/{API_VERSION}")

    def custom_openapi() -> dict:
        # Inject bearer auth into the OpenAPI schema.
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title="PetiChat API", version=API_VERSION, routes=app.routes)
        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {})["BearerAuth"] = {"type": "http", "scheme": "bearer"}
        public_paths = {"/v1/health", "/v1/auth/register"}
        for path, operations in schema.get("paths", {}).items():
            if path in public_paths:
                continue
            for operation in operations.values():
                operation.setdefault("security", [{"BearerAuth": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
