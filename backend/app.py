from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from backend.apps.tax_compliance.api import router as tax_compliance_router
from backend.apps.tax_compliance.errors import TaxComplianceError
from backend.apps.tax_compliance.memory import InMemoryBillingDocumentStore
from backend.apps.tax_compliance.repository import BillingDocumentStore, build_engine, create_schema
from backend.apps.tax_compliance.service import build_service
from backend.core.config import settings
from backend.core.observability import init_observability
from backend.core.observability.health import router as health_router
from backend.core.observability.logging import logger

_STATUS_BY_KIND = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_input": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "validation_failed": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "state_conflict": status.HTTP_409_CONFLICT,
}


async def _tax_compliance_error_handler(request: Request, exc: TaxComplianceError) -> JSONResponse:
    status_code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    logger.info("tax_compliance_request_rejected", extra={"error": exc.code, "status_code": status_code})
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def _http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    # Routers raise HTTPException(detail={"error": ...}); return that body unwrapped.
    content = exc.detail if isinstance(exc.detail, dict) else {"error": "http_error", "detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


def create_app(
    *,
    engine: Optional[Engine] = None,
    document_store: Optional[BillingDocumentStore] = None,
) -> FastAPI:
    init_observability(enable_metrics=settings.enable_metrics)

    app = FastAPI(title="Tax Compliance DE")

    engine = engine or build_engine(settings.database_url)
    create_schema(engine)
    app.state.engine = engine
    app.state.document_store = document_store or InMemoryBillingDocumentStore()
    app.state.tax_compliance_service = build_service(engine, app.state.document_store, settings=settings)

    app.add_exception_handler(TaxComplianceError, _tax_compliance_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)

    # Routers
    app.include_router(health_router)
    app.include_router(tax_compliance_router)

    return app
