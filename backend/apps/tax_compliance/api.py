from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from pydantic import BaseModel

from backend.core.tenant.context import require_tenant

from .service import TaxComplianceService

router = APIRouter(prefix="/api/v1/tax-compliance-de")


class CorrectionRequest(BaseModel):
    reason: Optional[str] = None
    due_date: Optional[str] = None
    line_items: Optional[list[dict[str, Any]]] = None


class ImportRequest(BaseModel):
    format: Optional[str] = None
    xml_content: Optional[str] = None


def get_service(request: Request) -> TaxComplianceService:
    return request.app.state.tax_compliance_service


@router.get("/config")
def get_config(
    tenant_id: str = Depends(require_tenant),
    service: TaxComplianceService = Depends(get_service),
) -> dict[str, Any]:
    return {"data": service.get_config(tenant_id)}


@router.put("/config")
def save_config(
    payload: dict[str, Any] = Body(...),
    tenant_id: str = Depends(require_tenant),
    service: TaxComplianceService = Depends(get_service),
) -> dict[str, Any]:
    return {"data": service.save_config(tenant_id, payload)}


@router.post("/documents/{document_id}/preflight")
def preflight_document(
    document_id: int,
    tenant_id: str = Depends(require_tenant),
    service: TaxComplianceService = Depends(get_service),
) -> dict[str, Any]:
    return {"data": service.preflight(tenant_id, document_id).to_dict()}


@router.post("/documents/{document_id}/seal")
def seal_document(
    document_id: int,
    tenant_id: str = Depends(require_tenant),
    service: TaxComplianceService = Depends(get_service),
) -> dict[str, Any]:
    return {"data": service.seal(tenant_id, document_id)}


@router.get("/documents/{document_id}/seal/verify")
def verify_seal(
    document_id: int,
    tenant_id: str = Depends(require_tenant),
    service: TaxComplianceService = Depends(get_service),
) -> dict[str, Any]:
    return {"data": service.verify_seal(tenant_id, document_id)}


@router.post("/documents/{document_id}/corrections", status_code=status.HTTP_201_CREATED)
def create_correction(
    document_id: int,
    body: Optional[CorrectionRequest] = None,
    tenant_id: str = Depends(require_tenant),
    service: TaxComplianceService = Depends(get_service),
) -> dict[str, Any]:
    body = body or CorrectionRequest()
    result = service.create_correction(
        tenant_id,
        document_id,
        reason=body.reason,
        due_date=body.due_date,
        line_items=body.line_items,
    )
    return {"data": result}


@router.get("/documents/{document_id}/einvoice")
def export_einvoice(
    document_id: int,
    format: str = Query("xrechnung"),
    tenant_id: str = Depends(require_tenant),
    service: TaxComplianceService = Depends(get_service),
) -> dict[str, Any]:
    return {"data": service.export_einvoice(tenant_id, document_id, format)}


@router.post("/einvoice/import", status_code=status.HTTP_201_CREATED)
def import_einvoice(
    body: ImportRequest,
    tenant_id: str = Depends(require_tenant),
    service: TaxComplianceService = Depends(get_service),
) -> dict[str, Any]:
    return {"data": service.import_einvoice(tenant_id, body.model_dump())}
