from __future__ import annotations

from fastapi import Header, HTTPException, status

from backend.core.observability import bind_request_context
from backend.core.observability.metrics import increment_counter


def require_tenant(
    tenant_header: str | None = Header(None, alias="X-Tenant-Id", convert_underscores=False),
    trace_header: str | None = Header(None, alias="X-Trace-ID", convert_underscores=False),
) -> str:
    """FastAPI dependency returning the trimmed tenant id from ``X-Tenant-Id``.

    Binds tenant and trace id to the logging context; raises 422
    ``missing_tenant_header`` when the header is absent or blank.
    """
    tenant_id = (tenant_header or "").strip()
    if not tenant_id:
        increment_counter("tenant_validation_failures_total", labels={"reason": "missing"})
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "missing_tenant_header"},
        )
    bind_request_context(tenant_id, trace_header)
    return tenant_id
