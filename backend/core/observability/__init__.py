"""Observability wiring for the tax compliance service.

JSON logs carry tenant and trace id of the current request; counters and
duration histograms are kept in-process and read via ``metrics.get_metrics``.
"""
import uuid
from typing import Optional

from . import health, metrics
from .logging import init_logging, set_tenant_id, set_trace_id


def bind_request_context(tenant_id: Optional[str], trace_id: Optional[str] = None) -> str:
    """Attach tenant and trace id to subsequent log lines; returns the trace id.

    A fresh uuid4 is used when the caller (header, CLI) supplies none.
    """
    trace_id = trace_id or uuid.uuid4().hex
    set_trace_id(trace_id)
    set_tenant_id(tenant_id)
    return trace_id


def init_observability(enable_metrics: bool = True) -> None:
    init_logging()
    if enable_metrics:
        metrics.init_metrics()


__all__ = ["health", "metrics", "bind_request_context", "init_observability"]
