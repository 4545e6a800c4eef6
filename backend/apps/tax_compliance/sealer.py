"""Versiegelung: deterministischer Snapshot + SHA-256."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Mapping

from .dto import BillingDocumentSnapshot


def _canonical(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): _canonical(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_canonical(item) for item in value]
    return value


def seal_payload(document: BillingDocumentSnapshot) -> Dict[str, Any]:
    """Snapshot that is hashed; top-level key order is fixed."""
    return {
        "document_id": document.document_id,
        "document_number": document.document_number,
        "status": document.status,
        "grand_total": _canonical(document.grand_total),
        "currency_code": document.currency_code,
        "tax_breakdown": [_canonical(asdict(entry)) for entry in document.tax_breakdown],
        "line_items": [_canonical(asdict(item)) for item in document.line_items],
        "totals": _canonical(document.totals),
    }


def canonical_json(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def compute_seal_hash(document: BillingDocumentSnapshot) -> str:
    return hashlib.sha256(canonical_json(seal_payload(document)).encode("utf-8")).hexdigest()
