"""In-Memory Belegspeicher für Entwicklung, Tests und das Referenz-Gate."""

from __future__ import annotations

import threading
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .dto import BillingDocumentSnapshot, CreditNotePayload
from .errors import NotFoundError

_CENT = Decimal("0.01")


class InMemoryBillingDocumentStore:
    """Dictionary-backed document store keyed by ``(tenant_id, document_id)``."""

    def __init__(self) -> None:
        self._documents: Dict[Tuple[str, int], BillingDocumentSnapshot] = {}
        self._lock = threading.Lock()
        self._next_id = 1

    def register(
        self,
        tenant_id: str,
        document: Union[BillingDocumentSnapshot, Mapping[str, Any]],
    ) -> BillingDocumentSnapshot:
        snapshot = (
            document
            if isinstance(document, BillingDocumentSnapshot)
            else BillingDocumentSnapshot.from_mapping(document)
        )
        with self._lock:
            self._documents[(tenant_id, snapshot.document_id)] = snapshot
            self._next_id = max(self._next_id, snapshot.document_id + 1)
        return snapshot

    def update(self, tenant_id: str, document_id: int, **changes: Any) -> BillingDocumentSnapshot:
        with self._lock:
            key = (tenant_id, document_id)
            if key not in self._documents:
                raise NotFoundError("document_not_found")
            self._documents[key] = replace(self._documents[key], **changes)
            return self._documents[key]

    def get_document(self, tenant_id: str, document_id: int) -> Optional[BillingDocumentSnapshot]:
        return self._documents.get((tenant_id, document_id))

    def create_credit_note(self, tenant_id: str, source_document_id: int, payload: CreditNotePayload) -> int:
        source = self.get_document(tenant_id, source_document_id)
        if source is None:
            raise NotFoundError("document_not_found")
        total = sum((item.quantity * item.unit_price for item in payload.line_items), Decimal("0"))
        with self._lock:
            document_id = self._next_id
            self._next_id += 1
            self._documents[(tenant_id, document_id)] = BillingDocumentSnapshot(
                document_id=document_id,
                document_type=payload.document_type,
                status="draft",
                currency_code=source.currency_code,
                grand_total=total.quantize(_CENT, rounding=ROUND_HALF_UP),
                due_date=payload.due_date,
                reference_document_id=payload.reference_document_id,
                customer_name_snapshot=source.customer_name_snapshot,
                line_items=payload.line_items,
                addresses=source.addresses,
            )
        return document_id

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._next_id = 1
