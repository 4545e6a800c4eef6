"""Datentransferobjekte für den E-Rechnungs-Codec.

Der Codec kennt keine Billing-Belege: der Service übersetzt einen
Beleg-Snapshot in ein ``EInvoicePayload``. Beträge bleiben ``Decimal`` und
werden erst beim Rendern mit ``ROUND_HALF_UP`` auf zwei Stellen gebracht.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional


def quantize_amount(amount: Decimal) -> Decimal:
    """Rundet Beträge auf zwei Nachkommastellen (ROUND_HALF_UP)."""

    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class EInvoiceLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal


@dataclass(frozen=True, slots=True)
class EInvoicePayload:
    format: str
    document_id: int
    document_number: Optional[str]
    issue_date: date
    currency: str
    grand_total: Decimal
    buyer_reference: Optional[str] = None
    buyer_country: Optional[str] = None
    line_items: tuple[EInvoiceLine, ...] = ()
    tax_categories: tuple[str, ...] = ()

    def number_or_id(self) -> str:
        return self.document_number or str(self.document_id)


@dataclass(slots=True)
class EInvoiceValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)
