"""Datentransferobjekte für die Steuer-Compliance (DE).

Typed records for tax profiles, billing document snapshots, preflight
reports and the two persisted record kinds. Untyped payloads from the
document store or HTTP layer are parsed once at the boundary
(``from_mapping``); numeric fields become ``Decimal`` and non-numeric input
is rejected with ``InvalidInputError`` instead of being coerced to zero.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from .errors import InvalidInputError

TaxCategory = Literal["standard", "reduced", "zero", "reverse_charge", "intra_community"]
TAX_CATEGORIES: tuple[str, ...] = (
    "standard",
    "reduced",
    "zero",
    "reverse_charge",
    "intra_community",
)

DOCUMENT_TYPES: tuple[str, ...] = (
    "quote",
    "order_confirmation",
    "invoice",
    "credit_note",
    "cancellation",
)
CORRECTION_DOCUMENT_TYPES = frozenset({"credit_note", "cancellation"})
SALES_DOCUMENT_TYPES = frozenset({"quote", "order_confirmation", "invoice"})
DUE_DATE_REQUIRED_TYPES = frozenset({"invoice", "credit_note", "cancellation"})
FINALIZED_STATUSES = frozenset({"sent", "due", "overdue", "partially_paid", "paid"})
CUSTOMER_ADDRESS_TYPES = ("billing", "shipping")

# Obergrenze (exklusiv) für |Betrag|, Menge und Steuersatz.
MAX_DECIMAL_MAGNITUDE = Decimal("1e12")
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")

PREFLIGHT_PENDING = "pending"
PREFLIGHT_PASSED = "passed"


def non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        candidate = value.strip()
        if candidate:
            return candidate
    return None


def parse_decimal(value: Any, field_name: str, *, default: Optional[Decimal] = None) -> Decimal:
    """Parse a numeric payload value into ``Decimal``.

    ``None`` (or a blank string) yields ``default``; without a default the
    value is required. Booleans, NaN/Infinity and unparseable strings are
    rejected, as are magnitudes of ``MAX_DECIMAL_MAGNITUDE`` and above.
    """

    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise InvalidInputError("invalid_numeric_value", field_name)
        return default
    if isinstance(value, bool):
        raise InvalidInputError("invalid_numeric_value", field_name)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InvalidInputError("invalid_numeric_value", field_name) from exc
    else:
        raise InvalidInputError("invalid_numeric_value", field_name)
    if not result.is_finite() or abs(result) >= MAX_DECIMAL_MAGNITUDE:
        raise InvalidInputError("invalid_numeric_value", field_name)
    return result


def parse_currency_code(value: Any) -> str:
    """ISO 4217 style code, upper-cased; blank means ``EUR``."""
    if value is not None and not isinstance(value, str):
        raise InvalidInputError("invalid_currency_code", str(value))
    code = (value or "").strip().upper() or "EUR"
    if not _CURRENCY_RE.match(code):
        raise InvalidInputError("invalid_currency_code", code)
    return code


def parse_optional_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise InvalidInputError("invalid_date_value", field_name) from exc
    raise InvalidInputError("invalid_date_value", field_name)


def parse_optional_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidInputError("invalid_date_value", field_name) from exc
    raise InvalidInputError("invalid_date_value", field_name)


def _optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidInputError("invalid_numeric_value", field_name)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError("invalid_numeric_value", field_name) from exc


@dataclass(frozen=True, slots=True)
class LineItem:
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    tax_category_hint: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LineItem":
        if not isinstance(data, Mapping):
            raise InvalidInputError("invalid_line_item")
        hint = non_empty_str(data.get("tax_category_hint") or data.get("tax_category"))
        return cls(
            description=str(data.get("description") or ""),
            quantity=parse_decimal(data.get("quantity"), "quantity", default=Decimal("1")),
            unit_price=parse_decimal(data.get("unit_price"), "unit_price"),
            tax_rate=parse_decimal(data.get("tax_rate"), "tax_rate", default=Decimal("0")),
            tax_category_hint=hint.lower() if hint else None,
        )

    def sign_flipped(self) -> "LineItem":
        """Correction line: positive quantity, negative unit price."""
        return LineItem(
            description=self.description,
            quantity=abs(self.quantity),
            unit_price=-abs(self.unit_price),
            tax_rate=self.tax_rate,
            tax_category_hint=self.tax_category_hint,
        )


@dataclass(frozen=True, slots=True)
class Address:
    address_type: str
    country: Optional[str] = None
    company_name: Optional[str] = None
    street: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Address":
        country = non_empty_str(data.get("country"))
        return cls(
            address_type=str(data.get("address_type") or "").strip().lower(),
            country=country.upper() if country else None,
            company_name=non_empty_str(data.get("company_name")),
            street=non_empty_str(data.get("street")),
            postal_code=non_empty_str(data.get("postal_code")),
            city=non_empty_str(data.get("city")),
        )


@dataclass(frozen=True, slots=True)
class TaxBreakdownEntry:
    tax_rate: Decimal
    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TaxBreakdownEntry":
        zero = Decimal("0")
        return cls(
            tax_rate=parse_decimal(data.get("tax_rate"), "tax_rate", default=zero),
            net_amount=parse_decimal(data.get("net_amount"), "net_amount", default=zero),
            tax_amount=parse_decimal(data.get("tax_amount"), "tax_amount", default=zero),
            gross_amount=parse_decimal(data.get("gross_amount"), "gross_amount", default=zero),
        )


@dataclass(frozen=True, slots=True)
class BillingDocumentSnapshot:
    """Hydrated billing document as returned by the Billing Document Store."""

    document_id: int
    document_type: str
    status: str
    currency_code: str
    grand_total: Decimal
    document_number: Optional[str] = None
    due_date: Optional[date] = None
    reference_document_id: Optional[int] = None
    customer_name_snapshot: Optional[str] = None
    finalized_at: Optional[datetime] = None
    line_items: tuple[LineItem, ...] = ()
    tax_breakdown: tuple[TaxBreakdownEntry, ...] = ()
    addresses: tuple[Address, ...] = ()
    totals: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BillingDocumentSnapshot":
        document_type = str(data.get("document_type") or "invoice").strip().lower()
        if document_type not in DOCUMENT_TYPES:
            raise InvalidInputError("invalid_document_type", document_type)
        raw_id = data.get("document_id")
        document_id = _optional_int(raw_id if raw_id is not None else data.get("id"), "document_id")
        if document_id is None:
            raise InvalidInputError("invalid_numeric_value", "document_id")
        return cls(
            document_id=document_id,
            document_type=document_type,
            status=str(data.get("status") or "draft").strip().lower(),
            currency_code=parse_currency_code(data.get("currency_code")),
            grand_total=parse_decimal(data.get("grand_total"), "grand_total", default=Decimal("0")),
            document_number=non_empty_str(data.get("document_number")),
            due_date=parse_optional_date(data.get("due_date"), "due_date"),
            reference_document_id=_optional_int(data.get("reference_document_id"), "reference_document_id"),
            customer_name_snapshot=non_empty_str(data.get("customer_name_snapshot")),
            finalized_at=parse_optional_datetime(data.get("finalized_at"), "finalized_at"),
            line_items=tuple(LineItem.from_mapping(item) for item in data.get("line_items") or ()),
            tax_breakdown=tuple(
                TaxBreakdownEntry.from_mapping(entry) for entry in data.get("tax_breakdown") or ()
            ),
            addresses=tuple(Address.from_mapping(addr) for addr in data.get("addresses") or ()),
            totals=dict(data.get("totals") or {}),
        )

    def customer_country(self) -> Optional[str]:
        """Country of the first billing/shipping address that has one."""
        for address in self.addresses:
            if address.address_type in CUSTOMER_ADDRESS_TYPES and address.country:
                return address.country
        return None


@dataclass(frozen=True, slots=True)
class CreditNotePayload:
    """What the correction workflow asks the document store to create."""

    reference_document_id: int
    line_items: tuple[LineItem, ...]
    due_date: Optional[date] = None
    document_type: str = "credit_note"


@dataclass(slots=True)
class TaxProfile:
    tenant_id: str
    business_name: Optional[str] = None
    tax_number: Optional[str] = None
    vat_id: Optional[str] = None
    small_business_enabled: bool = False
    default_tax_category: str = "standard"
    supply_date_required: bool = True
    service_date_required: bool = False
    country_code: str = "DE"
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


@dataclass(slots=True)
class TaxClassification:
    categories: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(slots=True)
class PreflightReport:
    document_id: int
    valid: bool
    small_business_enabled: bool
    document_type: str
    tax_categories: List[str]
    errors: List[str]
    warnings: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PreflightReport":
        return cls(
            document_id=int(data["document_id"]),
            valid=bool(data["valid"]),
            small_business_enabled=bool(data.get("small_business_enabled", False)),
            document_type=str(data.get("document_type", "")),
            tax_categories=list(data.get("tax_categories", [])),
            errors=list(data.get("errors", [])),
            warnings=list(data.get("warnings", [])),
        )


@dataclass(slots=True)
class ComplianceRecord:
    tenant_id: str
    document_id: int
    plugin_key: str
    is_sealed: bool = False
    seal_hash: Optional[str] = None
    sealed_at: Optional[datetime] = None
    preflight_status: str = PREFLIGHT_PENDING
    preflight_report: Optional[PreflightReport] = None
    correction_of_document_id: Optional[int] = None
    correction_reason: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass(slots=True)
class ExchangeRecord:
    tenant_id: str
    direction: Literal["export", "import"]
    format: str
    payload_snapshot: Dict[str, Any]
    xml_content: str
    status: str
    document_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


def dedupe(values: Sequence[str]) -> List[str]:
    """Drop repeated entries, keeping first-seen order."""
    return list(dict.fromkeys(values))
