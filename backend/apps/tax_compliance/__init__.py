"""Steuer-Compliance DE: Klassifikation, Preflight, Siegel, E-Rechnung, Korrekturen."""

from .classifier import classify_line_items
from .dto import (
    Address,
    BillingDocumentSnapshot,
    ComplianceRecord,
    CreditNotePayload,
    ExchangeRecord,
    LineItem,
    PreflightReport,
    TaxBreakdownEntry,
    TaxClassification,
    TaxProfile,
)
from .errors import (
    InvalidInputError,
    NotFoundError,
    StateConflictError,
    TaxComplianceError,
    ValidationFailedError,
)
from .memory import InMemoryBillingDocumentStore
from .preflight import run_preflight
from .sealer import compute_seal_hash
from .service import TaxComplianceService, build_service

__all__ = [
    "classify_line_items",
    "Address",
    "BillingDocumentSnapshot",
    "ComplianceRecord",
    "CreditNotePayload",
    "ExchangeRecord",
    "LineItem",
    "PreflightReport",
    "TaxBreakdownEntry",
    "TaxClassification",
    "TaxProfile",
    "InvalidInputError",
    "NotFoundError",
    "StateConflictError",
    "TaxComplianceError",
    "ValidationFailedError",
    "InMemoryBillingDocumentStore",
    "run_preflight",
    "compute_seal_hash",
    "TaxComplianceService",
    "build_service",
]
