"""Preflight-Prüfung eines Belegs gegen Steuerprofil und Klassifikation."""

from __future__ import annotations

from decimal import Decimal
from typing import List

from .classifier import classify_line_items
from .dto import (
    CORRECTION_DOCUMENT_TYPES,
    DUE_DATE_REQUIRED_TYPES,
    SALES_DOCUMENT_TYPES,
    BillingDocumentSnapshot,
    PreflightReport,
    TaxProfile,
    dedupe,
    non_empty_str,
)

_ZERO = Decimal("0")


def run_preflight(
    profile: TaxProfile,
    document: BillingDocumentSnapshot,
    *,
    keyword_detection: bool = True,
) -> PreflightReport:
    """Collect every blocking error and advisory warning for ``document``.

    Pure function: loading the document and the profile is the caller's job.
    ``valid`` is true exactly when no error was collected.
    """

    errors: List[str] = []
    warnings: List[str] = []

    if non_empty_str(profile.business_name) is None:
        errors.append("missing_business_name")

    if not profile.small_business_enabled:
        if non_empty_str(profile.tax_number) is None and non_empty_str(profile.vat_id) is None:
            errors.append("missing_tax_number_or_vat_id")

    if profile.supply_date_required and document.due_date is None:
        if document.document_type in DUE_DATE_REQUIRED_TYPES:
            errors.append("missing_due_date")
        else:
            warnings.append("missing_due_date_as_supply_proxy")

    if not document.line_items:
        errors.append("missing_line_items")

    if document.document_type in CORRECTION_DOCUMENT_TYPES:
        if document.reference_document_id is None:
            errors.append("missing_reference_document")
        if document.grand_total > _ZERO:
            errors.append("credit_or_cancellation_requires_negative_total")
        if not any(item.unit_price < _ZERO for item in document.line_items):
            errors.append("credit_or_cancellation_requires_negative_line_items")
    elif document.document_type in SALES_DOCUMENT_TYPES and document.grand_total <= _ZERO:
        warnings.append("non_positive_total_for_sales_document")

    classification = classify_line_items(
        profile,
        document.line_items,
        document.customer_country(),
        keyword_detection=keyword_detection,
    )
    errors.extend(classification.errors)
    warnings.extend(classification.warnings)

    errors = dedupe(errors)
    return PreflightReport(
        document_id=document.document_id,
        valid=not errors,
        small_business_enabled=profile.small_business_enabled,
        document_type=document.document_type,
        tax_categories=list(classification.categories),
        errors=errors,
        warnings=dedupe(warnings),
    )
