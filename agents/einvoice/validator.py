"""Strukturprüfung für ``<eInvoice>``-Dokumente (lxml, offline).

Kein XSD/Schematron: geprüft werden Pflichtfelder, Formate und die
profilabhängigen Literale. Das Ergebnis wird immer zurückgegeben, nie
geworfen.
"""

from __future__ import annotations

import re
from datetime import date
from typing import List, Union

from lxml import etree

from .dto import EInvoiceValidationResult
from .profiles import (
    XRECHNUNG,
    XRECHNUNG_SPECIFICATION_ID,
    ZUGFERD,
    ZUGFERD_DOCUMENT_CONTEXT,
    ZUGFERD_PROFILE,
)

_ISSUE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
_AMOUNT_RE = re.compile(r"^[+-]?\d+\.\d{2}$")


def _parse(xml_content: Union[str, bytes]):
    """Return ``(root, had_diagnostics)``; ``root`` is None when unparseable."""
    data = xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data, parser)
    except (etree.XMLSyntaxError, ValueError):
        return None, True
    return root, len(parser.error_log) > 0


def _text(root, path: str) -> str:
    return str(root.xpath(f"string({path})")).strip()


def _valid_issue_date(value: str) -> bool:
    if not _ISSUE_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def validate_einvoice(format_name: str, xml_content: Union[str, bytes]) -> EInvoiceValidationResult:
    root, had_diagnostics = _parse(xml_content)
    if root is None:
        return EInvoiceValidationResult(valid=False, errors=["invalid_xml_syntax"])

    errors: List[str] = []
    warnings: List[str] = []
    if had_diagnostics:
        warnings.append("xml_parser_warnings_present")

    if _text(root, "/eInvoice/format") != format_name:
        errors.append("format_mismatch")
    if not _text(root, "/eInvoice/documentNumber"):
        errors.append("missing_document_number")
    if not _valid_issue_date(_text(root, "/eInvoice/issueDate")):
        errors.append("invalid_issue_date")
    if not _CURRENCY_RE.match(_text(root, "/eInvoice/currency")):
        errors.append("invalid_currency_code")
    if not _AMOUNT_RE.match(_text(root, "/eInvoice/grandTotal")):
        errors.append("invalid_grand_total")
    if not root.xpath("/eInvoice/lineItems/lineItem"):
        errors.append("missing_line_items")
    categories = [str(value).strip() for value in root.xpath("/eInvoice/taxCategories/category/text()")]
    if not any(categories):
        errors.append("missing_tax_categories")

    if format_name == XRECHNUNG:
        if _text(root, "/eInvoice/specificationIdentifier") != XRECHNUNG_SPECIFICATION_ID:
            errors.append("invalid_specification_identifier")
        if not _text(root, "/eInvoice/buyerReference"):
            warnings.append("missing_buyer_reference")
    elif format_name == ZUGFERD:
        if _text(root, "/eInvoice/profile") != ZUGFERD_PROFILE:
            errors.append("invalid_profile")
        if _text(root, "/eInvoice/documentContext") != ZUGFERD_DOCUMENT_CONTEXT:
            errors.append("invalid_document_context")

    return EInvoiceValidationResult(valid=not errors, errors=errors, warnings=warnings)
