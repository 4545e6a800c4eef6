"""Deterministischer XML-Generator für ``<eInvoice>`` (XRechnung/ZUGFeRD)."""

from __future__ import annotations

import re
import textwrap
from decimal import Decimal
from html import escape

from .dto import EInvoiceLine, EInvoicePayload, quantize_amount
from .profiles import (
    XRECHNUNG,
    XRECHNUNG_SPECIFICATION_ID,
    ZUGFERD,
    ZUGFERD_DOCUMENT_CONTEXT,
    ZUGFERD_PROFILE,
)

GENERATOR_VERSION = "einvoice-simple-1"

# Zeichen ausserhalb von XML 1.0 "Char" (Steuerzeichen, Surrogate, U+FFFE/FFFF)
_XML_ILLEGAL_CHARS = re.compile("[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def version() -> str:
    return GENERATOR_VERSION


def _format_decimal(value: Decimal) -> str:
    return f"{quantize_amount(value):.2f}"


def _text(value: object) -> str:
    text = "" if value is None else str(value)
    return escape(_XML_ILLEGAL_CHARS.sub("", text))


def _render_line(item: EInvoiceLine) -> str:
    return textwrap.dedent(
        f"""
        <lineItem>
          <description>{_text(item.description)}</description>
          <quantity>{_format_decimal(item.quantity)}</quantity>
          <unitPrice>{_format_decimal(item.unit_price)}</unitPrice>
          <taxRate>{_format_decimal(item.tax_rate)}</taxRate>
        </lineItem>
        """
    ).strip()


def build_einvoice_xml(payload: EInvoicePayload) -> str:
    """Render ``payload``; identical payloads yield identical text."""

    header = [
        f"<format>{_text(payload.format)}</format>",
        f"<documentNumber>{_text(payload.number_or_id())}</documentNumber>",
        f"<issueDate>{payload.issue_date.isoformat()}</issueDate>",
        f"<currency>{_text((payload.currency or 'EUR').upper())}</currency>",
        f"<grandTotal>{_format_decimal(payload.grand_total)}</grandTotal>",
    ]
    if payload.format == XRECHNUNG:
        header.append(f"<specificationIdentifier>{_text(XRECHNUNG_SPECIFICATION_ID)}</specificationIdentifier>")
    header.append(f"<buyerReference>{_text(payload.buyer_reference)}</buyerReference>")
    header.append(f"<buyerCountry>{_text(payload.buyer_country)}</buyerCountry>")
    if payload.format == ZUGFERD:
        header.append(f"<profile>{ZUGFERD_PROFILE}</profile>")
        header.append(f"<documentContext>{_text(ZUGFERD_DOCUMENT_CONTEXT)}</documentContext>")

    parts = ['<?xml version="1.0" encoding="UTF-8"?>', "<eInvoice>", textwrap.indent("\n".join(header), "  ")]
    parts.append("  <lineItems>")
    parts.extend(textwrap.indent(_render_line(item), "    ") for item in payload.line_items)
    parts.append("  </lineItems>")
    parts.append("  <taxCategories>")
    parts.extend(f"    <category>{_text(category)}</category>" for category in payload.tax_categories)
    parts.append("  </taxCategories>")
    parts.append("</eInvoice>")
    return "\n".join(parts) + "\n"
