"""CI-Gate: Referenzbeleg als XRechnung und ZUGFeRD exportieren und prüfen.

Der interne Strukturvalidator muss immer bestehen. Ist für ein Format eine
externe Validator-URL konfiguriert, wird das XML zusätzlich dort geprüft,
sonst wird der externe Schritt übersprungen.

Aufruf: ``python -m tools.einvoice.reference_gate [--format xrechnung]``
"""

from __future__ import annotations

import argparse
import base64
import sys
from typing import Callable, Mapping, Optional, Sequence

import httpx

from agents.einvoice import (
    EINVOICE_FORMATS,
    ExternalValidatorError,
    load_validator_config,
    run_external_validator,
)
from backend.apps.tax_compliance.errors import TaxComplianceError
from backend.apps.tax_compliance.memory import InMemoryBillingDocumentStore
from backend.apps.tax_compliance.repository import build_engine, create_schema
from backend.apps.tax_compliance.service import TaxComplianceService, build_service
from backend.core.config import Settings, settings as default_settings

REFERENCE_TENANT = "tenant-ci-gate"
REFERENCE_DOCUMENT_ID = 1

REFERENCE_PROFILE = {
    "business_name": "Ordentis GmbH",
    "tax_number": "DE123/456/789",
    "vat_id": "DE999999999",
    "small_business_enabled": False,
    "default_tax_category": "standard",
    "supply_date_required": True,
    "service_date_required": False,
    "country_code": "DE",
}

REFERENCE_DOCUMENT = {
    "document_id": REFERENCE_DOCUMENT_ID,
    "document_type": "invoice",
    "document_number": "INV-CI-1",
    "status": "sent",
    "customer_name_snapshot": "Bundesdruckerei GmbH",
    "currency_code": "EUR",
    "grand_total": "119.00",
    "due_date": "2026-03-01",
    "line_items": [
        {"description": "SaaS Lizenz", "quantity": "1", "unit_price": "100.00", "tax_rate": "19.00"},
    ],
    "tax_breakdown": [
        {"tax_rate": "19.00", "net_amount": "100.00", "tax_amount": "19.00", "gross_amount": "119.00"},
    ],
    "addresses": [
        {
            "address_type": "billing",
            "company_name": "Bundesdruckerei GmbH",
            "street": "Kommandantenstr. 18",
            "postal_code": "10969",
            "city": "Berlin",
            "country": "DE",
        }
    ],
}


class ReferenceGateError(RuntimeError):
    pass


def build_reference_service(settings: Optional[Settings] = None) -> TaxComplianceService:
    engine = build_engine("sqlite:///:memory:")
    create_schema(engine)
    store = InMemoryBillingDocumentStore()
    store.register(REFERENCE_TENANT, REFERENCE_DOCUMENT)
    service = build_service(engine, store, settings=settings)
    service.save_config(REFERENCE_TENANT, REFERENCE_PROFILE)
    return service


def run_gate(
    formats: Sequence[str] = EINVOICE_FORMATS,
    *,
    environ: Optional[Mapping[str, str]] = None,
    settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
    echo: Callable[[str], None] = print,
) -> None:
    cfg = settings or default_settings
    service = build_reference_service(cfg)

    for format_name in formats:
        export = service.export_einvoice(REFERENCE_TENANT, REFERENCE_DOCUMENT_ID, format_name)
        if not export["validation"]["valid"]:
            raise ReferenceGateError(f"internal_validation_failed_for_{format_name}")
        xml_content = base64.b64decode(export["content_base64"]).decode("utf-8")
        if not xml_content:
            raise ReferenceGateError(f"missing_export_xml_for_{format_name}")

        config = load_validator_config(format_name, environ=environ, settings=cfg)
        label = format_name.upper()
        if config.enabled:
            run_external_validator(config, xml_content, client=client)
            echo(f"{label} external validator passed (env={config.environment or 'default'})")
            continue

        hint = f"{label}_VALIDATOR_URL"
        if config.environment:
            hint += f"_{config.environment.upper()}"
        echo(f"{label} external validator skipped (set {hint})")

    echo("E-Invoice reference validator CI gate passed")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="E-Invoice reference validator CI gate")
    parser.add_argument(
        "--format",
        dest="formats",
        action="append",
        choices=EINVOICE_FORMATS,
        help="Format to check (repeatable, default: all)",
    )
    args = parser.parse_args(argv)

    try:
        run_gate(args.formats or EINVOICE_FORMATS)
    except (ReferenceGateError, ExternalValidatorError, TaxComplianceError) as exc:
        print(f"E-Invoice reference validator CI gate failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
