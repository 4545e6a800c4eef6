"""Fassade der Steuer-Compliance (DE): Konfiguration, Preflight, Siegel,
Korrekturbelege und E-Rechnungs-Austausch.

Der Service ist zustandslos; Belegspeicher, Repositories, Settings und Uhr
werden injiziert. Vorbedingungsverletzungen werden als
``TaxComplianceError`` geworfen, Prüfergebnisse werden zurückgegeben.
"""

from __future__ import annotations

import base64
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from sqlalchemy.engine import Engine

from agents.einvoice import (
    EINVOICE_MIME,
    EInvoiceLine,
    EInvoicePayload,
    build_einvoice_xml,
    normalize_format,
    validate_einvoice,
)
from backend.core.config import Settings, settings as default_settings
from backend.core.observability import metrics
from backend.core.observability.logging import get_logger

from .classifier import classify_line_items
from .correction import build_credit_note, correction_reason, parse_line_item_overrides
from .dto import (
    FINALIZED_STATUSES,
    BillingDocumentSnapshot,
    ExchangeRecord,
    PreflightReport,
    TaxProfile,
    parse_optional_date,
)
from .errors import InvalidInputError, NotFoundError, StateConflictError, ValidationFailedError
from .preflight import run_preflight
from .repository import (
    BillingDocumentStore,
    SqlComplianceRepository,
    SqlExchangeRepository,
    SqlTaxProfileRepository,
)
from .sealer import compute_seal_hash
from .tax_profile import TaxProfileStore

logger = get_logger(__name__)

EXCHANGE_STATUS_VALIDATED = "validated"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class TaxComplianceService:
    def __init__(
        self,
        *,
        documents: BillingDocumentStore,
        profiles: SqlTaxProfileRepository,
        compliance: SqlComplianceRepository,
        exchanges: SqlExchangeRepository,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._documents = documents
        self._profiles = TaxProfileStore(profiles)
        self._compliance = compliance
        self._exchanges = exchanges
        self._settings = settings or default_settings
        self._clock = clock or _utc_now

    # -- config -----------------------------------------------------------

    def get_config(self, tenant_id: str) -> Dict[str, Any]:
        return self._profiles.get(tenant_id).to_dict()

    def save_config(self, tenant_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        profile = self._profiles.save(tenant_id, payload)
        logger.info(
            "tax_profile_saved",
            extra={
                "tenant_id": tenant_id,
                "small_business_enabled": profile.small_business_enabled,
                "country_code": profile.country_code,
            },
        )
        return profile.to_dict()

    # -- preflight / seal -------------------------------------------------

    def preflight(self, tenant_id: str, document_id: int) -> PreflightReport:
        start = time.perf_counter()
        document = self._load_document(tenant_id, document_id)
        report = self._run_preflight(self._profiles.get(tenant_id), document)
        metrics.increment_preflight(report.valid)
        metrics.observe_duration(start, "preflight")
        logger.info(
            "tax_preflight_completed",
            extra={
                "tenant_id": tenant_id,
                "document_id": document_id,
                "valid": report.valid,
                "errors": report.errors,
                "warnings": report.warnings,
            },
        )
        return report

    def seal(self, tenant_id: str, document_id: int) -> Dict[str, Any]:
        """Seal a finalized document whose preflight passes.

        Re-sealing overwrites the previous seal; for an unchanged document
        the hash is identical.
        """

        start = time.perf_counter()
        document = self._load_document(tenant_id, document_id)
        if document.status not in FINALIZED_STATUSES:
            raise StateConflictError("document_not_finalized", document.status)

        report = self._run_preflight(self._profiles.get(tenant_id), document)
        metrics.increment_preflight(report.valid)
        if not report.valid:
            logger.warning(
                "tax_seal_rejected",
                extra={"tenant_id": tenant_id, "document_id": document_id, "errors": report.errors},
            )
            raise ValidationFailedError("preflight_failed", report.errors, report.warnings)

        seal_hash = compute_seal_hash(document)
        sealed_at = self._clock()
        self._compliance.upsert_seal(
            tenant_id,
            document_id,
            seal_hash=seal_hash,
            sealed_at=sealed_at,
            report=report,
        )
        metrics.increment_seal()
        metrics.observe_duration(start, "seal")
        logger.info(
            "tax_document_sealed",
            extra={"tenant_id": tenant_id, "document_id": document_id, "seal_hash": seal_hash},
        )
        return {
            "document_id": document_id,
            "is_sealed": True,
            "seal_hash": seal_hash,
            "sealed_at": _isoformat(sealed_at),
        }

    def verify_seal(self, tenant_id: str, document_id: int) -> Dict[str, Any]:
        record = self._compliance.get(tenant_id, document_id)
        if record is None or not record.is_sealed or not record.seal_hash:
            raise NotFoundError("seal_not_found")
        document = self._load_document(tenant_id, document_id)
        current_hash = compute_seal_hash(document)
        intact = current_hash == record.seal_hash
        if not intact:
            logger.warning(
                "tax_seal_drift_detected",
                extra={"tenant_id": tenant_id, "document_id": document_id},
            )
        return {
            "document_id": document_id,
            "is_sealed": record.is_sealed,
            "seal_hash": record.seal_hash,
            "current_hash": current_hash,
            "intact": intact,
        }

    # -- corrections ------------------------------------------------------

    def create_correction(
        self,
        tenant_id: str,
        source_document_id: int,
        *,
        reason: Optional[str] = None,
        due_date: Any = None,
        line_items: Optional[Iterable[Any]] = None,
    ) -> Dict[str, Any]:
        start = time.perf_counter()
        source = self._load_document(tenant_id, source_document_id)
        credit_note = build_credit_note(
            source,
            due_date=parse_optional_date(due_date, "due_date"),
            line_items=parse_line_item_overrides(line_items),
        )
        new_document_id = self._documents.create_credit_note(tenant_id, source_document_id, credit_note)
        final_reason = correction_reason(reason)
        self._compliance.upsert_correction(
            tenant_id,
            new_document_id,
            correction_of_document_id=source_document_id,
            reason=final_reason,
        )
        metrics.increment_correction()
        metrics.observe_duration(start, "correction")
        logger.info(
            "tax_correction_created",
            extra={
                "tenant_id": tenant_id,
                "document_id": new_document_id,
                "correction_of_document_id": source_document_id,
            },
        )
        return {
            "document_id": new_document_id,
            "document_type": credit_note.document_type,
            "correction_of_document_id": source_document_id,
            "reason": final_reason,
        }

    # -- e-invoice --------------------------------------------------------

    def export_einvoice(self, tenant_id: str, document_id: int, format_name: str) -> Dict[str, Any]:
        start = time.perf_counter()
        fmt = normalize_format(format_name)
        if fmt is None:
            raise InvalidInputError("invalid_einvoice_format", format_name)

        document = self._load_document(tenant_id, document_id)
        profile = self._profiles.get(tenant_id)
        classification = classify_line_items(
            profile,
            document.line_items,
            document.customer_country(),
            keyword_detection=self._settings.REVERSE_CHARGE_KEYWORD_DETECTION,
        )
        payload = EInvoicePayload(
            format=fmt,
            document_id=document.document_id,
            document_number=document.document_number,
            issue_date=self._issue_date(document),
            currency=document.currency_code or "EUR",
            grand_total=document.grand_total,
            buyer_reference=document.customer_name_snapshot,
            buyer_country=document.customer_country(),
            line_items=tuple(
                EInvoiceLine(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    tax_rate=item.tax_rate,
                )
                for item in document.line_items
            ),
            tax_categories=tuple(classification.categories),
        )
        xml_content = build_einvoice_xml(payload)
        validation = validate_einvoice(fmt, xml_content)
        if not validation.valid:
            metrics.increment_validation_failure(fmt)
            logger.warning(
                "einvoice_export_invalid",
                extra={"tenant_id": tenant_id, "document_id": document_id, "format": fmt, "errors": validation.errors},
            )
            raise ValidationFailedError("invalid_einvoice_xml", validation.errors, validation.warnings)

        exchange_id = self._exchanges.append(
            ExchangeRecord(
                tenant_id=tenant_id,
                document_id=document_id,
                direction="export",
                format=fmt,
                payload_snapshot=self._export_snapshot(payload, document),
                xml_content=xml_content,
                status=EXCHANGE_STATUS_VALIDATED,
            )
        )
        metrics.increment_exchange("export", fmt)
        metrics.observe_duration(start, "export_einvoice")
        logger.info(
            "einvoice_exported",
            extra={"tenant_id": tenant_id, "document_id": document_id, "format": fmt, "exchange_id": exchange_id},
        )
        return {
            "document_id": document_id,
            "format": fmt,
            "mime": EINVOICE_MIME,
            "filename": f"{fmt}-{payload.number_or_id()}.xml",
            "content_base64": base64.b64encode(xml_content.encode("utf-8")).decode("ascii"),
            "validation": validation.to_dict(),
            "exchange_id": exchange_id,
        }

    def import_einvoice(self, tenant_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        start = time.perf_counter()
        if not isinstance(payload, Mapping):
            raise InvalidInputError("invalid_import_payload")
        raw_format = payload.get("format")
        fmt = normalize_format(str(raw_format) if raw_format is not None else None, default="xrechnung")
        if fmt is None:
            raise InvalidInputError("invalid_einvoice_format", str(raw_format))
        xml_content = str(payload.get("xml_content") or "").strip()
        if not xml_content:
            raise InvalidInputError("xml_content_required")

        validation = validate_einvoice(fmt, xml_content)
        if not validation.valid:
            metrics.increment_validation_failure(fmt)
            logger.warning(
                "einvoice_import_invalid",
                extra={"tenant_id": tenant_id, "format": fmt, "errors": validation.errors},
            )
            raise ValidationFailedError("invalid_einvoice_xml", validation.errors, validation.warnings)

        exchange_id = self._exchanges.append(
            ExchangeRecord(
                tenant_id=tenant_id,
                document_id=None,
                direction="import",
                format=fmt,
                payload_snapshot={"source": "api_import"},
                xml_content=xml_content,
                status=EXCHANGE_STATUS_VALIDATED,
            )
        )
        metrics.increment_exchange("import", fmt)
        metrics.observe_duration(start, "import_einvoice")
        logger.info("einvoice_imported", extra={"tenant_id": tenant_id, "format": fmt, "exchange_id": exchange_id})
        return {
            "status": EXCHANGE_STATUS_VALIDATED,
            "format": fmt,
            "exchange_id": exchange_id,
            "validation": validation.to_dict(),
        }

    # -- helpers ----------------------------------------------------------

    def _load_document(self, tenant_id: str, document_id: int) -> BillingDocumentSnapshot:
        document = self._documents.get_document(tenant_id, document_id)
        if document is None:
            raise NotFoundError("document_not_found")
        return document

    def _run_preflight(self, profile: TaxProfile, document: BillingDocumentSnapshot) -> PreflightReport:
        return run_preflight(
            profile,
            document,
            keyword_detection=self._settings.REVERSE_CHARGE_KEYWORD_DETECTION,
        )

    def _issue_date(self, document: BillingDocumentSnapshot) -> date:
        if document.finalized_at is not None:
            return document.finalized_at.date()
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()

    def _export_snapshot(self, payload: EInvoicePayload, document: BillingDocumentSnapshot) -> Dict[str, Any]:
        return {
            "format": payload.format,
            "document_id": payload.document_id,
            "document_number": payload.document_number,
            "currency": payload.currency,
            "grand_total": str(payload.grand_total),
            "customer": payload.buyer_reference,
            "line_items": [
                {
                    "description": item.description,
                    "quantity": str(item.quantity),
                    "unit_price": str(item.unit_price),
                    "tax_rate": str(item.tax_rate),
                }
                for item in payload.line_items
            ],
            "tax_breakdown": [
                {
                    "tax_rate": str(entry.tax_rate),
                    "net_amount": str(entry.net_amount),
                    "tax_amount": str(entry.tax_amount),
                    "gross_amount": str(entry.gross_amount),
                }
                for entry in document.tax_breakdown
            ],
            "tax_categories": list(payload.tax_categories),
            "generated_at": _isoformat(self._clock()),
        }


def build_service(
    engine: Engine,
    documents: BillingDocumentStore,
    *,
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> TaxComplianceService:
    """Wire the SQLAlchemy repositories onto ``engine``."""
    cfg = settings or default_settings
    return TaxComplianceService(
        documents=documents,
        profiles=SqlTaxProfileRepository(engine, clock=clock),
        compliance=SqlComplianceRepository(engine, plugin_key=cfg.COMPLIANCE_PLUGIN_KEY, clock=clock),
        exchanges=SqlExchangeRepository(engine, clock=clock),
        settings=cfg,
        clock=clock,
    )
