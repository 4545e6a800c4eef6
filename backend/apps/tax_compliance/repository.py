"""Persistence for tax profiles, compliance records and e-invoice exchanges.

SQLAlchemy Core tables on a module-level ``MetaData``; every query is
scoped by ``tenant_id``. The Billing Document Store is an external
collaborator and only described here as a protocol.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

import sqlalchemy as sa
from sqlalchemy import MetaData
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from .dto import (
    PREFLIGHT_PASSED,
    PREFLIGHT_PENDING,
    BillingDocumentSnapshot,
    ComplianceRecord,
    CreditNotePayload,
    ExchangeRecord,
    PreflightReport,
    TaxProfile,
)

_METADATA = MetaData()


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


TENANT_TAX_PROFILES = sa.Table(
    "tenant_tax_profiles",
    _METADATA,
    sa.Column("tenant_id", sa.String(64), primary_key=True),
    sa.Column("business_name", sa.Text()),
    sa.Column("tax_number", sa.String(64)),
    sa.Column("vat_id", sa.String(32)),
    sa.Column("small_business_enabled", sa.Boolean(), nullable=False, default=False),
    sa.Column("default_tax_category", sa.String(32), nullable=False, default="standard"),
    sa.Column("supply_date_required", sa.Boolean(), nullable=False, default=True),
    sa.Column("service_date_required", sa.Boolean(), nullable=False, default=False),
    sa.Column("country_code", sa.String(2), nullable=False, default="DE"),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
)

BILLING_DOCUMENT_COMPLIANCE = sa.Table(
    "billing_document_compliance",
    _METADATA,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("tenant_id", sa.String(64), nullable=False),
    sa.Column("document_id", sa.Integer(), nullable=False),
    sa.Column("plugin_key", sa.String(64), nullable=False),
    sa.Column("is_sealed", sa.Boolean(), nullable=False, default=False),
    sa.Column("seal_hash", sa.String(64)),
    sa.Column("sealed_at", sa.DateTime(timezone=True)),
    sa.Column("preflight_status", sa.String(16), nullable=False, default=PREFLIGHT_PENDING),
    sa.Column("preflight_report_json", sa.Text()),
    sa.Column("correction_of_document_id", sa.Integer()),
    sa.Column("correction_reason", sa.Text()),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
    sa.UniqueConstraint("tenant_id", "document_id", name="uq_billing_document_compliance_document"),
)

BILLING_EINVOICE_EXCHANGE = sa.Table(
    "billing_einvoice_exchange",
    _METADATA,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("tenant_id", sa.String(64), nullable=False),
    sa.Column("document_id", sa.Integer()),
    sa.Column("exchange_direction", sa.String(8), nullable=False),
    sa.Column("invoice_format", sa.String(16), nullable=False),
    sa.Column("payload_json", sa.Text(), nullable=False),
    sa.Column("xml_content", sa.Text(), nullable=False),
    sa.Column("status", sa.String(16), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.Index("ix_billing_einvoice_exchange_tenant_document", "tenant_id", "document_id"),
)


def get_metadata() -> MetaData:
    return _METADATA


def build_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return sa.create_engine(
            database_url,
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return sa.create_engine(database_url, future=True)


def create_schema(engine: Engine) -> None:
    _METADATA.create_all(engine)


class BillingDocumentStore(Protocol):
    """Narrow interface of the external Billing Document Store."""

    def get_document(self, tenant_id: str, document_id: int) -> Optional[BillingDocumentSnapshot]:
        ...

    def create_credit_note(self, tenant_id: str, source_document_id: int, payload: CreditNotePayload) -> int:
        ...


class SqlTaxProfileRepository:
    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] | None = None) -> None:
        self._engine = engine
        self._clock = clock or _default_clock

    def get(self, tenant_id: str) -> Optional[TaxProfile]:
        t = TENANT_TAX_PROFILES
        with self._engine.begin() as conn:
            row = conn.execute(sa.select(t).where(t.c.tenant_id == tenant_id)).fetchone()
        if row is None:
            return None
        return TaxProfile(
            tenant_id=row.tenant_id,
            business_name=row.business_name,
            tax_number=row.tax_number,
            vat_id=row.vat_id,
            small_business_enabled=bool(row.small_business_enabled),
            default_tax_category=row.default_tax_category,
            supply_date_required=bool(row.supply_date_required),
            service_date_required=bool(row.service_date_required),
            country_code=row.country_code,
            updated_at=row.updated_at,
        )

    def save(self, profile: TaxProfile) -> TaxProfile:
        t = TENANT_TAX_PROFILES
        profile.updated_at = self._clock()
        values = {
            "business_name": profile.business_name,
            "tax_number": profile.tax_number,
            "vat_id": profile.vat_id,
            "small_business_enabled": profile.small_business_enabled,
            "default_tax_category": profile.default_tax_category,
            "supply_date_required": profile.supply_date_required,
            "service_date_required": profile.service_date_required,
            "country_code": profile.country_code,
            "updated_at": profile.updated_at,
        }
        with self._engine.begin() as conn:
            updated = conn.execute(
                sa.update(t).where(t.c.tenant_id == profile.tenant_id).values(**values)
            ).rowcount
            if not updated:
                conn.execute(sa.insert(t).values(tenant_id=profile.tenant_id, **values))
        return profile


class SqlComplianceRepository:
    """One compliance row per (tenant_id, document_id), written via upsert."""

    def __init__(
        self,
        engine: Engine,
        *,
        plugin_key: str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._engine = engine
        self._plugin_key = plugin_key
        self._clock = clock or _default_clock

    def get(self, tenant_id: str, document_id: int) -> Optional[ComplianceRecord]:
        t = BILLING_DOCUMENT_COMPLIANCE
        with self._engine.begin() as conn:
            row = conn.execute(
                sa.select(t).where(t.c.tenant_id == tenant_id).where(t.c.document_id == document_id)
            ).fetchone()
        if row is None:
            return None
        report = None
        if row.preflight_report_json:
            report = PreflightReport.from_dict(json.loads(row.preflight_report_json))
        return ComplianceRecord(
            tenant_id=row.tenant_id,
            document_id=row.document_id,
            plugin_key=row.plugin_key,
            is_sealed=bool(row.is_sealed),
            seal_hash=row.seal_hash,
            sealed_at=row.sealed_at,
            preflight_status=row.preflight_status,
            preflight_report=report,
            correction_of_document_id=row.correction_of_document_id,
            correction_reason=row.correction_reason,
            updated_at=row.updated_at,
        )

    def upsert_seal(
        self,
        tenant_id: str,
        document_id: int,
        *,
        seal_hash: str,
        sealed_at: datetime,
        report: PreflightReport,
    ) -> None:
        changes = {
            "is_sealed": True,
            "seal_hash": seal_hash,
            "sealed_at": sealed_at,
            "preflight_status": PREFLIGHT_PASSED,
            "preflight_report_json": json.dumps(report.to_dict(), sort_keys=True),
        }
        self._upsert(tenant_id, document_id, insert_values=changes, update_values=changes)

    def upsert_correction(
        self,
        tenant_id: str,
        document_id: int,
        *,
        correction_of_document_id: int,
        reason: str,
    ) -> None:
        changes = {
            "correction_of_document_id": correction_of_document_id,
            "correction_reason": reason,
            "preflight_status": PREFLIGHT_PENDING,
        }
        self._upsert(
            tenant_id,
            document_id,
            insert_values={"is_sealed": False, **changes},
            update_values=changes,
        )

    def _upsert(self, tenant_id: str, document_id: int, *, insert_values: dict, update_values: dict) -> None:
        t = BILLING_DOCUMENT_COMPLIANCE
        now = self._clock()
        where = sa.and_(t.c.tenant_id == tenant_id, t.c.document_id == document_id)
        try:
            with self._engine.begin() as conn:
                updated = conn.execute(sa.update(t).where(where).values(updated_at=now, **update_values)).rowcount
                if not updated:
                    conn.execute(
                        sa.insert(t).values(
                            tenant_id=tenant_id,
                            document_id=document_id,
                            plugin_key=self._plugin_key,
                            updated_at=now,
                            **insert_values,
                        )
                    )
        except IntegrityError:
            # A concurrent writer created the row first; last writer wins.
            with self._engine.begin() as conn:
                conn.execute(sa.update(t).where(where).values(updated_at=now, **update_values))


class SqlExchangeRepository:
    """Append-only log of e-invoice exports and imports."""

    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] | None = None) -> None:
        self._engine = engine
        self._clock = clock or _default_clock

    def append(self, record: ExchangeRecord) -> int:
        t = BILLING_EINVOICE_EXCHANGE
        record.created_at = self._clock()
        with self._engine.begin() as conn:
            result = conn.execute(
                sa.insert(t).values(
                    tenant_id=record.tenant_id,
                    document_id=record.document_id,
                    exchange_direction=record.direction,
                    invoice_format=record.format,
                    payload_json=json.dumps(record.payload_snapshot, sort_keys=True, default=str),
                    xml_content=record.xml_content,
                    status=record.status,
                    created_at=record.created_at,
                )
            )
            record.id = int(result.inserted_primary_key[0])
        return record.id

    def list_for_document(self, tenant_id: str, document_id: int) -> List[ExchangeRecord]:
        t = BILLING_EINVOICE_EXCHANGE
        with self._engine.begin() as conn:
            rows = conn.execute(
                sa.select(t)
                .where(t.c.tenant_id == tenant_id)
                .where(t.c.document_id == document_id)
                .order_by(t.c.id)
            ).fetchall()
        return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_record(row) -> ExchangeRecord:
        return ExchangeRecord(
            id=row.id,
            tenant_id=row.tenant_id,
            document_id=row.document_id,
            direction=row.exchange_direction,
            format=row.invoice_format,
            payload_snapshot=json.loads(row.payload_json),
            xml_content=row.xml_content,
            status=row.status,
            created_at=row.created_at,
        )
