from __future__ import annotations

import hashlib
from decimal import Decimal

import pytest
import sqlalchemy as sa

from backend.apps.tax_compliance.dto import BillingDocumentSnapshot
from backend.apps.tax_compliance.errors import NotFoundError, StateConflictError, ValidationFailedError
from backend.apps.tax_compliance.repository import BILLING_DOCUMENT_COMPLIANCE
from backend.apps.tax_compliance.sealer import canonical_json, compute_seal_hash, seal_payload
from tests.tax_compliance.factories import TENANT, make_document


def test_seal_payload_key_order_and_decimal_strings():
    document = BillingDocumentSnapshot.from_mapping(make_document())
    payload = seal_payload(document)
    assert list(payload) == [
        "document_id",
        "document_number",
        "status",
        "grand_total",
        "currency_code",
        "tax_breakdown",
        "line_items",
        "totals",
    ]
    assert payload["grand_total"] == "119.00"
    assert payload["line_items"][0]["unit_price"] == "100.00"
    expected = hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
    assert compute_seal_hash(document) == expected


def test_hash_ignores_totals_key_insertion_order():
    first = BillingDocumentSnapshot.from_mapping(make_document(totals={"net": "100.00", "gross": "119.00"}))
    second = BillingDocumentSnapshot.from_mapping(make_document(totals={"gross": "119.00", "net": "100.00"}))
    assert compute_seal_hash(first) == compute_seal_hash(second)


def test_hash_changes_with_content():
    first = BillingDocumentSnapshot.from_mapping(make_document())
    second = BillingDocumentSnapshot.from_mapping(make_document(grand_total="119.01"))
    assert compute_seal_hash(first) != compute_seal_hash(second)


def test_seal_finalized_document(configured_service, store, compliance_repo):
    store.register(TENANT, make_document())
    result = configured_service.seal(TENANT, 101)

    assert result["document_id"] == 101
    assert result["is_sealed"] is True
    assert len(result["seal_hash"]) == 64
    assert result["sealed_at"].startswith("2026-03-02T09:30:00")

    record = compliance_repo.get(TENANT, 101)
    assert record is not None
    assert record.is_sealed is True
    assert record.seal_hash == result["seal_hash"]
    assert record.preflight_status == "passed"
    assert record.plugin_key == "tax_compliance_de"
    assert record.preflight_report is not None
    assert record.preflight_report.valid is True


def test_reseal_is_idempotent(configured_service, store, engine):
    store.register(TENANT, make_document())
    first = configured_service.seal(TENANT, 101)
    second = configured_service.seal(TENANT, 101)
    assert first["seal_hash"] == second["seal_hash"]

    with engine.begin() as conn:
        rows = conn.execute(sa.select(sa.func.count()).select_from(BILLING_DOCUMENT_COMPLIANCE)).scalar()
    assert rows == 1


def test_seal_requires_finalized_status(configured_service, store):
    store.register(TENANT, make_document(status="draft"))
    with pytest.raises(StateConflictError) as excinfo:
        configured_service.seal(TENANT, 101)
    assert excinfo.value.code == "document_not_finalized"


def test_seal_rejected_when_preflight_fails(configured_service, store, compliance_repo):
    store.register(TENANT, make_document(due_date=None))
    with pytest.raises(ValidationFailedError) as excinfo:
        configured_service.seal(TENANT, 101)
    assert excinfo.value.code == "preflight_failed"
    assert excinfo.value.errors == ["missing_due_date"]
    assert compliance_repo.get(TENANT, 101) is None


def test_seal_unknown_document(configured_service):
    with pytest.raises(NotFoundError):
        configured_service.seal(TENANT, 404)


def test_verify_seal_detects_drift(configured_service, store):
    store.register(TENANT, make_document())
    sealed = configured_service.seal(TENANT, 101)

    intact = configured_service.verify_seal(TENANT, 101)
    assert intact["intact"] is True
    assert intact["current_hash"] == sealed["seal_hash"]

    store.update(TENANT, 101, grand_total=Decimal("120.00"))
    drifted = configured_service.verify_seal(TENANT, 101)
    assert drifted["intact"] is False
    assert drifted["seal_hash"] == sealed["seal_hash"]
    assert drifted["current_hash"] != sealed["seal_hash"]


def test_verify_seal_without_seal(configured_service, store):
    store.register(TENANT, make_document())
    with pytest.raises(NotFoundError) as excinfo:
        configured_service.verify_seal(TENANT, 101)
    assert excinfo.value.code == "seal_not_found"
