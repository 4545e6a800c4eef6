from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient

from backend.app import create_app
from tests.tax_compliance.factories import ORDENTIS_CONFIG, OTHER_TENANT, TENANT, make_document

BASE = "/api/v1/tax-compliance-de"
HEADERS = {"X-Tenant-Id": TENANT}


@pytest.fixture
def client(engine, store):
    app = create_app(engine=engine, document_store=store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def configured_client(client):
    resp = client.put(f"{BASE}/config", json=ORDENTIS_CONFIG, headers=HEADERS)
    assert resp.status_code == 200
    return client


def test_missing_tenant_header(client):
    resp = client.get(f"{BASE}/config")
    assert resp.status_code == 422
    assert resp.json() == {"error": "missing_tenant_header"}


def test_config_round_trip(client):
    assert client.get(f"{BASE}/config", headers=HEADERS).json()["data"]["country_code"] == "DE"

    resp = client.put(
        f"{BASE}/config",
        json={"business_name": "Ordentis GmbH", "vat_id": "de999999999"},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["vat_id"] == "DE999999999"
    assert client.get(f"{BASE}/config", headers=HEADERS).json()["data"]["business_name"] == "Ordentis GmbH"


def test_invalid_config(client):
    resp = client.put(f"{BASE}/config", json={"default_tax_category": "luxury"}, headers=HEADERS)
    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_default_tax_category"


def test_preflight_endpoint(configured_client, store):
    store.register(TENANT, make_document(due_date=None))
    resp = configured_client.post(f"{BASE}/documents/101/preflight", headers=HEADERS)
    assert resp.status_code == 200
    body = resp.json()["data"]
    assert body["valid"] is False
    assert body["errors"] == ["missing_due_date"]


def test_unknown_document_is_404(configured_client):
    resp = configured_client.post(f"{BASE}/documents/9/preflight", headers=HEADERS)
    assert resp.status_code == 404
    assert resp.json() == {"error": "document_not_found"}


def test_documents_are_tenant_scoped(configured_client, store):
    store.register(OTHER_TENANT, make_document())
    resp = configured_client.post(f"{BASE}/documents/101/seal", headers=HEADERS)
    assert resp.status_code == 404


def test_seal_and_verify(configured_client, store):
    store.register(TENANT, make_document())
    sealed = configured_client.post(f"{BASE}/documents/101/seal", headers=HEADERS)
    assert sealed.status_code == 200
    seal_hash = sealed.json()["data"]["seal_hash"]

    verified = configured_client.get(f"{BASE}/documents/101/seal/verify", headers=HEADERS)
    assert verified.status_code == 200
    assert verified.json()["data"] == {
        "document_id": 101,
        "is_sealed": True,
        "seal_hash": seal_hash,
        "current_hash": seal_hash,
        "intact": True,
    }


def test_seal_draft_is_conflict(configured_client, store):
    store.register(TENANT, make_document(status="draft"))
    resp = configured_client.post(f"{BASE}/documents/101/seal", headers=HEADERS)
    assert resp.status_code == 409
    assert resp.json()["error"] == "document_not_finalized"


def test_seal_with_failing_preflight(configured_client, store):
    store.register(TENANT, make_document(due_date=None))
    resp = configured_client.post(f"{BASE}/documents/101/seal", headers=HEADERS)
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "preflight_failed"
    assert body["errors"] == ["missing_due_date"]


def test_create_correction_endpoint(configured_client, store):
    store.register(TENANT, make_document())
    resp = configured_client.post(f"{BASE}/documents/101/corrections", headers=HEADERS)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["document_type"] == "credit_note"
    assert data["correction_of_document_id"] == 101
    assert data["reason"] == "Korrekturbeleg"

    resp = configured_client.post(
        f"{BASE}/documents/101/corrections",
        json={"reason": "Teilgutschrift", "line_items": [{"description": "Rabatt", "unit_price": "10.00", "tax_rate": "19"}]},
        headers=HEADERS,
    )
    assert resp.status_code == 201
    credit_note = store.get_document(TENANT, resp.json()["data"]["document_id"])
    assert [str(item.unit_price) for item in credit_note.line_items] == ["-10.00"]


def test_export_and_import_endpoints(configured_client, store):
    store.register(TENANT, make_document())
    export = configured_client.get(f"{BASE}/documents/101/einvoice", params={"format": "zugferd"}, headers=HEADERS)
    assert export.status_code == 200
    data = export.json()["data"]
    assert data["filename"] == "zugferd-INV-2026-0001.xml"

    xml_content = base64.b64decode(data["content_base64"]).decode("utf-8")
    imported = configured_client.post(
        f"{BASE}/einvoice/import",
        json={"format": "zugferd", "xml_content": xml_content},
        headers=HEADERS,
    )
    assert imported.status_code == 201
    assert imported.json()["data"]["status"] == "validated"


def test_export_invalid_format(configured_client, store):
    store.register(TENANT, make_document())
    resp = configured_client.get(f"{BASE}/documents/101/einvoice", params={"format": "pdf"}, headers=HEADERS)
    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_einvoice_format"


def test_import_format_mismatch(configured_client):
    resp = configured_client.post(
        f"{BASE}/einvoice/import",
        json={"format": "xrechnung", "xml_content": "<eInvoice><format>zugferd</format></eInvoice>"},
        headers=HEADERS,
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "invalid_einvoice_xml"
    assert "format_mismatch" in body["errors"]


def test_health_endpoints(client):
    assert client.get("/health/live").json() == {"status": "OK"}
    ready = client.get("/health/ready").json()
    assert ready["db"] == "OK"
    assert ready["status"] == "OK"
