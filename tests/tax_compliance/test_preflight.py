from __future__ import annotations

import pytest

from backend.apps.tax_compliance.dto import BillingDocumentSnapshot
from backend.apps.tax_compliance.errors import NotFoundError
from backend.apps.tax_compliance.preflight import run_preflight
from tests.tax_compliance.factories import TENANT, make_document, ordentis_profile


def snapshot(**overrides) -> BillingDocumentSnapshot:
    return BillingDocumentSnapshot.from_mapping(make_document(**overrides))


def test_scenario_a_valid_invoice():
    report = run_preflight(ordentis_profile(), snapshot())
    assert report.valid is True
    assert report.errors == []
    assert report.tax_categories == ["standard"]
    assert report.document_type == "invoice"


def test_scenario_b_missing_due_date():
    report = run_preflight(ordentis_profile(), snapshot(due_date=None))
    assert report.valid is False
    assert report.errors == ["missing_due_date"]


def test_missing_due_date_on_quote_is_only_a_warning():
    report = run_preflight(ordentis_profile(), snapshot(document_type="quote", due_date=None))
    assert report.valid is True
    assert report.warnings == ["missing_due_date_as_supply_proxy"]


def test_due_date_not_checked_when_supply_date_not_required():
    report = run_preflight(ordentis_profile(supply_date_required=False), snapshot(due_date=None))
    assert report.valid is True


def test_missing_business_identity():
    profile = ordentis_profile(business_name="  ", tax_number=None)
    report = run_preflight(profile, snapshot())
    assert report.errors == ["missing_business_name", "missing_tax_number_or_vat_id"]


def test_vat_id_alone_satisfies_identity_check():
    profile = ordentis_profile(tax_number=None, vat_id="DE999999999")
    assert run_preflight(profile, snapshot()).valid is True


def test_small_business_skips_tax_id_but_requires_zero_vat():
    profile = ordentis_profile(tax_number=None, small_business_enabled=True)
    report = run_preflight(profile, snapshot())
    assert report.valid is False
    assert report.errors == ["small_business_requires_zero_vat"]
    assert report.small_business_enabled is True


def test_small_business_with_zero_rate_is_valid():
    profile = ordentis_profile(tax_number=None, small_business_enabled=True)
    document = snapshot(
        grand_total="100.00",
        line_items=[{"description": "Beratung", "unit_price": "100.00", "tax_rate": "0"}],
        addresses=[],
    )
    report = run_preflight(profile, document)
    assert report.valid is True
    assert report.tax_categories == ["zero"]


def test_missing_line_items():
    report = run_preflight(ordentis_profile(), snapshot(line_items=[]))
    assert report.errors == ["missing_line_items"]
    assert report.tax_categories == []


def test_credit_note_rules():
    document = snapshot(document_type="credit_note", reference_document_id=None)
    report = run_preflight(ordentis_profile(), document)
    assert report.valid is False
    assert report.errors == [
        "missing_reference_document",
        "credit_or_cancellation_requires_negative_total",
        "credit_or_cancellation_requires_negative_line_items",
    ]


_NEGATIVE_LINE = {"description": "Gutschrift", "quantity": "1", "unit_price": "-100.00", "tax_rate": "19"}
_POSITIVE_LINE = {"description": "Beratung", "quantity": "1", "unit_price": "100.00", "tax_rate": "19"}


@pytest.mark.parametrize("document_type", ["credit_note", "cancellation"])
@pytest.mark.parametrize(
    "overrides, expected",
    [
        (
            {"reference_document_id": None, "grand_total": "-119.00", "line_items": [_NEGATIVE_LINE]},
            "missing_reference_document",
        ),
        (
            {"reference_document_id": 100, "grand_total": "119.00", "line_items": [_NEGATIVE_LINE]},
            "credit_or_cancellation_requires_negative_total",
        ),
        (
            {"reference_document_id": 100, "grand_total": "-119.00", "line_items": [_POSITIVE_LINE]},
            "credit_or_cancellation_requires_negative_line_items",
        ),
    ],
)
def test_each_correction_rule_reports_its_own_error(document_type, overrides, expected):
    report = run_preflight(ordentis_profile(), snapshot(document_type=document_type, **overrides))
    assert report.valid is False
    assert report.errors == [expected]


def test_valid_cancellation():
    document = snapshot(
        document_type="cancellation",
        reference_document_id=100,
        grand_total="-119.00",
        line_items=[{"description": "Storno", "quantity": "1", "unit_price": "-100.00", "tax_rate": "19"}],
    )
    assert run_preflight(ordentis_profile(), document).valid is True


def test_non_positive_sales_total_warns():
    report = run_preflight(ordentis_profile(), snapshot(grand_total="0"))
    assert report.valid is True
    assert report.warnings == ["non_positive_total_for_sales_document"]


def test_intra_community_flips_on_seller_vat_id():
    document = snapshot(
        grand_total="100.00",
        line_items=[{"description": "Lieferung", "quantity": "1", "unit_price": "100.00", "tax_rate": "0"}],
        addresses=[{"address_type": "shipping", "country": "pl"}],
    )
    with_vat = run_preflight(ordentis_profile(vat_id="DE999999999"), document)
    assert with_vat.valid is True
    assert with_vat.tax_categories == ["intra_community"]

    without_vat = run_preflight(ordentis_profile(), document)
    assert without_vat.valid is False
    assert "intra_community_requires_seller_vat_id" in without_vat.errors


def test_service_preflight_uses_stored_profile(configured_service, store):
    store.register(TENANT, make_document())
    report = configured_service.preflight(TENANT, 101)
    assert report.valid is True


def test_service_preflight_without_profile_reports_identity_errors(service, store):
    store.register(TENANT, make_document())
    report = service.preflight(TENANT, 101)
    assert report.errors == ["missing_business_name", "missing_tax_number_or_vat_id"]


def test_service_preflight_unknown_document(configured_service):
    with pytest.raises(NotFoundError) as excinfo:
        configured_service.preflight(TENANT, 999)
    assert excinfo.value.code == "document_not_found"
