from __future__ import annotations

from decimal import Decimal

import pytest

from backend.apps.tax_compliance.classifier import (
    classify_line_items,
    is_cross_border_eu,
    mentions_reverse_charge,
)
from backend.apps.tax_compliance.dto import LineItem
from tests.tax_compliance.factories import ordentis_profile


def line(rate: str, description: str = "Leistung", hint: str | None = None, price: str = "100.00") -> LineItem:
    return LineItem(
        description=description,
        quantity=Decimal("1"),
        unit_price=Decimal(price),
        tax_rate=Decimal(rate),
        tax_category_hint=hint,
    )


def test_standard_rate_domestic():
    result = classify_line_items(ordentis_profile(), [line("19.00")], "DE")
    assert result.categories == ["standard"]
    assert result.errors == []
    assert result.warnings == []


def test_reduced_rate_within_tolerance():
    result = classify_line_items(ordentis_profile(), [line("7.00"), line("7.00004")], "DE")
    assert result.categories == ["reduced"]


def test_zero_rate_to_non_eu_customer_is_zero():
    result = classify_line_items(ordentis_profile(), [line("0")], "CH")
    assert result.categories == ["zero"]
    assert result.errors == []


def test_zero_rate_cross_border_eu_is_intra_community():
    profile = ordentis_profile(vat_id="DE999999999")
    result = classify_line_items(profile, [line("0")], "PL")
    assert result.categories == ["intra_community"]
    assert result.errors == []


def test_intra_community_without_seller_vat_id():
    result = classify_line_items(ordentis_profile(), [line("0")], "PL")
    assert result.categories == ["intra_community"]
    assert result.errors == ["intra_community_requires_seller_vat_id"]


def test_intra_community_hint_for_domestic_customer():
    profile = ordentis_profile(vat_id="DE999999999")
    result = classify_line_items(profile, [line("0", hint="intra_community")], "DE")
    assert result.categories == ["intra_community"]
    assert result.errors == ["intra_community_requires_cross_border_eu_customer"]


def test_intra_community_hint_with_unknown_customer_country_warns():
    profile = ordentis_profile(vat_id="DE999999999")
    result = classify_line_items(profile, [line("0", hint="intra_community")], None)
    assert result.errors == []
    assert result.warnings == ["missing_customer_country_for_intra_community_check"]


def test_reverse_charge_by_hint():
    profile = ordentis_profile(vat_id="DE999999999")
    result = classify_line_items(profile, [line("0", hint="reverse_charge")], "AT")
    assert result.categories == ["reverse_charge"]
    assert result.errors == []
    assert result.warnings == []


def test_reverse_charge_by_description_keyword_warns():
    profile = ordentis_profile(vat_id="DE999999999")
    result = classify_line_items(profile, [line("0", description="Bauleistung Reverse Charge")], "AT")
    assert result.categories == ["reverse_charge"]
    assert result.warnings == ["reverse_charge_inferred_from_description"]


def test_keyword_detection_can_be_disabled():
    profile = ordentis_profile(vat_id="DE999999999")
    result = classify_line_items(
        profile,
        [line("0", description="Bauleistung reverse charge")],
        "AT",
        keyword_detection=False,
    )
    assert result.categories == ["intra_community"]


def test_reverse_charge_checks():
    result = classify_line_items(ordentis_profile(), [line("-1", hint="reverse_charge")], "DE")
    assert result.categories == ["reverse_charge"]
    assert result.errors == [
        "reverse_charge_requires_zero_tax_rate",
        "reverse_charge_not_applicable_for_domestic_customer",
        "reverse_charge_requires_seller_vat_id",
    ]


def test_mixed_reverse_charge_and_taxable_positions():
    profile = ordentis_profile(vat_id="DE999999999")
    items = [line("0", hint="reverse_charge"), line("19.00"), line("7.00")]
    result = classify_line_items(profile, items, "FR")
    assert result.categories == ["reverse_charge", "standard", "reduced"]
    assert result.warnings == ["mixed_reverse_charge_and_taxable_positions"]


def test_small_business_error_is_reported_once():
    profile = ordentis_profile(small_business_enabled=True)
    result = classify_line_items(profile, [line("19.00"), line("7.00"), line("0")], "DE")
    assert result.errors == ["small_business_requires_zero_vat"]
    assert result.categories == ["standard", "reduced", "zero"]


@pytest.mark.parametrize(
    "description, expected",
    [
        ("Reverse Charge gem. §13b UStG", True),
        ("reverse-charge", True),
        ("REVERSE_CHARGE", True),
        ("Leistung (RC)", True),
        ("Arcade Automat", False),
        ("Source code review", False),
        ("", False),
    ],
)
def test_mentions_reverse_charge(description, expected):
    assert mentions_reverse_charge(description) is expected


def test_cross_border_requires_both_countries_in_eu():
    assert is_cross_border_eu("DE", "pl")
    assert not is_cross_border_eu("DE", "DE")
    assert not is_cross_border_eu("DE", "CH")
    assert not is_cross_border_eu("DE", None)
