"""Tax category classification for line items (German VAT rules).

Every line gets one of ``standard``, ``reduced``, ``zero``,
``reverse_charge`` or ``intra_community``; category-specific requirements
are reported as error/warning codes, never raised.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Iterable, List, Optional

from .dto import LineItem, TaxClassification, TaxProfile, dedupe, non_empty_str

EU_MEMBER_STATES = frozenset(
    {
        "AT", "BE", "BG", "CY", "CZ", "DE", "DK", "EE", "ES", "FI", "FR",
        "GR", "EL", "HR", "HU", "IE", "IT", "LT", "LU", "LV", "MT", "NL",
        "PL", "PT", "RO", "SE", "SI", "SK",
    }
)

REDUCED_RATE = Decimal("7.00")
_RATE_TOLERANCE = Decimal("0.0001")
_RATE_PRECISION = Decimal("0.0001")

_REVERSE_CHARGE_RE = re.compile(r"\breverse[\s_-]*charge\b|\brc\b", re.IGNORECASE)


def is_cross_border_eu(seller_country: Optional[str], customer_country: Optional[str]) -> bool:
    if not seller_country or not customer_country:
        return False
    seller, customer = seller_country.upper(), customer_country.upper()
    return seller in EU_MEMBER_STATES and customer in EU_MEMBER_STATES and seller != customer


def mentions_reverse_charge(description: str) -> bool:
    return bool(_REVERSE_CHARGE_RE.search(description or ""))


def classify_line_items(
    profile: TaxProfile,
    line_items: Iterable[LineItem],
    customer_country: Optional[str],
    *,
    keyword_detection: bool = True,
) -> TaxClassification:
    seller_country = (profile.country_code or "").upper() or None
    customer_country = customer_country.upper() if customer_country else None
    seller_has_vat_id = non_empty_str(profile.vat_id) is not None
    cross_border = is_cross_border_eu(seller_country, customer_country)

    categories: List[str] = []
    errors: List[str] = []
    warnings: List[str] = []

    for item in line_items:
        rate = item.tax_rate.quantize(_RATE_PRECISION)
        if profile.small_business_enabled and rate != 0:
            errors.append("small_business_requires_zero_vat")

        hint = (item.tax_category_hint or "").lower()
        keyword_hit = keyword_detection and mentions_reverse_charge(item.description)

        if abs(rate - REDUCED_RATE) < _RATE_TOLERANCE:
            category = "reduced"
        elif rate <= 0 and (hint == "reverse_charge" or keyword_hit):
            category = "reverse_charge"
            if hint != "reverse_charge":
                warnings.append("reverse_charge_inferred_from_description")
        elif rate <= 0 and (cross_border or hint == "intra_community"):
            category = "intra_community"
        elif rate <= 0:
            category = "zero"
        else:
            category = "standard"

        if category == "reverse_charge":
            if rate != 0:
                errors.append("reverse_charge_requires_zero_tax_rate")
            if customer_country is not None and customer_country == seller_country:
                errors.append("reverse_charge_not_applicable_for_domestic_customer")
            if not seller_has_vat_id:
                errors.append("reverse_charge_requires_seller_vat_id")
        elif category == "intra_community":
            if not cross_border:
                if customer_country is None:
                    warnings.append("missing_customer_country_for_intra_community_check")
                else:
                    errors.append("intra_community_requires_cross_border_eu_customer")
            if rate != 0:
                errors.append("intra_community_requires_zero_tax_rate")
            if not seller_has_vat_id:
                errors.append("intra_community_requires_seller_vat_id")

        categories.append(category)

    unique_categories = dedupe(categories)
    if "reverse_charge" in unique_categories and (
        "standard" in unique_categories or "reduced" in unique_categories
    ):
        warnings.append("mixed_reverse_charge_and_taxable_positions")

    return TaxClassification(
        categories=unique_categories,
        errors=dedupe(errors),
        warnings=dedupe(warnings),
    )
