"""Steuerprofil pro Mandant: Normalisierung und Store."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Protocol

from .dto import TAX_CATEGORIES, TaxProfile, non_empty_str
from .errors import InvalidInputError

_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")
_TRUE_STRINGS = {"1", "true", "yes", "on", "ja"}
_FALSE_STRINGS = {"0", "false", "no", "off", "nein", ""}


class TaxProfileRepository(Protocol):
    def get(self, tenant_id: str) -> Optional[TaxProfile]:
        ...

    def save(self, profile: TaxProfile) -> TaxProfile:
        ...


def _as_bool(value: Any, field_name: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise InvalidInputError("invalid_boolean_value", field_name)


def _upper_or_none(value: Any) -> Optional[str]:
    text = non_empty_str(value)
    return text.upper() if text else None


def normalize_profile(tenant_id: str, payload: Mapping[str, Any]) -> TaxProfile:
    """Build a ``TaxProfile`` from an untyped config payload.

    Keys that are missing fall back to the documented defaults, notably
    ``supply_date_required=True`` and ``country_code="DE"``.
    """

    category = str(payload.get("default_tax_category") or "standard").strip().lower()
    if category not in TAX_CATEGORIES:
        raise InvalidInputError("invalid_default_tax_category", category)

    country = str(payload.get("country_code") or "DE").strip().upper()
    if not _COUNTRY_RE.match(country):
        raise InvalidInputError("invalid_country_code", country)

    return TaxProfile(
        tenant_id=tenant_id,
        business_name=non_empty_str(payload.get("business_name")),
        tax_number=_upper_or_none(payload.get("tax_number")),
        vat_id=_upper_or_none(payload.get("vat_id")),
        small_business_enabled=_as_bool(
            payload.get("small_business_enabled"), "small_business_enabled", default=False
        ),
        default_tax_category=category,
        supply_date_required=_as_bool(
            payload.get("supply_date_required"), "supply_date_required", default=True
        ),
        service_date_required=_as_bool(
            payload.get("service_date_required"), "service_date_required", default=False
        ),
        country_code=country,
    )


class TaxProfileStore:
    """Read/write access to the tenant's tax profile."""

    def __init__(self, repository: TaxProfileRepository) -> None:
        self._repository = repository

    def get(self, tenant_id: str) -> TaxProfile:
        # Defaults are returned but not persisted.
        return self._repository.get(tenant_id) or TaxProfile(tenant_id=tenant_id)

    def save(self, tenant_id: str, payload: Mapping[str, Any]) -> TaxProfile:
        if not isinstance(payload, Mapping):
            raise InvalidInputError("invalid_config_payload")
        return self._repository.save(normalize_profile(tenant_id, payload))
