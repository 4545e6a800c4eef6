from __future__ import annotations

import pytest

from backend.apps.tax_compliance.memory import InMemoryBillingDocumentStore
from backend.apps.tax_compliance.repository import (
    SqlComplianceRepository,
    SqlExchangeRepository,
    SqlTaxProfileRepository,
    build_engine,
    create_schema,
)
from backend.apps.tax_compliance.service import build_service
from tests.tax_compliance.factories import ORDENTIS_CONFIG, TENANT, fixed_clock


@pytest.fixture
def engine():
    eng = build_engine("sqlite:///:memory:")
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store() -> InMemoryBillingDocumentStore:
    return InMemoryBillingDocumentStore()


@pytest.fixture
def service(engine, store):
    return build_service(engine, store, clock=fixed_clock)


@pytest.fixture
def configured_service(service):
    service.save_config(TENANT, ORDENTIS_CONFIG)
    return service


@pytest.fixture
def profile_repo(engine) -> SqlTaxProfileRepository:
    return SqlTaxProfileRepository(engine, clock=fixed_clock)


@pytest.fixture
def compliance_repo(engine) -> SqlComplianceRepository:
    return SqlComplianceRepository(engine, plugin_key="tax_compliance_de", clock=fixed_clock)


@pytest.fixture
def exchange_repo(engine) -> SqlExchangeRepository:
    return SqlExchangeRepository(engine, clock=fixed_clock)
