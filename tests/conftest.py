"""
Pytest Configuration and Shared Fixtures

Provides common test fixtures and configuration for the entire test suite.
"""

import pytest

from tally_recon.config import ReconConfig
from tally_recon.models.context import BusinessContext

from .fakes import (
    FakeReconciliationService,
    InMemoryRepository,
    RecordingSleep,
)


@pytest.fixture
def context() -> BusinessContext:
    """Business the tests operate on."""
    return BusinessContext(business_id="biz-1", role="owner")


@pytest.fixture
def recon_config() -> ReconConfig:
    return ReconConfig()


@pytest.fixture
def reconciliation() -> FakeReconciliationService:
    return FakeReconciliationService()


@pytest.fixture
def empty_repository() -> InMemoryRepository:
    return InMemoryRepository([])


@pytest.fixture
def sleep() -> RecordingSleep:
    """Sleep replacement that records requested delays without waiting."""
    return RecordingSleep()


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Keep real credentials out of tests."""
    monkeypatch.delenv("TALLY_API_TOKEN", raising=False)
    monkeypatch.delenv("TALLY_BUSINESS_ID", raising=False)
