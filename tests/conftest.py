"""
Pytest configuration and shared fixtures
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from broker_ledger.budget.handlers import BudgetCommandHandlers
from broker_ledger.budget.projections import BudgetRegistry
from broker_ledger.commissions.handlers import CommissionCommandHandlers
from broker_ledger.commissions.projections import CommissionLedger
from broker_ledger.kernel.event_store import SQLiteEventStore
from broker_ledger.kernel.policy import LedgerPolicy
from broker_ledger.kernel.time import TestTimeProvider
from broker_ledger.ledger import BudgetLedger
from broker_ledger.orders.handlers import OrderCommandHandlers
from broker_ledger.orders.projections import OrderRegistry


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database path that's cleaned up after the test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "ledger.db"


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> LedgerPolicy:
    """Provide default ledger policy for tests"""
    return LedgerPolicy()


@pytest.fixture
def ledger(temp_db: Path, test_time: TestTimeProvider, policy: LedgerPolicy) -> BudgetLedger:
    """Provide a ledger façade over a fresh database"""
    return BudgetLedger(temp_db, policy=policy, time_provider=test_time)


# =============================================================================
# Handler and Projection Fixtures
# =============================================================================


@pytest.fixture
def budget_handlers(test_time: TestTimeProvider, policy: LedgerPolicy) -> BudgetCommandHandlers:
    """Handlers are stateless - they take projections as parameters"""
    return BudgetCommandHandlers(test_time, policy)


@pytest.fixture
def order_handlers(
    test_time: TestTimeProvider,
    policy: LedgerPolicy,
    budget_handlers: BudgetCommandHandlers,
) -> OrderCommandHandlers:
    return OrderCommandHandlers(test_time, policy, budget_handlers)


@pytest.fixture
def commission_handlers(
    test_time: TestTimeProvider, policy: LedgerPolicy
) -> CommissionCommandHandlers:
    return CommissionCommandHandlers(test_time, policy)


@pytest.fixture
def budget_registry() -> BudgetRegistry:
    return BudgetRegistry()


@pytest.fixture
def order_registry() -> OrderRegistry:
    return OrderRegistry()


@pytest.fixture
def commission_ledger() -> CommissionLedger:
    return CommissionLedger()
