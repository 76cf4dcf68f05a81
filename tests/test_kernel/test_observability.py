"""
Tests for logging, metrics and retry helpers
"""

import pytest
import structlog
from prometheus_client import REGISTRY

from broker_ledger.kernel.errors import BudgetExceeded, StreamVersionConflict
from broker_ledger.kernel.ids import generate_id, is_uuid_shaped
from broker_ledger.kernel.logging import (
    LogOperation,
    get_correlation_id,
    get_logger,
    redact_context,
    set_correlation_id,
)
from broker_ledger.kernel.metrics import track_command_duration
from broker_ledger.kernel.policy import LedgerPolicy
from broker_ledger.kernel.retry import retry_on_version_conflict


def _sample(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_generate_id_is_uuid_shaped_and_ordered() -> None:
    first = generate_id()
    second = generate_id()
    assert is_uuid_shaped(first)
    assert first[14] == "7"
    assert first[:8] <= second[:8]


def test_policy_money_quantum() -> None:
    from decimal import Decimal

    assert LedgerPolicy().money_quantum() == Decimal("0.01")
    assert LedgerPolicy(money_decimal_places=0).money_quantum() == Decimal("1")


def test_redact_context_hides_amounts_and_identities() -> None:
    redacted = redact_context({"actor_id": "alice", "delta": "10", "budget_id": "b1"})
    assert redacted["actor_id"] == "***REDACTED***"
    assert redacted["delta"] == "***REDACTED***"
    assert redacted["budget_id"] == "b1"


def test_correlation_id_roundtrip() -> None:
    set_correlation_id("req-123")
    assert get_correlation_id() == "req-123"


def test_log_operation_reports_rejection_kind() -> None:
    logger = get_logger("test")
    with structlog.testing.capture_logs() as logs:
        with pytest.raises(BudgetExceeded):
            with LogOperation(logger, "create_order", budget_id="b1"):
                raise BudgetExceeded("b1", "10", "95", "100")

    rejected = [entry for entry in logs if entry["event"] == "create_order rejected"]
    assert rejected
    assert rejected[0]["kind"] == "BudgetExceeded"
    assert rejected[0]["log_level"] == "warning"


def test_log_operation_reports_completion() -> None:
    logger = get_logger("test")
    with structlog.testing.capture_logs() as logs:
        with LogOperation(logger, "edit_budget", budget_id="b1"):
            pass

    assert any(entry["event"] == "edit_budget completed" for entry in logs)


def test_track_command_duration_counts_outcomes() -> None:
    @track_command_duration("TestCommand")
    def succeed() -> str:
        return "ok"

    @track_command_duration("TestCommand")
    def reject() -> None:
        raise BudgetExceeded("b1", "1", "0", "0")

    labels_ok = {"command_type": "TestCommand", "status": "success"}
    labels_rejected = {"command_type": "TestCommand", "status": "rejected"}
    before_ok = _sample("ledger_commands_processed_total", labels_ok)
    before_rejected = _sample("ledger_commands_processed_total", labels_rejected)

    assert succeed() == "ok"
    with pytest.raises(BudgetExceeded):
        reject()

    assert _sample("ledger_commands_processed_total", labels_ok) == before_ok + 1
    assert _sample("ledger_commands_processed_total", labels_rejected) == before_rejected + 1


def test_retry_on_version_conflict_reruns_until_success() -> None:
    attempts = []

    @retry_on_version_conflict(max_attempts=3)
    def flaky() -> int:
        attempts.append(1)
        if len(attempts) < 3:
            raise StreamVersionConflict("s", 0, 1)
        return len(attempts)

    before = _sample("ledger_stream_version_conflicts_total")
    assert flaky() == 3
    assert _sample("ledger_stream_version_conflicts_total") == before + 2


def test_retry_on_version_conflict_gives_up() -> None:
    @retry_on_version_conflict(max_attempts=2)
    def always_conflicts() -> None:
        raise StreamVersionConflict("s", 0, 1)

    with pytest.raises(StreamVersionConflict):
        always_conflicts()
