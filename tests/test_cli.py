"""
CLI Integration Tests

Drives the ledger end-to-end through the typer app.
"""

import json
import tempfile
from pathlib import Path

from typer.testing import CliRunner

from broker_ledger.cli.main import app

runner = CliRunner()


def _id_after(output: str, marker: str) -> str:
    return output.split(marker)[1].split("\n")[0].strip()


def test_full_order_lifecycle_via_cli():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = str(Path(tmpdir) / "test.db")

        result = runner.invoke(app, ["init", "--db", db])
        assert result.exit_code == 0
        assert "Initialized ledger database" in result.stdout

        result = runner.invoke(
            app,
            [
                "commission", "record",
                "--client", "client-1",
                "--arl", "arl-1",
                "--date", "2025-01-01",
                "--premium", "10000000",
                "--rate", "0.10",
                "--db", db,
            ],
        )
        assert result.exit_code == 0
        assert "Amount: 1000000.00" in result.stdout

        result = runner.invoke(
            app, ["budget", "create", "--client", "client-1", "--percentage", "0.60", "--db", db]
        )
        assert result.exit_code == 0
        assert "Allocated: 600000.00" in result.stdout
        budget_id = _id_after(result.stdout, "budget: ")

        result = runner.invoke(
            app,
            [
                "order", "create",
                "--budget", budget_id,
                "--number", "OS-001",
                "--quantity", "10",
                "--unit-cost", "50000",
                "--program", "Capacitación",
                "--db", db,
            ],
        )
        assert result.exit_code == 0
        order_id = _id_after(result.stdout, "order: ")

        result = runner.invoke(
            app,
            [
                "order", "create",
                "--budget", budget_id,
                "--number", "OS-002",
                "--quantity", "4",
                "--unit-cost", "50000",
                "--db", db,
            ],
        )
        assert result.exit_code == 1

        result = runner.invoke(app, ["order", "execute", "--id", order_id, "--db", db])
        assert result.exit_code == 0
        assert "EJECUTADO" in result.stdout

        result = runner.invoke(
            app, ["order", "invoice", "--id", order_id, "--invoice", "FAC-1", "--db", db]
        )
        assert result.exit_code == 0

        result = runner.invoke(app, ["budget", "show", "--id", budget_id, "--json", "--db", db])
        assert result.exit_code == 0
        budget = json.loads(result.stdout)
        assert budget["executed_amount"] == "500000.00"

        result = runner.invoke(app, ["order", "annul", "--id", order_id, "--db", db])
        assert result.exit_code == 0

        result = runner.invoke(app, ["report", "budget", "--id", budget_id, "--json", "--db", db])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["executed_amount"] == "0.00"

        result = runner.invoke(app, ["order", "list", "--budget", budget_id, "--json", "--db", db])
        orders = json.loads(result.stdout)
        assert [o["state"] for o in orders] == ["ANULADO"]


def test_budget_edit_status_and_reports_via_cli():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = str(Path(tmpdir) / "test.db")
        runner.invoke(app, ["init", "--db", db])

        result = runner.invoke(
            app,
            ["budget", "create", "--client", "client-9", "--percentage", "0.5", "--basis", "1000", "--db", db],
        )
        budget_id = _id_after(result.stdout, "budget: ")

        result = runner.invoke(app, ["budget", "edit", "--id", budget_id, "--percentage", "0.8", "--db", db])
        assert result.exit_code == 0
        assert "Allocated: 800.00" in result.stdout

        result = runner.invoke(app, ["budget", "status", "--id", budget_id, "--status", "ACTIVE", "--db", db])
        assert result.exit_code == 0

        result = runner.invoke(app, ["budget", "list", "--status", "ACTIVE", "--json", "--db", db])
        assert [b["budget_id"] for b in json.loads(result.stdout)] == [budget_id]

        result = runner.invoke(app, ["report", "client", "--client", "client-9", "--json", "--db", db])
        assert json.loads(result.stdout)["allocated_total"] == "800.00"

        result = runner.invoke(app, ["report", "programs", "--db", db])
        assert result.exit_code == 0
        assert "Programs: 0" in result.stdout


def test_invalid_percentage_reports_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = str(Path(tmpdir) / "test.db")
        runner.invoke(app, ["init", "--db", db])

        result = runner.invoke(
            app, ["budget", "create", "--client", "c", "--percentage", "1.5", "--basis", "10", "--db", db]
        )

        assert result.exit_code == 1
        assert "outside the range" in result.output


def test_missing_database():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = str(Path(tmpdir) / "absent.db")
        result = runner.invoke(app, ["budget", "list", "--db", db])
        assert result.exit_code == 1


def test_init_refuses_existing_database():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = str(Path(tmpdir) / "test.db")
        assert runner.invoke(app, ["init", "--db", db]).exit_code == 0
        assert runner.invoke(app, ["init", "--db", db]).exit_code == 1


def test_bad_date_is_a_usage_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = str(Path(tmpdir) / "test.db")
        runner.invoke(app, ["init", "--db", db])

        result = runner.invoke(
            app,
            [
                "commission", "record",
                "--client", "client-1",
                "--arl", "arl-1",
                "--date", "2024-13-01",
                "--premium", "1000",
                "--rate", "0.10",
                "--db", db,
            ],
        )

        assert result.exit_code == 2
        assert isinstance(result.exception, SystemExit)

        result = runner.invoke(app, ["commission", "list", "--client", "client-1", "--db", db])
        assert result.exit_code == 0
        assert "Commissions for client-1: 0" in result.stdout


def test_blank_order_number_reports_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = str(Path(tmpdir) / "test.db")
        runner.invoke(app, ["init", "--db", db])
        result = runner.invoke(
            app, ["budget", "create", "--client", "c", "--percentage", "0.5", "--basis", "1000", "--db", db]
        )
        budget_id = _id_after(result.stdout, "budget: ")

        result = runner.invoke(
            app,
            [
                "order", "create",
                "--budget", budget_id,
                "--number", "",
                "--quantity", "1",
                "--unit-cost", "10",
                "--db", db,
            ],
        )

        assert result.exit_code == 1
        assert "invalid order_number" in result.output
