"""
Broker Ledger CLI

Command-line interface for the brokerage budget ledger.
Provides commands for commissions, budgets, service orders and reports.

Usage:
    ledger init --db ledger.db
    ledger commission record --client c-001 --arl arl-01 --date 2024-03-01 --premium 1000000 --rate 0.10
    ledger budget create --client c-001 --percentage 0.60
    ledger order create --budget <id> --number OS-001 --quantity 10 --unit-cost 50000
    ledger order execute --id <order_id>
    ledger order invoice --id <order_id> --invoice FAC-001
    ledger report client --client c-001
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from broker_ledger.budget.models import Budget, BudgetStatus
from broker_ledger.kernel.errors import LedgerError
from broker_ledger.kernel.logging import configure_logging, is_production
from broker_ledger.ledger import BudgetLedger
from broker_ledger.orders.models import OrderState, ServiceOrder

# Logs go to stderr so JSON output on stdout stays parseable
configure_logging(json_output=is_production(), log_level="INFO")

app = typer.Typer(
    name="ledger",
    help="Broker Ledger - client budget allocation and service order control",
    add_completion=False,
)

# Sub-apps
commission_app = typer.Typer(help="Commission recording commands")
budget_app = typer.Typer(help="Budget management commands")
order_app = typer.Typer(help="Service order lifecycle commands")
report_app = typer.Typer(help="Read-only reports")

app.add_typer(commission_app, name="commission")
app.add_typer(budget_app, name="budget")
app.add_typer(order_app, name="order")
app.add_typer(report_app, name="report")

# Global state
DEFAULT_DB = Path(".ledger.db")

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Database path")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_ledger(db_path: Optional[Path] = None) -> BudgetLedger:
    """Get BudgetLedger instance"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'ledger init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return BudgetLedger(db)


@contextmanager
def ledger_errors() -> Iterator[None]:
    """Report ledger errors on stderr and exit non-zero"""
    try:
        yield
    except LedgerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def parse_date(value: Optional[str], option: str = "--date") -> Optional[date]:
    """Parse an ISO date option, rejecting bad values as a usage error"""
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise typer.BadParameter(f"{value!r} is not an ISO date ({e})", param_hint=option) from e


def echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def echo_budget(budget: Budget) -> None:
    typer.echo(f"  Client: {budget.client_id}")
    typer.echo(f"  Status: {budget.status.value}")
    typer.echo(f"  Basis: {budget.total_commission_basis}")
    typer.echo(f"  Percentage: {budget.investment_percentage}")
    typer.echo(f"  Allocated: {budget.allocated_amount}")
    typer.echo(f"  Executed: {budget.executed_amount}")
    typer.echo(f"  Remaining: {budget.remaining_balance()}")


def echo_order(order: ServiceOrder) -> None:
    typer.echo(f"  Number: {order.order_number}")
    typer.echo(f"  Budget: {order.budget_id}")
    typer.echo(f"  State: {order.state.value}")
    typer.echo(f"  Total: {order.total}")
    if order.invoice_number:
        typer.echo(f"  Invoice: {order.invoice_number}")


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new ledger database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    BudgetLedger(db)
    typer.echo(f"✓ Initialized ledger database: {db}")


# Commission commands


@commission_app.command("record")
def commission_record(
    client_id: Annotated[str, typer.Option("--client", help="Client ID")],
    arl_id: Annotated[str, typer.Option("--arl", help="Insurer (ARL) ID")],
    commission_date: Annotated[str, typer.Option("--date", help="Commission date (ISO format)")],
    premium: Annotated[str, typer.Option("--premium", help="Emitted premium")],
    rate: Annotated[str, typer.Option("--rate", help="Commission rate in [0, 1]")],
    amount: Annotated[
        Optional[str],
        typer.Option("--amount", help="Commission amount (default premium × rate)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Record a commission for a client"""
    ledger = get_ledger(db)

    with ledger_errors():
        commission = ledger.record_commission(
            client_id=client_id,
            arl_id=arl_id,
            commission_date=parse_date(commission_date),
            premium_amount=premium,
            commission_rate=rate,
            commission_amount=amount,
        )

    typer.echo(f"✓ Recorded commission: {commission.commission_id}")
    typer.echo(f"  Amount: {commission.commission_amount}")


@commission_app.command("list")
def commission_list(
    client_id: Annotated[str, typer.Option("--client", help="Client ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List a client's commissions"""
    ledger = get_ledger(db)
    commissions = ledger.list_commissions(client_id)

    if json_output:
        echo_json([c.model_dump(mode="json") for c in commissions])
        return

    typer.echo(f"Commissions for {client_id}: {len(commissions)}")
    for c in commissions:
        typer.echo(f"  {c.commission_date}  {c.arl_id}  {c.commission_amount}")
    typer.echo(f"Total: {ledger.commission_basis(client_id)}")


# Budget commands


@budget_app.command("create")
def budget_create(
    client_id: Annotated[str, typer.Option("--client", help="Client ID")],
    percentage: Annotated[str, typer.Option("--percentage", help="Investment fraction in [0, 1]")],
    basis: Annotated[
        Optional[str],
        typer.Option("--basis", help="Commission basis (default: client's commission sum)"),
    ] = None,
    ally_id: Annotated[Optional[str], typer.Option("--ally", help="Executing ally ID")] = None,
    metadata: Annotated[Optional[str], typer.Option("--metadata", help="Metadata (JSON)")] = None,
    db: DbOption = None,
) -> None:
    """Create a budget for a client"""
    ledger = get_ledger(db)

    with ledger_errors():
        budget = ledger.create_budget(
            client_id=client_id,
            investment_percentage=percentage,
            commission_basis=basis,
            ally_id=ally_id,
            metadata=json.loads(metadata) if metadata else {},
        )

    typer.echo(f"✓ Created budget: {budget.budget_id}")
    echo_budget(budget)


@budget_app.command("edit")
def budget_edit(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    percentage: Annotated[Optional[str], typer.Option("--percentage", help="New investment fraction")] = None,
    basis: Annotated[Optional[str], typer.Option("--basis", help="New commission basis")] = None,
    ally_id: Annotated[Optional[str], typer.Option("--ally", help="New ally ID")] = None,
    db: DbOption = None,
) -> None:
    """Edit a budget's percentage, basis or ally"""
    ledger = get_ledger(db)

    with ledger_errors():
        budget = ledger.edit_budget(
            budget_id,
            investment_percentage=percentage,
            commission_basis=basis,
            ally_id=ally_id,
        )

    typer.echo(f"✓ Edited budget: {budget.budget_id}")
    echo_budget(budget)


@budget_app.command("recompute")
def budget_recompute(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    basis: Annotated[
        Optional[str],
        typer.Option("--basis", help="New basis (default: client's current commission sum)"),
    ] = None,
    reason: Annotated[str, typer.Option("--reason", help="Reason for the recompute")] = "",
    db: DbOption = None,
) -> None:
    """Re-derive a budget's allocation from its commission basis"""
    ledger = get_ledger(db)

    with ledger_errors():
        budget = ledger.recompute_allocation(budget_id, new_basis=basis, reason=reason)

    typer.echo(f"✓ Recomputed allocation: {budget.allocated_amount}")


@budget_app.command("status")
def budget_status(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    status: Annotated[BudgetStatus, typer.Option("--status", help="New status")],
    db: DbOption = None,
) -> None:
    """Set a budget's lifecycle status"""
    ledger = get_ledger(db)

    with ledger_errors():
        budget = ledger.set_budget_status(budget_id, status)

    typer.echo(f"✓ Budget {budget.budget_id} is now {budget.status.value}")


@budget_app.command("show")
def budget_show(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show budget details"""
    ledger = get_ledger(db)

    with ledger_errors():
        budget = ledger.get_budget(budget_id)

    if json_output:
        echo_json(budget.model_dump(mode="json"))
    else:
        typer.echo(f"Budget: {budget.budget_id}")
        echo_budget(budget)


@budget_app.command("list")
def budget_list(
    client_id: Annotated[Optional[str], typer.Option("--client", help="Filter by client")] = None,
    status: Annotated[Optional[BudgetStatus], typer.Option("--status", help="Filter by status")] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List budgets"""
    ledger = get_ledger(db)
    budgets = ledger.list_budgets(client_id=client_id, status=status)

    if json_output:
        echo_json([b.model_dump(mode="json") for b in budgets])
        return

    typer.echo(f"Budgets: {len(budgets)}")
    for b in budgets:
        typer.echo(
            f"  {b.budget_id}: {b.client_id} {b.status.value} "
            f"{b.executed_amount}/{b.allocated_amount}"
        )


# Order commands


@order_app.command("create")
def order_create(
    budget_id: Annotated[str, typer.Option("--budget", help="Budget ID")],
    order_number: Annotated[str, typer.Option("--number", help="Order number")],
    quantity: Annotated[str, typer.Option("--quantity", help="Quantity")],
    unit_cost: Annotated[str, typer.Option("--unit-cost", help="Unit cost")],
    program: Annotated[Optional[str], typer.Option("--program", help="Program")] = None,
    description: Annotated[Optional[str], typer.Option("--description", help="Service description")] = None,
    ally_id: Annotated[Optional[str], typer.Option("--ally", help="Ally ID")] = None,
    sent_date: Annotated[Optional[str], typer.Option("--sent-date", help="Sent date (ISO format)")] = None,
    db: DbOption = None,
) -> None:
    """Create a service order against a budget"""
    ledger = get_ledger(db)

    with ledger_errors():
        order = ledger.create_order(
            budget_id,
            order_number,
            quantity=quantity,
            unit_cost=unit_cost,
            ally_id=ally_id,
            service_description=description,
            program=program,
            sent_date=parse_date(sent_date, "--sent-date"),
        )

    typer.echo(f"✓ Created order: {order.order_id}")
    echo_order(order)


@order_app.command("update")
def order_update(
    order_id: Annotated[str, typer.Option("--id", help="Order ID")],
    budget_id: Annotated[Optional[str], typer.Option("--budget", help="Move to budget")] = None,
    quantity: Annotated[Optional[str], typer.Option("--quantity", help="New quantity")] = None,
    unit_cost: Annotated[Optional[str], typer.Option("--unit-cost", help="New unit cost")] = None,
    state: Annotated[Optional[OrderState], typer.Option("--state", help="New state")] = None,
    invoice: Annotated[Optional[str], typer.Option("--invoice", help="Invoice number")] = None,
    filing_date: Annotated[Optional[str], typer.Option("--filing-date", help="Filing date (ISO format)")] = None,
    program: Annotated[Optional[str], typer.Option("--program", help="Program")] = None,
    db: DbOption = None,
) -> None:
    """Edit a service order"""
    ledger = get_ledger(db)

    with ledger_errors():
        order = ledger.update_order(
            order_id,
            budget_id=budget_id,
            quantity=quantity,
            unit_cost=unit_cost,
            state=state,
            invoice_number=invoice,
            filing_date=parse_date(filing_date, "--filing-date"),
            program=program,
        )

    typer.echo(f"✓ Updated order: {order.order_id}")
    echo_order(order)


@order_app.command("execute")
def order_execute(
    order_id: Annotated[str, typer.Option("--id", help="Order ID")],
    db: DbOption = None,
) -> None:
    """Mark an order as executed"""
    ledger = get_ledger(db)

    with ledger_errors():
        order = ledger.mark_executed(order_id)

    typer.echo(f"✓ Order {order.order_id} is {order.state.value}")


@order_app.command("invoice")
def order_invoice(
    order_id: Annotated[str, typer.Option("--id", help="Order ID")],
    invoice: Annotated[str, typer.Option("--invoice", help="Invoice number")],
    filing_date: Annotated[Optional[str], typer.Option("--filing-date", help="Filing date (ISO format)")] = None,
    db: DbOption = None,
) -> None:
    """Record an order's invoice"""
    ledger = get_ledger(db)

    with ledger_errors():
        order = ledger.record_invoice(
            order_id, invoice, filing_date=parse_date(filing_date, "--filing-date")
        )

    typer.echo(f"✓ Order {order.order_id} invoiced as {order.invoice_number}")


@order_app.command("annul")
def order_annul(
    order_id: Annotated[str, typer.Option("--id", help="Order ID")],
    reason: Annotated[str, typer.Option("--reason", help="Reason")] = "",
    db: DbOption = None,
) -> None:
    """Annul an order, releasing its value"""
    ledger = get_ledger(db)

    with ledger_errors():
        order = ledger.annul_order(order_id, reason=reason)

    typer.echo(f"✓ Annulled order: {order.order_id}")


@order_app.command("delete")
def order_delete(
    order_id: Annotated[str, typer.Option("--id", help="Order ID")],
    reason: Annotated[str, typer.Option("--reason", help="Reason")] = "",
    db: DbOption = None,
) -> None:
    """Delete an order, releasing whatever it still consumes"""
    ledger = get_ledger(db)

    with ledger_errors():
        ledger.delete_order(order_id, reason=reason)

    typer.echo(f"✓ Deleted order: {order_id}")


@order_app.command("list")
def order_list(
    budget_id: Annotated[Optional[str], typer.Option("--budget", help="Filter by budget")] = None,
    client_id: Annotated[Optional[str], typer.Option("--client", help="Filter by client")] = None,
    state: Annotated[Optional[OrderState], typer.Option("--state", help="Filter by state")] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List service orders"""
    ledger = get_ledger(db)
    orders = ledger.list_orders(budget_id=budget_id, client_id=client_id, state=state)

    if json_output:
        echo_json([o.model_dump(mode="json") for o in orders])
        return

    typer.echo(f"Orders: {len(orders)}")
    for o in orders:
        typer.echo(f"  {o.order_id}: {o.order_number} {o.state.value} {o.total}")


# Report commands


@report_app.command("client")
def report_client(
    client_id: Annotated[str, typer.Option("--client", help="Client ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Client portal summary"""
    ledger = get_ledger(db)
    summary = ledger.client_portal_summary(client_id)

    if json_output:
        echo_json(summary.model_dump(mode="json"))
        return

    typer.echo(f"Client: {summary.client_id}")
    typer.echo(f"  Commissions: {summary.commission_total}")
    typer.echo(f"  Premiums: {summary.premium_total}")
    typer.echo(f"  Allocated: {summary.allocated_total}")
    typer.echo(f"  Executed: {summary.executed_total}")
    typer.echo(f"  Budgets: {summary.budget_count}")
    typer.echo(f"  Active orders: {summary.active_orders}")


@report_app.command("budget")
def report_budget(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Execution figures of one budget"""
    ledger = get_ledger(db)

    with ledger_errors():
        execution = ledger.budget_execution(budget_id)

    if json_output:
        echo_json(execution.model_dump(mode="json"))
        return

    typer.echo(f"Budget: {execution.budget_id}")
    typer.echo(f"  Allocated: {execution.allocated_amount}")
    typer.echo(f"  Executed: {execution.executed_amount}")
    typer.echo(f"  Remaining: {execution.remaining_balance}")
    typer.echo(f"  Ratio: {execution.execution_ratio}")
    typer.echo(f"  Status: {execution.status.value} (suggested {execution.advisory_status.value})")


@report_app.command("programs")
def report_programs(
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Projected vs executed investment per program"""
    ledger = get_ledger(db)
    programs = ledger.program_breakdown()

    if json_output:
        echo_json([p.model_dump(mode="json") for p in programs])
        return

    typer.echo(f"Programs: {len(programs)}")
    for p in programs:
        typer.echo(
            f"  {p.program}: {p.executed_amount}/{p.projected_amount} "
            f"({p.order_count} orders)"
        )


# Serving


@app.command()
def serve(
    port: Annotated[int, typer.Option("--port", help="Health server port")] = 8080,
    metrics_port: Annotated[
        Optional[int],
        typer.Option("--metrics-port", help="Prometheus metrics port (disabled if unset)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Serve health probes (and optionally Prometheus metrics)"""
    from broker_ledger.health_server import initialize_health_server, run_health_server
    from broker_ledger.kernel.metrics import start_metrics_server

    ledger = get_ledger(db)
    initialize_health_server(ledger.sqlite_path, ledger)
    if metrics_port is not None:
        start_metrics_server(metrics_port)
    run_health_server(port=port)


if __name__ == "__main__":
    app()
