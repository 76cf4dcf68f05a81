"""
BudgetLedger - main façade of the brokerage budget ledger

This is the primary interface for the dashboard, the CLI and the health
server. It hides event sourcing, projections and command handling behind
plain method calls.

Example:
    >>> from broker_ledger import BudgetLedger
    >>> ledger = BudgetLedger("ledger.db")
    >>> budget = ledger.create_budget("client-001", "0.60", commission_basis="1000000")
    >>> order = ledger.create_order(budget.budget_id, "OS-001", quantity=10, unit_cost="50000")
    >>> ledger.get_budget(budget.budget_id).remaining_balance()
    Decimal('100000.00')

Every write follows the same path: catch up projections from the store,
run the handler against fresh state, append all resulting events in one
atomic multi-stream write. Losing an optimistic-locking race re-runs the
whole cycle, so a retried order is judged against the winner's balance.
"""

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from broker_ledger.access.gate import require_permission, session_can_access
from broker_ledger.access.models import (
    Action,
    Module,
    Resource,
    SessionContext,
    UserProfile,
)
from broker_ledger.budget.commands import (
    CreateBudget,
    EditBudget,
    RecomputeAllocation,
    SetBudgetStatus,
)
from broker_ledger.budget.handlers import BudgetCommandHandlers
from broker_ledger.budget.invariants import load_budget
from broker_ledger.budget.ledger_math import (
    to_fraction,
    to_non_negative_money,
    to_quantity,
)
from broker_ledger.budget.models import Budget, BudgetStatus
from broker_ledger.budget.projections import BudgetRegistry
from broker_ledger.commissions.commands import RecordCommission
from broker_ledger.commissions.handlers import CommissionCommandHandlers
from broker_ledger.commissions.models import Commission
from broker_ledger.commissions.projections import CommissionLedger
from broker_ledger.kernel.errors import (
    BudgetNotFound,
    CommandIdempotencyViolation,
    DomainError,
    InvalidCommandInput,
    OrderNotFound,
)
from broker_ledger.kernel.event_store import SQLiteEventStore, StreamAppend
from broker_ledger.kernel.events import Event
from broker_ledger.kernel.ids import generate_id
from broker_ledger.kernel.logging import LogOperation, get_logger
from broker_ledger.kernel.metrics import (
    budget_execution_ratio,
    order_rejections_total,
    track_command_duration,
)
from broker_ledger.kernel.policy import LedgerPolicy
from broker_ledger.kernel.retry import retry_on_version_conflict
from broker_ledger.kernel.time import RealTimeProvider, TimeProvider
from broker_ledger.orders.commands import (
    AnnulOrder,
    CreateServiceOrder,
    DeleteOrder,
    MarkOrderExecuted,
    RecordInvoice,
    UpdateServiceOrder,
)
from broker_ledger.orders.handlers import OrderCommandHandlers
from broker_ledger.orders.invariants import load_order
from broker_ledger.orders.models import OrderState, ServiceOrder
from broker_ledger.orders.projections import OrderRegistry
from broker_ledger.reports.aggregator import ClientDataAggregator
from broker_ledger.reports.models import (
    BudgetExecution,
    ClientCommissionTotals,
    ClientPortalSummary,
    PortfolioExecution,
    ProgramExecution,
)

logger = get_logger(__name__)


class BudgetLedger:
    """
    Brokerage budget ledger façade

    Provides a unified API for:
    - Commission recording
    - Budget creation, edits and explicit re-derivation
    - Service order lifecycle with balance enforcement
    - Authorization of every call (actor=None is a trusted system caller)
    - Read-only reports
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: LedgerPolicy | None = None,
        time_provider: TimeProvider | None = None,
    ) -> None:
        """
        Initialize the ledger

        Args:
            sqlite_path: Path to SQLite database
            policy: Ledger policy (uses defaults if None)
            time_provider: Time provider (uses real time if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or LedgerPolicy()
        self.time_provider = time_provider or RealTimeProvider()

        # Initialize infrastructure
        self.event_store = SQLiteEventStore(self.sqlite_path)
        self.budget_handlers = BudgetCommandHandlers(self.time_provider, self.policy)
        self.order_handlers = OrderCommandHandlers(
            self.time_provider, self.policy, self.budget_handlers
        )
        self.commission_handlers = CommissionCommandHandlers(
            self.time_provider, self.policy
        )

        # Initialize projections
        self.commission_ledger = CommissionLedger()
        self.budget_registry = BudgetRegistry()
        self.order_registry = OrderRegistry()
        self.reports = ClientDataAggregator(
            self.budget_registry, self.order_registry, self.commission_ledger
        )

        # Rebuild projections from event store
        self._position = 0
        self._catch_up()

    # ========== Event plumbing ==========

    def _apply(self, event: Event) -> None:
        """Route an event to the projections of its stream type"""
        if event.stream_type == "budget":
            self.budget_registry.apply_event(event)
        elif event.stream_type == "order":
            self.order_registry.apply_event(event)
        elif event.stream_type == "commission":
            self.commission_ledger.apply_event(event)

    def _catch_up(self) -> None:
        """Apply every event written since the last one this instance saw"""
        for position, event in self.event_store.load_events_after(self._position):
            self._apply(event)
            self._position = position

    def _execute(
        self,
        command_id: str,
        event_type: str,
        decide: Callable[[], list[Event]],
        stream_id: str | None = None,
    ) -> list[Event]:
        """
        Decide and append atomically, retrying on version conflicts

        Args:
            command_id: Idempotency key; a known one returns its stored events
            event_type: Leading event type this operation writes
            decide: Runs the handler against the current projections
            stream_id: Target stream, for operations on an existing record

        Returns:
            Stored events (empty when the command changed nothing)

        Raises:
            CommandIdempotencyViolation: If command_id was used by an
                operation of another type or on another target
        """

        @retry_on_version_conflict(
            max_attempts=self.policy.max_conflict_retries,
            max_wait_ms=self.policy.max_conflict_wait_ms,
        )
        def attempt() -> list[Event]:
            self._catch_up()

            existing = self.event_store.load_command_events(command_id)
            if existing:
                first = existing[0]
                if first.event_type != event_type or (
                    stream_id is not None and first.stream_id != stream_id
                ):
                    raise CommandIdempotencyViolation(
                        command_id,
                        f"Command {command_id} already wrote {first.event_type} "
                        f"to {first.stream_id}",
                    )
                return existing

            events = decide()
            if not events:
                return []

            batches: dict[str, list[Event]] = {}
            for event in events:
                batches.setdefault(event.stream_id, []).append(event)

            stored = self.event_store.append_atomic(
                [
                    StreamAppend(batch_stream, stream_events[0].version - 1, stream_events)
                    for batch_stream, stream_events in batches.items()
                ]
            )
            self._catch_up()
            return stored

        events = attempt()
        self._record_execution_ratios(events)
        return events

    def _record_execution_ratios(self, events: list[Event]) -> None:
        for budget_id in {e.stream_id for e in events if e.stream_type == "budget"}:
            record = self.budget_registry.get(budget_id)
            if record is not None:
                budget = Budget.model_validate(record)
                budget_execution_ratio.labels(budget_id=budget_id).set(
                    float(budget.execution_ratio())
                )

    def _authorize(
        self,
        actor: UserProfile | None,
        action: Action,
        module: Module,
        client_id: str | None = None,
    ) -> str | None:
        """
        Check the actor against the gate and return its actor_id

        actor=None is a trusted system caller (CLI, batch jobs).

        Raises:
            Unauthorized: If the gate denies
        """
        if actor is None:
            return None
        require_permission(
            actor, action, Resource(module=module.value, client_id=client_id), self.policy
        )
        return actor.user_id

    def _order_operation(
        self,
        command_id: str,
        event_type: str,
        decide: Callable[[], list[Event]],
        order_id: str | None = None,
    ) -> list[Event]:
        """_execute for order commands, counting rejections by kind"""
        try:
            return self._execute(command_id, event_type, decide, order_id)
        except DomainError as e:
            order_rejections_total.labels(reason=e.kind.value).inc()
            raise

    @staticmethod
    def _command(command_type: type[BaseModel], **fields: Any) -> Any:
        """
        Build a command, reporting field validation failures as ledger errors

        Raises:
            InvalidCommandInput: On the first failing field
        """
        try:
            return command_type(**fields)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or command_type.__name__
            raise InvalidCommandInput(command_type.__name__, field, error["msg"]) from e

    # ========== Sessions ==========

    def open_session(self) -> SessionContext:
        """Start a session whose profile is still loading"""
        return SessionContext.start(
            self.time_provider.now(), self.policy.bootstrap_window_seconds
        )

    def session_can_access(self, session: SessionContext, module_path: str) -> bool:
        """Module check honoring the session's bootstrap window"""
        return session_can_access(
            session, module_path, self.time_provider.now(), self.policy
        )

    # ========== Commissions ==========

    @track_command_duration("RecordCommission")
    def record_commission(
        self,
        client_id: str,
        arl_id: str,
        commission_date: date,
        premium_amount: Any,
        commission_rate: Any,
        commission_amount: Any | None = None,
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> Commission:
        """
        Record a commission fact for a client

        commission_amount defaults to premium_amount × commission_rate.
        """
        actor_id = self._authorize(actor, Action.CREATE, Module.COMMISSIONS, client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "record_commission", client_id=client_id):
            command = self._command(
                RecordCommission,
                client_id=client_id,
                arl_id=arl_id,
                commission_date=commission_date,
                premium_amount=to_non_negative_money(
                    premium_amount, "premium_amount", self.policy
                ),
                commission_rate=to_fraction(commission_rate),
                commission_amount=(
                    to_non_negative_money(commission_amount, "commission_amount", self.policy)
                    if commission_amount is not None
                    else None
                ),
            )
            events = self._execute(
                command_id,
                "CommissionRecorded",
                lambda: self.commission_handlers.handle_record_commission(
                    command, command_id, actor_id
                ),
            )

        return Commission.model_validate(
            self.commission_ledger.get(events[0].payload["commission_id"])
        )

    def list_commissions(
        self, client_id: str, actor: UserProfile | None = None
    ) -> list[Commission]:
        """List a client's commissions, oldest first"""
        self._authorize(actor, Action.READ, Module.COMMISSIONS, client_id)
        self._catch_up()
        return self.reports.client_commissions(client_id)

    def commission_basis(self, client_id: str) -> Decimal:
        """Current sum of the client's recorded commissions"""
        self._catch_up()
        return self.commission_ledger.commission_total(client_id)

    # ========== Budgets ==========

    @track_command_duration("CreateBudget")
    def create_budget(
        self,
        client_id: str,
        investment_percentage: Any,
        commission_basis: Any | None = None,
        ally_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> Budget:
        """
        Create a budget for a client

        Args:
            client_id: Client funding the budget
            investment_percentage: Fraction of the basis to allocate, in [0, 1]
            commission_basis: Commission sum to derive from; None sums the
                client's recorded commissions
            ally_id: Optional executing ally
            metadata: Free-form tracking data

        Returns:
            The new Budget (PENDING, nothing executed)

        Raises:
            InvalidFraction: If the percentage is outside [0, 1]
            InvalidQuantityOrCost: If the basis is negative or not numeric
        """
        actor_id = self._authorize(actor, Action.CREATE, Module.BUDGETS, client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "create_budget", client_id=client_id):
            percentage = to_fraction(investment_percentage)
            basis = (
                to_non_negative_money(commission_basis, "commission_basis", self.policy)
                if commission_basis is not None
                else self.commission_basis(client_id)
            )
            command = self._command(
                CreateBudget,
                client_id=client_id,
                commission_basis=basis,
                investment_percentage=percentage,
                ally_id=ally_id,
                metadata=metadata or {},
            )
            events = self._execute(
                command_id,
                "BudgetCreated",
                lambda: self.budget_handlers.handle_create_budget(
                    command, command_id, actor_id
                ),
            )

        return self.get_budget(events[0].payload["budget_id"])

    @track_command_duration("EditBudget")
    def edit_budget(
        self,
        budget_id: str,
        investment_percentage: Any | None = None,
        commission_basis: Any | None = None,
        ally_id: str | None = None,
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> Budget:
        """
        Edit a budget's percentage, basis or ally

        Raises:
            BudgetNotFound: If budget doesn't exist
            InvalidFraction: If the percentage is outside [0, 1]
            AllocationBelowExecuted: If the new allocation would not cover
                the executed amount
        """
        budget = self._budget_for(budget_id, actor, Action.UPDATE)
        actor_id = self._authorize(actor, Action.UPDATE, Module.BUDGETS, budget.client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "edit_budget", budget_id=budget_id):
            command = self._command(
                EditBudget,
                budget_id=budget_id,
                investment_percentage=(
                    to_fraction(investment_percentage)
                    if investment_percentage is not None
                    else None
                ),
                commission_basis=(
                    to_non_negative_money(commission_basis, "commission_basis", self.policy)
                    if commission_basis is not None
                    else None
                ),
                ally_id=ally_id,
            )
            self._execute(
                command_id,
                "BudgetEdited",
                lambda: self.budget_handlers.handle_edit_budget(
                    command, command_id, actor_id, self.budget_registry.budgets
                ),
                budget_id,
            )

        return self.get_budget(budget_id)

    @track_command_duration("RecomputeAllocation")
    def recompute_allocation(
        self,
        budget_id: str,
        new_basis: Any | None = None,
        reason: str = "",
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> Budget:
        """
        Explicitly re-derive a budget's allocation

        Args:
            budget_id: Budget to recompute
            new_basis: New commission basis; None uses the client's current
                commission sum

        Raises:
            BudgetNotFound: If budget doesn't exist
            AllocationBelowExecuted: If the new allocation would not cover
                the executed amount
        """
        budget = self._budget_for(budget_id, actor, Action.UPDATE)
        actor_id = self._authorize(actor, Action.UPDATE, Module.BUDGETS, budget.client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "recompute_allocation", budget_id=budget_id):
            basis = (
                to_non_negative_money(new_basis, "new_basis", self.policy)
                if new_basis is not None
                else self.commission_basis(budget.client_id)
            )
            command = self._command(
                RecomputeAllocation, budget_id=budget_id, new_basis=basis, reason=reason
            )
            self._execute(
                command_id,
                "AllocationRecomputed",
                lambda: self.budget_handlers.handle_recompute_allocation(
                    command, command_id, actor_id, self.budget_registry.budgets
                ),
                budget_id,
            )

        return self.get_budget(budget_id)

    @track_command_duration("SetBudgetStatus")
    def set_budget_status(
        self,
        budget_id: str,
        status: BudgetStatus,
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> Budget:
        """
        Move a budget to a user-chosen status (same status is a no-op)

        Raises:
            BudgetNotFound: If budget doesn't exist
        """
        budget = self._budget_for(budget_id, actor, Action.UPDATE)
        actor_id = self._authorize(actor, Action.UPDATE, Module.BUDGETS, budget.client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "set_budget_status", budget_id=budget_id, status=status.value):
            command = self._command(SetBudgetStatus, budget_id=budget_id, status=status)
            self._execute(
                command_id,
                "BudgetStatusChanged",
                lambda: self.budget_handlers.handle_set_budget_status(
                    command, command_id, actor_id, self.budget_registry.budgets
                ),
                budget_id,
            )

        return self.get_budget(budget_id)

    def _budget_for(
        self,
        budget_id: str,
        actor: UserProfile | None = None,
        action: Action = Action.READ,
        module: Module = Module.BUDGETS,
    ) -> Budget:
        """
        Load a budget for an operation

        A missing id is reported as BudgetNotFound only to actors the gate
        lets through without a client scope; others get Unauthorized, the same
        as for another client's budget.
        """
        self._catch_up()
        try:
            return load_budget(budget_id, self.budget_registry.budgets)
        except BudgetNotFound:
            self._authorize(actor, action, module)
            raise

    def get_budget(self, budget_id: str, actor: UserProfile | None = None) -> Budget:
        """
        Get a budget by ID

        Raises:
            BudgetNotFound: If budget doesn't exist
        """
        budget = self._budget_for(budget_id, actor)
        self._authorize(actor, Action.READ, Module.BUDGETS, budget.client_id)
        return budget

    def list_budgets(
        self,
        client_id: str | None = None,
        status: BudgetStatus | None = None,
        actor: UserProfile | None = None,
    ) -> list[Budget]:
        """
        List budgets, optionally filtered by client and status

        A CLIENTE actor must filter by its own client.
        """
        self._authorize(actor, Action.READ, Module.BUDGETS, client_id)
        self._catch_up()

        if client_id is not None:
            records = self.budget_registry.list_by_client(client_id)
        elif status is not None:
            records = self.budget_registry.list_by_status(status)
        else:
            records = self.budget_registry.list_all()

        budgets = [Budget.model_validate(r) for r in records]
        if status is not None:
            budgets = [b for b in budgets if b.status == status]
        return budgets

    # ========== Service orders ==========

    @track_command_duration("CreateServiceOrder")
    def create_order(
        self,
        budget_id: str,
        order_number: str,
        quantity: Any,
        unit_cost: Any,
        client_id: str | None = None,
        ally_id: str | None = None,
        service_description: str | None = None,
        program: str | None = None,
        sent_date: date | None = None,
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> ServiceOrder:
        """
        Create a PENDIENTE order against a budget

        Raises:
            BudgetNotFound: If budget doesn't exist
            InvalidQuantityOrCost: If quantity or unit cost is negative
            BudgetExceeded: If the order total exceeds the remaining balance
        """
        budget = self._budget_for(budget_id, actor, Action.CREATE, Module.ORDERS)
        actor_id = self._authorize(
            actor, Action.CREATE, Module.ORDERS, client_id or budget.client_id
        )
        command_id = command_id or generate_id()

        with LogOperation(logger, "create_order", budget_id=budget_id):
            command = self._command(
                CreateServiceOrder,
                budget_id=budget_id,
                order_number=order_number,
                quantity=to_quantity(quantity),
                unit_cost=to_non_negative_money(unit_cost, "unit_cost", self.policy),
                client_id=client_id,
                ally_id=ally_id,
                service_description=service_description,
                program=program,
                sent_date=sent_date,
            )
            events = self._order_operation(
                command_id,
                "OrderCreated",
                lambda: self.order_handlers.handle_create_order(
                    command, command_id, actor_id, self.budget_registry.budgets
                ),
            )

        return self.get_order(events[0].payload["order_id"])

    @track_command_duration("UpdateServiceOrder")
    def update_order(
        self,
        order_id: str,
        budget_id: str | None = None,
        quantity: Any | None = None,
        unit_cost: Any | None = None,
        state: OrderState | None = None,
        invoice_number: str | None = None,
        filing_date: date | None = None,
        client_id: str | None = None,
        ally_id: str | None = None,
        service_description: str | None = None,
        program: str | None = None,
        sent_date: date | None = None,
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> ServiceOrder:
        """
        Edit an order; omitted fields keep their current value

        A change of budget_id moves the order's contribution from the old
        budget to the new one in the same transaction.

        Raises:
            OrderNotFound, BudgetNotFound, InvalidOrderTransition,
            MissingInvoiceNumber, InvoicedOrderLocked, InvalidQuantityOrCost,
            BudgetExceeded
        """
        order = self._order_for(order_id, actor, Action.UPDATE)
        actor_id = self._authorize(actor, Action.UPDATE, Module.ORDERS, order.client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "update_order", order_id=order_id):
            command = self._command(
                UpdateServiceOrder,
                order_id=order_id,
                budget_id=budget_id,
                quantity=to_quantity(quantity) if quantity is not None else None,
                unit_cost=(
                    to_non_negative_money(unit_cost, "unit_cost", self.policy)
                    if unit_cost is not None
                    else None
                ),
                state=state,
                invoice_number=invoice_number,
                filing_date=filing_date,
                client_id=client_id,
                ally_id=ally_id,
                service_description=service_description,
                program=program,
                sent_date=sent_date,
            )
            self._order_operation(
                command_id,
                "OrderUpdated",
                lambda: self.order_handlers.handle_update_order(
                    command,
                    command_id,
                    actor_id,
                    self.order_registry.orders,
                    self.budget_registry.budgets,
                ),
                order_id,
            )

        return self.get_order(order_id)

    @track_command_duration("MarkOrderExecuted")
    def mark_executed(
        self,
        order_id: str,
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> ServiceOrder:
        """PENDIENTE → EJECUTADO"""
        order = self._order_for(order_id, actor, Action.UPDATE)
        actor_id = self._authorize(actor, Action.UPDATE, Module.ORDERS, order.client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "mark_executed", order_id=order_id):
            command = self._command(MarkOrderExecuted, order_id=order_id)
            self._order_operation(
                command_id,
                "OrderUpdated",
                lambda: self.order_handlers.handle_mark_executed(
                    command,
                    command_id,
                    actor_id,
                    self.order_registry.orders,
                    self.budget_registry.budgets,
                ),
                order_id,
            )

        return self.get_order(order_id)

    @track_command_duration("RecordInvoice")
    def record_invoice(
        self,
        order_id: str,
        invoice_number: str,
        filing_date: date | None = None,
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> ServiceOrder:
        """
        EJECUTADO → FACTURADO

        Raises:
            MissingInvoiceNumber: If invoice_number is blank
            InvalidOrderTransition: If the order is not EJECUTADO
        """
        order = self._order_for(order_id, actor, Action.UPDATE)
        actor_id = self._authorize(actor, Action.UPDATE, Module.ORDERS, order.client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "record_invoice", order_id=order_id):
            command = self._command(
                RecordInvoice,
                order_id=order_id,
                invoice_number=invoice_number,
                filing_date=filing_date,
            )
            self._order_operation(
                command_id,
                "OrderUpdated",
                lambda: self.order_handlers.handle_record_invoice(
                    command,
                    command_id,
                    actor_id,
                    self.order_registry.orders,
                    self.budget_registry.budgets,
                ),
                order_id,
            )

        return self.get_order(order_id)

    @track_command_duration("AnnulOrder")
    def annul_order(
        self,
        order_id: str,
        reason: str = "",
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> ServiceOrder:
        """
        Annul an order, releasing its total back to the budget

        Raises:
            InvalidOrderTransition: If the order is already ANULADO
        """
        order = self._order_for(order_id, actor, Action.UPDATE)
        actor_id = self._authorize(actor, Action.UPDATE, Module.ORDERS, order.client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "annul_order", order_id=order_id):
            command = self._command(AnnulOrder, order_id=order_id, reason=reason)
            self._order_operation(
                command_id,
                "OrderAnnulled",
                lambda: self.order_handlers.handle_annul_order(
                    command,
                    command_id,
                    actor_id,
                    self.order_registry.orders,
                    self.budget_registry.budgets,
                ),
                order_id,
            )

        return self.get_order(order_id)

    @track_command_duration("DeleteOrder")
    def delete_order(
        self,
        order_id: str,
        reason: str = "",
        actor: UserProfile | None = None,
        command_id: str | None = None,
    ) -> None:
        """Delete an order, releasing whatever it still contributes"""
        order = self._order_for(order_id, actor, Action.DELETE)
        actor_id = self._authorize(actor, Action.DELETE, Module.ORDERS, order.client_id)
        command_id = command_id or generate_id()

        with LogOperation(logger, "delete_order", order_id=order_id):
            command = self._command(DeleteOrder, order_id=order_id, reason=reason)
            self._order_operation(
                command_id,
                "OrderDeleted",
                lambda: self.order_handlers.handle_delete_order(
                    command,
                    command_id,
                    actor_id,
                    self.order_registry.orders,
                    self.budget_registry.budgets,
                ),
                order_id,
            )

    def _order_for(
        self,
        order_id: str,
        actor: UserProfile | None = None,
        action: Action = Action.READ,
    ) -> ServiceOrder:
        """Load an order; missing ids are hidden from actors like _budget_for"""
        self._catch_up()
        try:
            return load_order(order_id, self.order_registry.orders)
        except OrderNotFound:
            self._authorize(actor, action, Module.ORDERS)
            raise

    def get_order(self, order_id: str, actor: UserProfile | None = None) -> ServiceOrder:
        """
        Get an order by ID

        Raises:
            OrderNotFound: If the order doesn't exist (or was deleted)
        """
        order = self._order_for(order_id, actor)
        self._authorize(actor, Action.READ, Module.ORDERS, order.client_id)
        return order

    def list_orders(
        self,
        budget_id: str | None = None,
        client_id: str | None = None,
        state: OrderState | None = None,
        actor: UserProfile | None = None,
    ) -> list[ServiceOrder]:
        """List orders, optionally filtered by budget, client and state"""
        self._authorize(actor, Action.READ, Module.ORDERS, client_id)
        self._catch_up()

        if budget_id is not None:
            records = self.order_registry.list_by_budget(budget_id)
        elif state is not None:
            records = self.order_registry.list_by_state(state)
        else:
            records = self.order_registry.list_all()

        orders = [ServiceOrder.model_validate(r) for r in records]
        if client_id is not None:
            orders = [o for o in orders if o.client_id == client_id]
        if state is not None:
            orders = [o for o in orders if o.state == state]
        return sorted(orders, key=lambda o: o.created_at)

    # ========== Reports ==========

    def client_commission_totals(
        self, client_id: str, actor: UserProfile | None = None
    ) -> ClientCommissionTotals:
        self._authorize(actor, Action.READ, Module.REPORTS, client_id)
        self._catch_up()
        return self.reports.client_commission_totals(client_id)

    def budget_execution(
        self, budget_id: str, actor: UserProfile | None = None
    ) -> BudgetExecution:
        budget = self._budget_for(budget_id, actor, module=Module.REPORTS)
        self._authorize(actor, Action.READ, Module.REPORTS, budget.client_id)
        return self.reports.budget_execution(budget_id)

    def client_portal_summary(
        self, client_id: str, actor: UserProfile | None = None
    ) -> ClientPortalSummary:
        """Headline figures of the client portal"""
        self._authorize(actor, Action.READ, Module.CLIENT_PORTAL, client_id)
        self._catch_up()
        return self.reports.client_portal_summary(client_id)

    def program_breakdown(self, actor: UserProfile | None = None) -> list[ProgramExecution]:
        self._authorize(actor, Action.READ, Module.REPORTS)
        self._catch_up()
        return self.reports.program_breakdown()

    def portfolio_execution(self, actor: UserProfile | None = None) -> PortfolioExecution:
        self._authorize(actor, Action.READ, Module.REPORTS)
        self._catch_up()
        return self.reports.portfolio_execution()

    # ========== Audit ==========

    def get_history(self, stream_id: str) -> list[Event]:
        """Every event of a budget, order or commission stream, oldest first"""
        return self.event_store.load_stream(stream_id)
