"""
Order Module Handlers - the Order Consumption Validator

Each handler decides whether an order change is admissible against its
budget and returns the order event followed by the budget balance events it
causes. The façade appends all of them in one atomic multi-stream write, so
an order is never created or edited without its budget moving too.
"""

from decimal import Decimal

from broker_ledger.budget.handlers import BudgetCommandHandlers
from broker_ledger.budget.invariants import load_budget
from broker_ledger.budget.ledger_math import compute_order_total, to_non_negative_money
from broker_ledger.kernel.events import Event, create_event
from broker_ledger.kernel.ids import generate_id
from broker_ledger.kernel.policy import LedgerPolicy
from broker_ledger.kernel.time import TimeProvider
from broker_ledger.orders.commands import (
    AnnulOrder,
    CreateServiceOrder,
    DeleteOrder,
    MarkOrderExecuted,
    RecordInvoice,
    UpdateServiceOrder,
)
from broker_ledger.orders.events import (
    OrderAnnulled,
    OrderCreated,
    OrderDeleted,
    OrderUpdated,
)
from broker_ledger.orders.invariants import (
    load_order,
    order_contribution,
    plan_contribution_deltas,
    validate_financials_unlocked,
    validate_invoice_number,
    validate_transition,
)
from broker_ledger.orders.models import OrderState, ServiceOrder


class OrderCommandHandlers:
    """
    Command handlers for service orders

    Budget balance events are built by BudgetCommandHandlers.adjust_balance,
    which holds the single apply_delta check.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: LedgerPolicy,
        budget_handlers: BudgetCommandHandlers | None = None,
    ) -> None:
        self.time_provider = time_provider
        self.policy = policy
        self.budget_handlers = budget_handlers or BudgetCommandHandlers(
            time_provider, policy
        )

    def handle_create_order(
        self,
        command: CreateServiceOrder,
        command_id: str,
        actor_id: str | None,
        budget_registry: dict,
    ) -> list[Event]:
        """
        Handle CreateServiceOrder command

        The new order contributes its full total to the budget.

        Returns:
            [OrderCreated, BudgetBalanceAdjusted] (no balance event for a
            zero total)

        Raises:
            BudgetNotFound: If the budget doesn't exist
            InvalidQuantityOrCost: If quantity or unit cost is negative
            BudgetExceeded: If the total doesn't fit the remaining balance
        """
        now = self.time_provider.now()
        budget = load_budget(command.budget_id, budget_registry)

        unit_cost = to_non_negative_money(command.unit_cost, "unit_cost", self.policy)
        total = compute_order_total(command.quantity, unit_cost, self.policy)

        order_id = generate_id()
        balance_event = self.budget_handlers.adjust_balance(
            budget,
            order_contribution(total, OrderState.PENDIENTE),
            order_id=order_id,
            reason="order created",
            command_id=command_id,
            actor_id=actor_id,
        )

        event_payload = OrderCreated(
            order_id=order_id,
            order_number=command.order_number,
            budget_id=budget.budget_id,
            client_id=command.client_id or budget.client_id,
            ally_id=command.ally_id or budget.ally_id,
            quantity=command.quantity,
            unit_cost=unit_cost,
            total=total,
            state=OrderState.PENDIENTE,
            service_description=command.service_description,
            program=command.program,
            sent_date=command.sent_date,
            created_at=now,
            created_by=actor_id,
        ).model_dump(mode="json")

        order_event = create_event(
            event_id=generate_id(),
            stream_id=order_id,
            stream_type="order",
            event_type="OrderCreated",
            occurred_at=now,
            command_id=command_id,
            actor_id=actor_id,
            payload=event_payload,
            version=1,
        )

        return [order_event] + ([balance_event] if balance_event else [])

    def handle_update_order(
        self,
        command: UpdateServiceOrder,
        command_id: str,
        actor_id: str | None,
        order_registry: dict,
        budget_registry: dict,
    ) -> list[Event]:
        """
        Handle UpdateServiceOrder command

        Validation, in order:
        1. The state transition is allowed (ANULADO accepts no edits)
        2. FACTURADO requires an invoice number
        3. Invoiced quantity/unit cost stay locked (policy)
        4. Contribution deltas fit the budget(s) via apply_delta

        An edit that changes nothing produces no event.

        Returns:
            [OrderUpdated, BudgetBalanceAdjusted...]

        Raises:
            OrderNotFound, BudgetNotFound, InvalidOrderTransition,
            MissingInvoiceNumber, InvoicedOrderLocked, InvalidQuantityOrCost,
            BudgetExceeded
        """
        now = self.time_provider.now()
        order = load_order(command.order_id, order_registry)

        target_state = command.state or order.state
        validate_transition(order.order_id, order.state, target_state)

        invoice_number = (
            command.invoice_number
            if command.invoice_number is not None
            else order.invoice_number
        )
        validate_invoice_number(order.order_id, target_state, invoice_number)

        quantity = command.quantity if command.quantity is not None else order.quantity
        unit_cost = (
            to_non_negative_money(command.unit_cost, "unit_cost", self.policy)
            if command.unit_cost is not None
            else order.unit_cost
        )
        total = compute_order_total(quantity, unit_cost, self.policy)
        validate_financials_unlocked(order, quantity, unit_cost, self.policy)

        budget_id = command.budget_id or order.budget_id
        if budget_id != order.budget_id:
            # Target budget must exist even if the order contributes nothing
            load_budget(budget_id, budget_registry)

        updated = order.model_copy(
            update={
                "budget_id": budget_id,
                "quantity": quantity,
                "unit_cost": unit_cost,
                "total": total,
                "state": target_state,
                "invoice_number": invoice_number,
                "filing_date": _pick(command.filing_date, order.filing_date),
                "client_id": _pick(command.client_id, order.client_id),
                "ally_id": _pick(command.ally_id, order.ally_id),
                "service_description": _pick(
                    command.service_description, order.service_description
                ),
                "program": _pick(command.program, order.program),
                "sent_date": _pick(command.sent_date, order.sent_date),
            }
        )
        if updated == order:
            return []

        balance_events = self._balance_events(
            order,
            new_budget_id=budget_id,
            new_contribution=updated.contribution(),
            reason=f"order {order.state.value} -> {target_state.value}",
            command_id=command_id,
            actor_id=actor_id,
            budget_registry=budget_registry,
        )

        event_payload = OrderUpdated(
            order_id=order.order_id,
            budget_id=budget_id,
            previous_budget_id=order.budget_id,
            quantity=updated.quantity,
            unit_cost=updated.unit_cost,
            total=updated.total,
            previous_total=order.total,
            from_state=order.state,
            to_state=target_state,
            invoice_number=updated.invoice_number,
            filing_date=updated.filing_date,
            client_id=updated.client_id,
            ally_id=updated.ally_id,
            service_description=updated.service_description,
            program=updated.program,
            sent_date=updated.sent_date,
            updated_at=now,
            updated_by=actor_id,
        ).model_dump(mode="json")

        order_event = self._order_event(
            order, "OrderUpdated", event_payload, command_id, actor_id
        )
        return [order_event] + balance_events

    def handle_mark_executed(
        self,
        command: MarkOrderExecuted,
        command_id: str,
        actor_id: str | None,
        order_registry: dict,
        budget_registry: dict,
    ) -> list[Event]:
        """Handle MarkOrderExecuted command (PENDIENTE → EJECUTADO)"""
        return self.handle_update_order(
            UpdateServiceOrder(order_id=command.order_id, state=OrderState.EJECUTADO),
            command_id,
            actor_id,
            order_registry,
            budget_registry,
        )

    def handle_record_invoice(
        self,
        command: RecordInvoice,
        command_id: str,
        actor_id: str | None,
        order_registry: dict,
        budget_registry: dict,
    ) -> list[Event]:
        """
        Handle RecordInvoice command (EJECUTADO → FACTURADO)

        Raises:
            MissingInvoiceNumber: If the invoice number is blank
        """
        validate_invoice_number(
            command.order_id, OrderState.FACTURADO, command.invoice_number
        )
        return self.handle_update_order(
            UpdateServiceOrder(
                order_id=command.order_id,
                state=OrderState.FACTURADO,
                invoice_number=command.invoice_number.strip(),
                filing_date=command.filing_date,
            ),
            command_id,
            actor_id,
            order_registry,
            budget_registry,
        )

    def handle_annul_order(
        self,
        command: AnnulOrder,
        command_id: str,
        actor_id: str | None,
        order_registry: dict,
        budget_registry: dict,
    ) -> list[Event]:
        """
        Handle AnnulOrder command

        Releases exactly the order's total back to its budget.

        Raises:
            OrderNotFound: If the order doesn't exist
            InvalidOrderTransition: If the order is already ANULADO
        """
        now = self.time_provider.now()
        order = load_order(command.order_id, order_registry)
        validate_transition(order.order_id, order.state, OrderState.ANULADO)

        released = order.contribution()
        balance_events = self._balance_events(
            order,
            new_budget_id=order.budget_id,
            new_contribution=Decimal("0"),
            reason="order annulled",
            command_id=command_id,
            actor_id=actor_id,
            budget_registry=budget_registry,
        )

        event_payload = OrderAnnulled(
            order_id=order.order_id,
            budget_id=order.budget_id,
            from_state=order.state,
            released_amount=released,
            reason=command.reason,
            annulled_at=now,
            annulled_by=actor_id,
        ).model_dump(mode="json")

        order_event = self._order_event(
            order, "OrderAnnulled", event_payload, command_id, actor_id
        )
        return [order_event] + balance_events

    def handle_delete_order(
        self,
        command: DeleteOrder,
        command_id: str,
        actor_id: str | None,
        order_registry: dict,
        budget_registry: dict,
    ) -> list[Event]:
        """
        Handle DeleteOrder command

        Annulled orders can be deleted too; they have nothing left to release.

        Raises:
            OrderNotFound: If the order doesn't exist
        """
        now = self.time_provider.now()
        order = load_order(command.order_id, order_registry)

        released = order.contribution()
        balance_events = self._balance_events(
            order,
            new_budget_id=order.budget_id,
            new_contribution=Decimal("0"),
            reason="order deleted",
            command_id=command_id,
            actor_id=actor_id,
            budget_registry=budget_registry,
        )

        event_payload = OrderDeleted(
            order_id=order.order_id,
            budget_id=order.budget_id,
            state=order.state,
            released_amount=released,
            reason=command.reason,
            deleted_at=now,
            deleted_by=actor_id,
        ).model_dump(mode="json")

        order_event = self._order_event(
            order, "OrderDeleted", event_payload, command_id, actor_id
        )
        return [order_event] + balance_events

    def _balance_events(
        self,
        order: ServiceOrder,
        new_budget_id: str,
        new_contribution: Decimal,
        reason: str,
        command_id: str,
        actor_id: str | None,
        budget_registry: dict,
    ) -> list[Event]:
        """Validate every delta an order change needs and build their events"""
        events: list[Event] = []
        for budget_id, delta in plan_contribution_deltas(
            order.budget_id, order.contribution(), new_budget_id, new_contribution
        ):
            budget = load_budget(budget_id, budget_registry)
            event = self.budget_handlers.adjust_balance(
                budget,
                delta,
                order_id=order.order_id,
                reason=reason,
                command_id=command_id,
                actor_id=actor_id,
            )
            if event is not None:
                events.append(event)
        return events

    def _order_event(
        self,
        order: ServiceOrder,
        event_type: str,
        payload: dict,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            stream_id=order.order_id,
            stream_type="order",
            event_type=event_type,
            occurred_at=self.time_provider.now(),
            command_id=command_id,
            actor_id=actor_id,
            payload=payload,
            version=order.version + 1,
        )


def _pick(new, current):
    return new if new is not None else current
