"""
Order Module Projections - read models built from order events

OrderRegistry: current state of every live service order. Deleted orders
leave the registry; annulled ones stay, in state ANULADO.
"""

from broker_ledger.kernel.events import Event
from broker_ledger.orders.models import OrderState


class OrderRegistry:
    """
    Service order projection

    Built from events: OrderCreated, OrderUpdated, OrderAnnulled, OrderDeleted

    Query methods: get, list_by_budget, list_by_client, list_by_state, list_all
    """

    def __init__(self) -> None:
        self.orders: dict[str, dict] = {}

    def apply_event(self, event: Event) -> None:
        """
        Apply an event to update the projection

        Args:
            event: Event to apply
        """
        if event.event_type == "OrderCreated":
            self._apply_order_created(event)
        elif event.event_type == "OrderUpdated":
            self._apply_order_updated(event)
        elif event.event_type == "OrderAnnulled":
            self._apply_order_annulled(event)
        elif event.event_type == "OrderDeleted":
            self.orders.pop(event.payload["order_id"], None)

    def _apply_order_created(self, event: Event) -> None:
        payload = event.payload
        order_id = payload["order_id"]

        self.orders[order_id] = {
            "order_id": order_id,
            "order_number": payload["order_number"],
            "budget_id": payload["budget_id"],
            "client_id": payload["client_id"],
            "ally_id": payload.get("ally_id"),
            "quantity": payload["quantity"],
            "unit_cost": payload["unit_cost"],
            "total": payload["total"],
            "state": payload["state"],
            "invoice_number": None,
            "filing_date": None,
            "sent_date": payload.get("sent_date"),
            "service_description": payload.get("service_description"),
            "program": payload.get("program"),
            "created_at": payload["created_at"],
            "updated_at": None,
            "version": event.version,
        }

    def _apply_order_updated(self, event: Event) -> None:
        payload = event.payload
        order = self.orders.get(payload["order_id"])

        if order is not None:
            order.update(
                {
                    "budget_id": payload["budget_id"],
                    "client_id": payload["client_id"],
                    "ally_id": payload.get("ally_id"),
                    "quantity": payload["quantity"],
                    "unit_cost": payload["unit_cost"],
                    "total": payload["total"],
                    "state": payload["to_state"],
                    "invoice_number": payload.get("invoice_number"),
                    "filing_date": payload.get("filing_date"),
                    "sent_date": payload.get("sent_date"),
                    "service_description": payload.get("service_description"),
                    "program": payload.get("program"),
                    "updated_at": payload["updated_at"],
                    "version": event.version,
                }
            )

    def _apply_order_annulled(self, event: Event) -> None:
        payload = event.payload
        order = self.orders.get(payload["order_id"])

        if order is not None:
            order["state"] = OrderState.ANULADO.value
            order["updated_at"] = payload["annulled_at"]
            order["version"] = event.version

    # ========== Query Methods ==========

    def get(self, order_id: str) -> dict | None:
        """Get order by ID, or None if not found (or deleted)"""
        return self.orders.get(order_id)

    def list_by_budget(self, budget_id: str) -> list[dict]:
        """List all orders drawing from a budget"""
        return [o for o in self.orders.values() if o["budget_id"] == budget_id]

    def list_by_client(self, client_id: str) -> list[dict]:
        """List all orders for a client"""
        return [o for o in self.orders.values() if o["client_id"] == client_id]

    def list_by_state(self, state: OrderState) -> list[dict]:
        """List all orders in a lifecycle state"""
        return [o for o in self.orders.values() if o["state"] == state.value]

    def list_all(self) -> list[dict]:
        """List all orders"""
        return list(self.orders.values())
