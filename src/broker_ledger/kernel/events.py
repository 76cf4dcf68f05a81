"""
Base Event model

Events are immutable facts about what happened to a budget, an order or the
commission feed. The append-only log of events is the source of truth; every
registry is rebuilt by replaying it.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Event(BaseModel):
    """
    Base event class - all ledger events use this envelope

    stream_id + version give optimistic locking, command_id gives idempotency.
    """

    event_id: str = Field(
        ...,
        description="Unique event identifier (time-ordered UUID)",
    )

    stream_id: str = Field(
        ...,
        description="Aggregate identifier: budget_id, order_id or commission_id",
    )

    stream_type: str = Field(
        ...,
        description="Type of aggregate: 'budget', 'order' or 'commission'",
    )

    event_type: str = Field(
        ...,
        description="Specific event type: 'BudgetCreated', 'OrderAnnulled', etc.",
    )

    occurred_at: datetime = Field(
        ...,
        description="UTC timestamp when event occurred",
    )

    actor_id: str | None = Field(
        default=None,
        description="User who triggered this event (None for system events)",
    )

    command_id: str = Field(
        ...,
        description="ID of command that caused this event (idempotency key)",
    )

    payload: dict = Field(
        default_factory=dict,
        description="Event-specific data (JSON-serializable, money as strings)",
    )

    version: int = Field(
        ...,
        description="Stream version after this event",
        ge=1,
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "event_id": "01908e9a-3b87-7000-8000-123456789abc",
                    "stream_id": "01908e9a-3b80-7000-8000-0000000000aa",
                    "stream_type": "budget",
                    "event_type": "BudgetBalanceAdjusted",
                    "occurred_at": "2025-01-15T10:30:00Z",
                    "actor_id": "analyst-1",
                    "command_id": "01908e9a-3b86-7000-8000-0000000000cc",
                    "payload": {"delta": "500000.00", "executed_amount": "500000.00"},
                    "version": 2,
                }
            ]
        },
    }


def create_event(
    *,
    event_id: str,
    stream_id: str,
    stream_type: str,
    event_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    actor_id: str | None = None,
    payload: dict | None = None,
) -> Event:
    """Factory for events with named parameters"""
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload or {},
        version=version,
    )
