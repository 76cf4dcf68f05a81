"""
Identifier generation

Budgets, orders, commissions and events are keyed by UUID-shaped strings.
The generator embeds a millisecond timestamp in the leading 48 bits so ids
sort in creation order, which keeps the event log naturally ordered.
"""

import re
import secrets
import time
from typing import Protocol

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


class IdFactory(Protocol):
    """Protocol for ID generation strategies"""

    def generate(self) -> str:
        ...


def generate_id() -> str:
    """
    Generate a time-ordered, UUIDv7-shaped identifier

    Layout: 48 bits of Unix milliseconds, version nibble 7, 12 random bits,
    variant bits 10, 62 random bits.

    Returns:
        36-character lowercase UUID string
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)

    value = (timestamp_ms << 80) | (0x7 << 76) | (rand_a << 64) | (0b10 << 62) | rand_b
    hex_value = f"{value:032x}"
    return (
        f"{hex_value[0:8]}-{hex_value[8:12]}-{hex_value[12:16]}-"
        f"{hex_value[16:20]}-{hex_value[20:32]}"
    )


def is_uuid_shaped(value: str) -> bool:
    """Check that value looks like an opaque UUID identifier"""
    return bool(_UUID_PATTERN.match(value.lower()))


class DefaultIdFactory:
    """Default ID factory"""

    def generate(self) -> str:
        return generate_id()


default_id_factory = DefaultIdFactory()
