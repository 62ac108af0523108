"""
SNMP Helper Functions

Utilities for converting SNMP data types to Python native types.
"""

from typing import Any, NamedTuple

from pysnmp.proto.rfc1902 import Counter32, Counter64, OctetString

from .errors import CounterTypeError

COUNTER32_MODULUS = 2**32
COUNTER64_MODULUS = 2**64


class CounterValue(NamedTuple):
    """A counter reading resolved to an unsigned integer plus its wire width."""

    value: int
    bits: int


def to_counter(value: Any) -> CounterValue:
    # Counter64 first: both are Integer subclasses in pysnmp
    if isinstance(value, Counter64):
        return CounterValue(int(value) % COUNTER64_MODULUS, 64)

    elif isinstance(value, Counter32):
        return CounterValue(int(value) % COUNTER32_MODULUS, 32)

    raise CounterTypeError(
        f"unsupported counter type {type(value).__name__} ({value!r}); "
        "expected Counter32 or Counter64"
    )


def counter_delta(current: CounterValue, previous: int) -> int:
    """
    Unsigned increase from previous to current.

    A 32-bit counter that went backwards is assumed to have wrapped once.
    A 64-bit counter cannot wrap within a polling interval, so going
    backwards means the device reset it and the increase is reported as 0.
    """
    if current.value >= previous:
        return current.value - previous
    if current.bits == 32:
        return current.value + COUNTER32_MODULUS - previous
    return 0


def decode_octets(value: Any) -> str:
    # Interface aliases and descriptions arrive as OctetString
    if isinstance(value, OctetString):
        return bytes(value).decode("utf-8", errors="replace").strip()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace").strip()
    return str(value).strip()
