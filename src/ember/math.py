from __future__ import annotations

import math


def clamp(value: float, low: float, high: float) -> float:
    if value < low:
        return low
    if value > high:
        return high
    return value


def saturate_exp(value: float, rate: float) -> float:
    """Return `1 - exp(-value * rate)`: 0 at rest, approaching 1 as `value` grows."""
    return 1.0 - math.exp(-float(value) * float(rate))


def ms_bucket(seconds: float) -> int:
    """Round a time in seconds to an integer millisecond bucket."""
    # JS-style half-up rounding; `round()` would bank ties to even.
    return int(math.floor(float(seconds) * 1000.0 + 0.5))


def imul32(a: int, b: int) -> int:
    """Signed 32-bit multiply with wraparound."""
    return to_int32((int(a) * int(b)) & 0xFFFFFFFF)


def to_int32(value: int) -> int:
    value = int(value) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value
