"""Growth and travel law shared by the live and replay token evaluators.

Positions are normalized: x runs from 1.0 (right edge, where tokens charge) to
0.0 (left edge); y is a fraction of the sketch height.
"""

from __future__ import annotations

from ember.math import saturate_exp

BASE_Y = 2.0 / 3.0
STACK_SPACING = 0.08
MIN_Y = 0.05
BASE_RADIUS = 0.04
MAX_RADIUS = 0.12
GROWTH_PER_CHARGE = 0.75
PASSIVE_GROWTH_PER_SECOND = 0.35
TRAVEL_DURATION = 1.0
RETIRE_PROGRESS = 1.05
EPSILON = 1e-6


def charge_after(elapsed: float, delta_count: int) -> float:
    """Charge accumulated after `elapsed` seconds of charging and `delta_count` fragments."""
    return max(0.0, float(elapsed)) * PASSIVE_GROWTH_PER_SECOND + float(delta_count)


def radius_for_charge(charge: float) -> float:
    growth = saturate_exp(charge, GROWTH_PER_CHARGE)
    return min(BASE_RADIUS + (MAX_RADIUS - BASE_RADIUS) * growth, MAX_RADIUS)


def travel_progress(elapsed: float) -> float:
    return float(elapsed) / TRAVEL_DURATION


def travel_x(elapsed: float) -> float:
    return 1.0 - travel_progress(elapsed)


def is_retired(elapsed: float) -> bool:
    return travel_progress(elapsed) >= RETIRE_PROGRESS


def lane_y(index: int) -> float:
    return max(MIN_Y, BASE_Y - int(index) * STACK_SPACING)
