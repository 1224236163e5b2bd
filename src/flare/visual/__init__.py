from __future__ import annotations

from .growth import TRAVEL_DURATION
from .launcher import Launcher, TokenSnapshot, evaluate_at_time

__all__ = [
    "Launcher",
    "TRAVEL_DURATION",
    "TokenSnapshot",
    "evaluate_at_time",
]
