from __future__ import annotations

from .buffer import ReplayBuffer, build_replay_buffer, stamp_relative
from .session import ReplaySession
from .tokens import Token, build_tokens
from .types import EMPTY_FRAME, ReplayEvent, ReplayFrame, ReplayMode, ReplayStatus

__all__ = [
    "EMPTY_FRAME",
    "ReplayBuffer",
    "ReplayEvent",
    "ReplayFrame",
    "ReplayMode",
    "ReplaySession",
    "ReplayStatus",
    "Token",
    "build_replay_buffer",
    "build_tokens",
    "stamp_relative",
]
