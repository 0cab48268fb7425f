"""
Backend output enumerations.

Rules:
- Pure data, no behavior.
- Output identifies one independently stateful backend function.
- OutputState is the terminal state last reported by the backend.
"""

from __future__ import annotations

from enum import Enum


class Output(str, Enum):
    """
    Independently stateful backend outputs.

    Each output has exactly one OutputState at any time, owned by the
    output state mirror.
    """

    RECORD = "RECORD"
    STREAM = "STREAM"
    REPLAY_BUFFER = "REPLAY_BUFFER"


class OutputState(str, Enum):
    """
    Last terminal state reported by the backend for one output.

    PAUSED is only ever reported for RECORD.
    """

    STOPPED = "STOPPED"
    STARTED = "STARTED"
    PAUSED = "PAUSED"
