"""
Side-effect command definitions for the auto-record orchestrator.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Connection
    TRY_CONNECT = "TRY_CONNECT"

    # Recording
    APPLY_RECORDING_LOCATION = "APPLY_RECORDING_LOCATION"
    START_RECORDING = "START_RECORDING"
    STOP_RECORDING = "STOP_RECORDING"

    # Replay buffer
    START_REPLAY_BUFFER = "START_REPLAY_BUFFER"
    STOP_REPLAY_BUFFER = "STOP_REPLAY_BUFFER"
    SAVE_REPLAY_BUFFER = "SAVE_REPLAY_BUFFER"

    # Delayed auto-stop
    START_AUTO_STOP = "START_AUTO_STOP"
    CANCEL_AUTO_STOP = "CANCEL_AUTO_STOP"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Connection Commands
# =============================================================================

@dataclass(frozen=True)
class TryConnect(Command):
    """
    Request a best-effort connection attempt with the configured address.

    The attempt completes asynchronously; the reducer never waits for it.
    """
    command_type: CommandType = CommandType.TRY_CONNECT


# =============================================================================
# Recording Commands
# =============================================================================

@dataclass(frozen=True)
class ApplyRecordingLocation(Command):
    """
    Compute the recording location from the current zone and push it.

    Zone context is read at execution time, never cached.
    """
    command_type: CommandType = CommandType.APPLY_RECORDING_LOCATION


@dataclass(frozen=True)
class StartRecording(Command):
    """Request to start recording (no-op unless recording is stopped)."""
    command_type: CommandType = CommandType.START_RECORDING


@dataclass(frozen=True)
class StopRecording(Command):
    """Request to stop recording (no-op unless recording is started)."""
    command_type: CommandType = CommandType.STOP_RECORDING


# =============================================================================
# Replay Buffer Commands
# =============================================================================

@dataclass(frozen=True)
class StartReplayBuffer(Command):
    """Request to start the replay buffer."""
    command_type: CommandType = CommandType.START_REPLAY_BUFFER


@dataclass(frozen=True)
class StopReplayBuffer(Command):
    """Request to stop the replay buffer."""
    command_type: CommandType = CommandType.STOP_REPLAY_BUFFER


@dataclass(frozen=True)
class SaveReplayBuffer(Command):
    """Request to save the replay buffer to disk."""
    command_type: CommandType = CommandType.SAVE_REPLAY_BUFFER


# =============================================================================
# Auto-stop Commands
# =============================================================================

@dataclass(frozen=True)
class StartAutoStop(Command):
    """
    Request that the runtime start a delayed-stop sequence.

    On natural completion, the runtime must inject AutoStopElapsed(stop_id).
    """
    stop_id: int
    delay_s: int
    command_type: CommandType = CommandType.START_AUTO_STOP


@dataclass(frozen=True)
class CancelAutoStop(Command):
    """Request to cancel a pending delayed-stop sequence."""
    stop_id: int
    command_type: CommandType = CommandType.CANCEL_AUTO_STOP


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
