"""
Unified event definitions for the auto-record reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Auto-stop events carry stop_id for stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from orchestrator.enums.output import Output, OutputState


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every event_type must be explicitly handled or explicitly ignored
    by the reducer.
    """

    # ------------------------------------------------------------------
    # Event source lifecycle
    # ------------------------------------------------------------------
    SOURCE_CONNECTED = "SOURCE_CONNECTED"
    SOURCE_DISCONNECTED = "SOURCE_DISCONNECTED"

    # ------------------------------------------------------------------
    # Combat
    # ------------------------------------------------------------------
    COMBAT_ENTERED = "COMBAT_ENTERED"
    COMBAT_EXITED = "COMBAT_EXITED"
    COUNTDOWN_TICKED = "COUNTDOWN_TICKED"

    # ------------------------------------------------------------------
    # Duty lifecycle
    # ------------------------------------------------------------------
    DUTY_STARTED = "DUTY_STARTED"
    DUTY_COMPLETED = "DUTY_COMPLETED"
    DUTY_WIPED = "DUTY_WIPED"

    # ------------------------------------------------------------------
    # Delayed auto-stop
    # ------------------------------------------------------------------
    AUTO_STOP_ELAPSED = "AUTO_STOP_ELAPSED"
    AUTO_STOP_ABORTED = "AUTO_STOP_ABORTED"

    # ------------------------------------------------------------------
    # Backend notifications
    # ------------------------------------------------------------------
    OBS_CONNECTED = "OBS_CONNECTED"
    OBS_DISCONNECTED = "OBS_DISCONNECTED"
    OUTPUT_STATE_CHANGED = "OUTPUT_STATE_CHANGED"
    STREAM_STATUS_UPDATED = "STREAM_STATUS_UPDATED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Event Source Lifecycle
# =============================================================================

@dataclass(frozen=True)
class SourceConnected(Event):
    """A game-state event source attached to the gateway."""
    source_id: str


@dataclass(frozen=True)
class SourceDisconnected(Event):
    """A game-state event source went away."""
    source_id: str
    reason: str | None = None


# =============================================================================
# Combat Events
# =============================================================================

@dataclass(frozen=True)
class CombatEntered(Event):
    """Player entered combat (edge-triggered)."""


@dataclass(frozen=True)
class CombatExited(Event):
    """Player left combat (edge-triggered)."""


@dataclass(frozen=True)
class CountdownTicked(Event):
    """
    Current value of the pull countdown.

    The value decreases toward zero during one countdown; an increase
    means a new countdown has started.
    """
    value: float


# =============================================================================
# Duty Events
# =============================================================================

@dataclass(frozen=True)
class DutyStarted(Event):
    """Player entered a duty."""
    territory_id: int


@dataclass(frozen=True)
class DutyCompleted(Event):
    """Duty was cleared or left."""
    territory_id: int


@dataclass(frozen=True)
class DutyWiped(Event):
    """Party wiped inside a duty."""
    territory_id: int


# =============================================================================
# Auto-stop Events
# =============================================================================

@dataclass(frozen=True)
class AutoStopElapsed(Event):
    """
    A delayed-stop sequence ran to completion without cancellation.

    The reducer MUST ignore it unless stop_id is the pending one.
    """
    stop_id: int


@dataclass(frozen=True)
class AutoStopAborted(Event):
    """
    A delayed-stop sequence died on an unexpected error.

    Releases the pending slot without stopping the recording.
    """
    stop_id: int
    reason: str


# =============================================================================
# Backend Notifications
# =============================================================================

@dataclass(frozen=True)
class StreamStats:
    """Latest stream statistics reported by the backend."""
    active: bool = False
    reconnecting: bool = False
    timecode: str = ""
    duration_ms: int = 0
    congestion: float = 0.0
    bytes_sent: int = 0
    skipped_frames: int = 0
    total_frames: int = 0


@dataclass(frozen=True)
class BackendNotification(Event):
    """
    Base class for asynchronous notifications from the OBS transport.

    Applied to the connection manager / output mirror by the runtime
    before the reducer sees them.
    """


@dataclass(frozen=True)
class ObsConnected(BackendNotification):
    """Transport finished the identify handshake."""


@dataclass(frozen=True)
class ObsDisconnected(BackendNotification):
    """Transport connection closed (by either side)."""
    reason: str | None = None


@dataclass(frozen=True)
class OutputStateChanged(BackendNotification):
    """An output reached a new terminal state."""
    output: Output
    state: OutputState


@dataclass(frozen=True)
class StreamStatusUpdated(BackendNotification):
    """Fresh stream statistics."""
    stats: StreamStats
