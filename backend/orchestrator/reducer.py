"""
Pure auto-record reducer.

(state, event, config, connected) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every event is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from config import AutoRecordConfig
from orchestrator.commands import (
    ApplyRecordingLocation,
    CancelAutoStop,
    Command,
    LogEvent,
    SaveReplayBuffer,
    StartAutoStop,
    StartRecording,
    StartReplayBuffer,
    StopRecording,
    StopReplayBuffer,
    TryConnect,
)
from orchestrator.events import (
    AutoStopAborted,
    AutoStopElapsed,
    BackendNotification,
    CombatEntered,
    CombatExited,
    CountdownTicked,
    DutyCompleted,
    DutyStarted,
    DutyWiped,
    Event,
    ObsConnected,
    ObsDisconnected,
    OutputStateChanged,
    SourceConnected,
    SourceDisconnected,
)
from orchestrator.state_dataclass import OrchestratorState


# =============================================================================
# Invariants
# =============================================================================
# - At most one delayed-stop sequence is pending (auto_stop_pending).
# - auto_stop_id is bumped ONLY when a new sequence starts.
# - Auto-stop events whose stop_id is not the pending one are ignored.
# - last_countdown_value is written on EVERY CountdownTicked, including
#   the not-connected branch.


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: OrchestratorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
    *,
    connected: bool,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "event_type": event.event_type.value,
            "decision": decision,
            "connected": connected,
            "auto_stop": {
                "pending": state.auto_stop_pending,
                "stop_id": state.auto_stop_id,
            },
            "last_countdown_value": state.last_countdown_value,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs = [c for c in commands if not isinstance(c, LogEvent)]
    logs = [c for c in commands if isinstance(c, LogEvent)]
    return tuple(non_logs + logs)


def _ignore(
    state: OrchestratorState,
    event: Event,
    reason: str,
    *,
    connected: bool,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    return state, (
        _log(state, event, "ignore", {"reason": reason}, connected=connected),
    )


def _start_recording_commands() -> tuple[Command, ...]:
    # Location must be pushed before the start; the backend rejects
    # location changes once the output is running.
    return (ApplyRecordingLocation(), StartRecording())


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: OrchestratorState,
    event: Event,
    *,
    config: AutoRecordConfig,
    connected: bool,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    Pure reducer for the auto-record state machine.

    Given the current orchestrator state, a single event, the trigger
    configuration and whether the backend is currently connected,
    returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every event is handled or explicitly ignored
    - Version-safe: ignores auto-stop events with stale stop ids
    """

    # ------------------------------------------------------------------
    # Source lifecycle (observability only)
    # ------------------------------------------------------------------
    if isinstance(event, SourceConnected):
        return state, (
            _log(state, event, "source_connected",
                 {"source_id": event.source_id}, connected=connected),
        )

    if isinstance(event, SourceDisconnected):
        return state, (
            _log(state, event, "source_disconnected",
                 {"source_id": event.source_id, "reason": event.reason},
                 connected=connected),
        )

    # ------------------------------------------------------------------
    # Combat
    # ------------------------------------------------------------------
    if isinstance(event, CombatEntered):
        return _on_combat_entered(state, event, config=config, connected=connected)

    if isinstance(event, CombatExited):
        return _on_combat_exited(state, event, config=config, connected=connected)

    if isinstance(event, CountdownTicked):
        return _on_countdown_ticked(state, event, config=config, connected=connected)

    # ------------------------------------------------------------------
    # Duty lifecycle -> replay buffer
    # ------------------------------------------------------------------
    if isinstance(event, DutyStarted):
        if not config.start_replay_buffer_on_duty_entrance:
            return _ignore(state, event, "replay_on_duty_entrance_disabled",
                           connected=connected)
        return state, _logs_last((
            StartReplayBuffer(),
            _log(state, event, "start_replay_buffer",
                 {"territory_id": event.territory_id}, connected=connected),
        ))

    if isinstance(event, DutyCompleted):
        if not config.stop_replay_buffer_on_duty_exit:
            return _ignore(state, event, "replay_on_duty_exit_disabled",
                           connected=connected)
        return state, _logs_last((
            StopReplayBuffer(),
            _log(state, event, "stop_replay_buffer",
                 {"territory_id": event.territory_id}, connected=connected),
        ))

    if isinstance(event, DutyWiped):
        if not config.trigger_replay_buffer_on_wipe:
            return _ignore(state, event, "replay_on_wipe_disabled",
                           connected=connected)
        # Stopping lets a fresh buffer begin for the retry.
        return state, _logs_last((
            StopReplayBuffer(),
            _log(state, event, "stop_replay_buffer_on_wipe",
                 {"territory_id": event.territory_id}, connected=connected),
        ))

    # ------------------------------------------------------------------
    # Delayed auto-stop completion
    # ------------------------------------------------------------------
    if isinstance(event, AutoStopElapsed):
        if not state.auto_stop_pending or event.stop_id != state.auto_stop_id:
            return _ignore(state, event, "stale_auto_stop",
                           connected=connected)
        new_state = replace(state, auto_stop_pending=False)
        return new_state, _logs_last((
            ApplyRecordingLocation(),
            StopRecording(),
            SaveReplayBuffer(),
            _log(new_state, event, "auto_stop_recording",
                 {"stop_id": event.stop_id}, connected=connected),
        ))

    if isinstance(event, AutoStopAborted):
        if not state.auto_stop_pending or event.stop_id != state.auto_stop_id:
            return _ignore(state, event, "stale_auto_stop",
                           connected=connected)
        new_state = replace(state, auto_stop_pending=False)
        return new_state, (
            _log(new_state, event, "auto_stop_aborted",
                 {"stop_id": event.stop_id, "reason": event.reason},
                 connected=connected),
        )

    # ------------------------------------------------------------------
    # Backend notifications (already applied to the mirror by runtime)
    # ------------------------------------------------------------------
    if isinstance(event, OutputStateChanged):
        return state, (
            _log(state, event, "output_state_changed",
                 {"output": event.output.value, "state": event.state.value},
                 connected=connected),
        )

    if isinstance(event, (ObsConnected, ObsDisconnected)):
        return state, (
            _log(state, event, "backend_connection_changed", {},
                 connected=connected),
        )

    if isinstance(event, BackendNotification):
        # Stream statistics are high-frequency; nothing to decide.
        return state, ()

    return _ignore(state, event, "unhandled_event", connected=connected)


# =============================================================================
# Combat handlers
# =============================================================================

def _on_combat_entered(
    state: OrchestratorState,
    event: CombatEntered,
    *,
    config: AutoRecordConfig,
    connected: bool,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if not connected:
        # Connection completes asynchronously; this event is dropped.
        return state, _logs_last((
            TryConnect(),
            _log(state, event, "connect_before_start", connected=connected),
        ))

    if not config.start_record_on_combat:
        return _ignore(state, event, "start_on_combat_disabled",
                       connected=connected)

    if state.auto_stop_pending and config.cancel_stop_on_resume:
        # Resuming within the grace period: the recording never should
        # have stopped, so no start is issued.
        new_state = replace(state, auto_stop_pending=False)
        return new_state, _logs_last((
            CancelAutoStop(stop_id=state.auto_stop_id),
            _log(new_state, event, "cancel_auto_stop_on_resume",
                 {"stop_id": state.auto_stop_id}, connected=connected),
        ))

    return state, _logs_last(_start_recording_commands() + (
        _log(state, event, "auto_start_recording",
             {"source": "combat"}, connected=connected),
    ))


def _on_combat_exited(
    state: OrchestratorState,
    event: CombatExited,
    *,
    config: AutoRecordConfig,
    connected: bool,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if not config.stop_record_on_combat:
        return _ignore(state, event, "stop_on_combat_disabled",
                       connected=connected)

    if state.auto_stop_pending:
        return _ignore(state, event, "auto_stop_already_pending",
                       connected=connected)

    stop_id = state.auto_stop_id + 1
    new_state = replace(state, auto_stop_pending=True, auto_stop_id=stop_id)
    return new_state, _logs_last((
        StartAutoStop(
            stop_id=stop_id,
            delay_s=config.stop_record_on_combat_delay_s,
        ),
        _log(new_state, event, "schedule_auto_stop",
             {"stop_id": stop_id,
              "delay_s": config.stop_record_on_combat_delay_s},
             connected=connected),
    ))


def _on_countdown_ticked(
    state: OrchestratorState,
    event: CountdownTicked,
    *,
    config: AutoRecordConfig,
    connected: bool,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    previous = state.last_countdown_value
    new_state = replace(state, last_countdown_value=event.value)

    if not connected:
        return new_state, _logs_last((
            TryConnect(),
            _log(new_state, event, "connect_before_countdown",
                 {"value": event.value}, connected=connected),
        ))

    fresh_countdown = previous is not None and event.value > previous
    if fresh_countdown and config.start_record_on_countdown:
        return new_state, _logs_last(_start_recording_commands() + (
            _log(new_state, event, "auto_start_recording",
                 {"source": "countdown", "previous": previous,
                  "value": event.value},
                 connected=connected),
        ))

    return new_state, (
        _log(new_state, event, "countdown_tracked",
             {"previous": previous, "value": event.value},
             connected=connected),
    )
