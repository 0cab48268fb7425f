"""
Runtime execution shell for the auto-record orchestrator.

Responsibilities:
- Own orchestrator state
- Route backend notifications to the OBS facade before reducing
- Call pure reducer
- Execute commands with side effects (OBS, delayed stops, logging)
- Convert delayed-stop completion into events

Non-responsibilities:
- No orchestration decisions (reducer)
- No precondition checks (ObsService)
- No transport concerns
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from obs.location import RecordingLocation, compute_recording_location
from obs.results import CommandResult
from observability.logger import log_event
from orchestrator.auto_stop import AutoStopManager
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
from orchestrator.events import BackendNotification, Event
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import OrchestratorState
from spec import AUTO_STOP_TICK_S


if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for the auto-record orchestrator.

    Responsibilities:
    - Own the authoritative orchestrator state
    - Act as the universal event sink
      (gateway events, OBS notifications, delayed-stop events)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Architectural role:
    Runtime is the bridge between the pure orchestration layer
    (reducer + immutable state) and the imperative world
    (OBS, game context, logging, time).

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - State is swapped in before any awaited side effect, so
      overlapping handlers always reduce against the latest state
    - A failing command is logged; the remaining commands still run
    - Delayed stops emit events back into handle_event (single entry point)
    """

    def __init__(
        self,
        *,
        initial_state: OrchestratorState,
        context: RuntimeExecutionContext,
        auto_stop_tick_s: float = AUTO_STOP_TICK_S,
    ) -> None:
        self._state = initial_state
        self._ctx = context

        self._auto_stop = AutoStopManager(
            emit_event=self.handle_event,
            hold=self._in_cutscene,
            tick_s=auto_stop_tick_s,
        )

    @property
    def state(self) -> OrchestratorState:
        """
        Return the current immutable orchestrator state.

        The returned object must be treated as read-only; it is only
        replaced by Runtime via the reducer.
        """
        return self._state

    @property
    def auto_stop(self) -> AutoStopManager:
        return self._auto_stop

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        Processing steps:
        1. Apply backend notifications to the connection manager / mirror
        2. Pass the current state and event to the pure reducer
        3. Swap in the new orchestrator state
        4. Execute all emitted commands sequentially

        This method is the *only* entry point for events affecting
        orchestrator state.
        """
        if isinstance(event, BackendNotification):
            self._ctx.obs.apply_notification(event)

        new_state, commands = reduce(
            self._state,
            event,
            config=self._ctx.auto_record,
            connected=self._ctx.connected,
        )
        self._state = new_state

        for cmd in commands:
            await self._execute_guarded(cmd)

    async def shutdown(self) -> None:
        """
        Cancel every delayed stop. Called on application shutdown.
        """
        self._auto_stop.clear_all()

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_guarded(self, cmd: Command) -> None:
        try:
            await self._execute_command(cmd)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_FAILED",
                "command_type": cmd.command_type.value,
                "error": repr(e),
            })

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""
        obs = self._ctx.obs

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "connection_status": obs.connection.status.value,
            })

        elif isinstance(cmd, TryConnect):
            task = obs.connection.connect(
                self._ctx.config.obs_address,
                self._ctx.config.obs_password,
            )
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "TRY_CONNECT_EXECUTED",
                "started": task is not None,
                "connection_status": obs.connection.status.value,
            })

        elif isinstance(cmd, ApplyRecordingLocation):
            location = self._recording_location()
            if location.is_empty:
                return
            self._log_result(cmd, await obs.set_recording_location(location), {
                "directory": location.directory,
                "filename_format": location.filename_format,
            })

        elif isinstance(cmd, StartRecording):
            self._log_result(cmd, await obs.start_recording())

        elif isinstance(cmd, StopRecording):
            self._log_result(cmd, await obs.stop_recording())

        elif isinstance(cmd, StartReplayBuffer):
            self._log_result(cmd, await obs.start_replay_buffer())

        elif isinstance(cmd, StopReplayBuffer):
            self._log_result(cmd, await obs.stop_replay_buffer())

        elif isinstance(cmd, SaveReplayBuffer):
            self._log_result(cmd, await obs.save_replay_buffer())

        elif isinstance(cmd, StartAutoStop):
            self._auto_stop.start(stop_id=cmd.stop_id, delay_s=cmd.delay_s)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "AUTO_STOP_STARTED",
                "stop_id": cmd.stop_id,
                "delay_s": cmd.delay_s,
            })

        elif isinstance(cmd, CancelAutoStop):
            self._auto_stop.cancel(cmd.stop_id)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "AUTO_STOP_CANCELLED",
                "stop_id": cmd.stop_id,
            })

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_NOT_IMPLEMENTED",
                "command_type": type(cmd).__name__,
            })

    @staticmethod
    def _log_result(
        cmd: Command,
        result: CommandResult,
        details: dict[str, str] | None = None,
    ) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": f"{cmd.command_type.value}_EXECUTED",
            "issued": result.issued,
            "error": result.error.value if result.error is not None else None,
            "detail": result.detail,
            "details": details or {},
        })

    # ------------------------------------------------------------------
    # Context reads
    # ------------------------------------------------------------------

    def _in_cutscene(self) -> bool:
        cfg = self._ctx.auto_record
        if not cfg.dont_stop_in_cutscene:
            return False
        return self._ctx.game.online_status_id() == cfg.cutscene_online_status_id

    def _recording_location(self) -> RecordingLocation:
        """
        Location for the next start/stop, computed fresh every time.

        Each base field not configured falls back to the value captured
        at connect time.
        """
        cfg = self._ctx.auto_record
        previous = self._ctx.obs.connection.previous_location
        base_directory = cfg.record_directory.strip() or previous.directory
        base_filename_format = cfg.filename_format.strip() or previous.filename_format

        territory_id = self._ctx.game.territory_id()
        return compute_recording_location(
            territory_id=territory_id,
            zone_name=self._ctx.game.zone_name(territory_id),
            base_directory=base_directory,
            base_filename_format=base_filename_format,
            include_territory=cfg.include_territory,
            zone_as_suffix=cfg.zone_as_suffix,
        )
