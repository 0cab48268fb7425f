"""
OBS command facade.

Responsibilities:
- Guard every backend command with connection + output state checks
- Turn backend exceptions into CommandResult values (never raise)
- Collect user-facing failure notices
- Route backend notifications to the connection manager and mirror

Non-responsibilities:
- No connection lifecycle decisions (see obs/connection.py)
- No auto-record decisions (see orchestrator/reducer.py)
- No retries
"""

from __future__ import annotations

import time
from collections import deque
from typing import Any, Awaitable, Callable

from adapters.obs.base import FilterInfo, ObsAuthError, ObsRequestError, ObsTransport
from obs.connection import ConnectionManager
from obs.location import RecordingLocation
from obs.output_state import OutputStateMirror
from obs.results import ISSUED, CommandResult, ErrorKind, failed, not_met
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.enums.output import OutputState
from orchestrator.events import BackendNotification
from spec import (
    NOTICE_BUFFER_MAX,
    OBS_STATUS_INVALID_FIELD_TYPE,
    OBS_STATUS_MISSING_FIELD,
    OBS_STATUS_OUTPUT_NOT_RUNNING,
    OBS_STATUS_OUTPUT_RUNNING,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _classify(exc: Exception) -> ErrorKind:
    if isinstance(exc, ObsAuthError):
        return ErrorKind.AUTHENTICATION
    if isinstance(exc, ValueError):
        return ErrorKind.ARGUMENT
    if isinstance(exc, ObsRequestError):
        if exc.code in (OBS_STATUS_OUTPUT_RUNNING, OBS_STATUS_OUTPUT_NOT_RUNNING):
            # Mirror lagged behind the backend; the output is already there.
            return ErrorKind.PRECONDITION_NOT_MET
        if exc.code in (OBS_STATUS_MISSING_FIELD, OBS_STATUS_INVALID_FIELD_TYPE):
            return ErrorKind.ARGUMENT
    return ErrorKind.TRANSIENT


class ObsService:
    """
    Guarded, non-raising OBS operations.

    Every operation returns a CommandResult:
    - issued=True: the command was sent (not yet confirmed)
    - PRECONDITION_NOT_MET: nothing was sent, nothing is wrong
    - any other error: the backend call failed; a notice was queued
    """

    def __init__(self, transport: ObsTransport) -> None:
        self.transport = transport
        self.connection = ConnectionManager(transport)
        self.outputs = OutputStateMirror()
        self.notices: deque[dict[str, Any]] = deque(maxlen=NOTICE_BUFFER_MAX)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def apply_notification(self, event: BackendNotification) -> None:
        self.connection.apply(event)
        self.outputs.apply(event)

    def drain_notices(self) -> list[dict[str, Any]]:
        out = list(self.notices)
        self.notices.clear()
        return out

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _issue(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        *,
        details: dict[str, Any] | None = None,
    ) -> CommandResult:
        try:
            with timed(f"obs_{operation}", details=details):
                await call()
        except Exception as e:  # pylint: disable=broad-exception-caught
            kind = _classify(e)
            if kind is ErrorKind.PRECONDITION_NOT_MET:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "OBS_COMMAND_NOOP",
                    "operation": operation,
                    "error": repr(e),
                })
                return not_met(str(e))
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_COMMAND_FAILED",
                "operation": operation,
                "error_kind": kind.value,
                "error": repr(e),
                "details": details or {},
            })
            self.notices.append({
                "ts_ms": _now_ms(),
                "operation": operation,
                "message": f"OBS {operation.replace('_', ' ')} failed",
            })
            return failed(kind, str(e))

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "OBS_COMMAND_ISSUED",
            "operation": operation,
            "details": details or {},
        })
        return ISSUED

    def _require_connected(self) -> CommandResult | None:
        if not self.connection.is_connected:
            return not_met("not connected")
        return None

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def start_recording(self) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        if self.outputs.record is not OutputState.STOPPED:
            return not_met("recording already active")
        return await self._issue("start_recording", self.transport.start_record)

    async def stop_recording(self) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        if self.outputs.record is not OutputState.STARTED:
            return not_met("recording not active")
        return await self._issue("stop_recording", self.transport.stop_record)

    async def toggle_recording(self) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        return await self._issue("toggle_recording", self.transport.toggle_record)

    async def set_recording_location(self, location: RecordingLocation) -> CommandResult:
        """
        Push non-empty location fields to the backend.

        Only while recording is stopped; the backend ignores location
        changes for a running output.
        """
        r = self._require_connected()
        if r is not None:
            return r
        if self.outputs.record is not OutputState.STOPPED:
            return not_met("recording active")
        if location.is_empty:
            return not_met("empty location")

        directory = location.directory.strip()
        filename_format = location.filename_format.strip()

        async def _apply() -> None:
            if directory:
                await self.transport.set_record_directory(location.directory)
            if filename_format:
                await self.transport.set_filename_formatting(location.filename_format)

        return await self._issue(
            "set_recording_location",
            _apply,
            details={
                "directory": location.directory,
                "filename_format": location.filename_format,
            },
        )

    async def get_recording_location(self) -> RecordingLocation | None:
        """Current backend location, or None when unavailable."""
        if not self.connection.is_connected:
            return None
        try:
            directory = await self.transport.get_record_directory()
            filename_format = await self.transport.get_filename_formatting()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_COMMAND_FAILED",
                "operation": "get_recording_location",
                "error_kind": _classify(e).value,
                "error": repr(e),
            })
            return None
        return RecordingLocation(directory=directory, filename_format=filename_format)

    # ------------------------------------------------------------------
    # Replay buffer
    # ------------------------------------------------------------------

    async def start_replay_buffer(self) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        if self.outputs.replay_buffer is not OutputState.STOPPED:
            return not_met("replay buffer already active")
        return await self._issue("start_replay_buffer", self.transport.start_replay_buffer)

    async def stop_replay_buffer(self) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        if self.outputs.replay_buffer is not OutputState.STARTED:
            return not_met("replay buffer not active")
        return await self._issue("stop_replay_buffer", self.transport.stop_replay_buffer)

    async def save_replay_buffer(self) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        if self.outputs.replay_buffer is not OutputState.STARTED:
            return not_met("replay buffer not active")
        return await self._issue("save_replay_buffer", self.transport.save_replay_buffer)

    async def toggle_replay_buffer(self) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        return await self._issue("toggle_replay_buffer", self.transport.toggle_replay_buffer)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def toggle_streaming(self) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        return await self._issue("toggle_streaming", self.transport.toggle_stream)

    # ------------------------------------------------------------------
    # Source filters
    # ------------------------------------------------------------------

    async def remove_filter_from_source(self, source_name: str, filter_name: str) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        if not source_name or not filter_name:
            return failed(ErrorKind.ARGUMENT, "source and filter names are required")
        return await self._issue(
            "remove_filter_from_source",
            lambda: self.transport.remove_source_filter(source_name, filter_name),
            details={"source": source_name, "filter": filter_name},
        )

    async def remove_filters_with_prefix(self, source_name: str, prefix: str) -> CommandResult:
        """
        Remove every filter on source_name whose name starts with prefix.

        Issued if at least one filter matched and all removals succeeded.
        """
        r = self._require_connected()
        if r is not None:
            return r
        if not source_name or not prefix:
            return failed(ErrorKind.ARGUMENT, "source name and prefix are required")

        filters: list[FilterInfo] = []

        async def _list() -> None:
            filters.extend(await self.transport.get_source_filters(source_name))

        listed = await self._issue(
            "get_source_filters", _list, details={"source": source_name},
        )
        if not listed:
            return listed

        matching = [f.name for f in filters if f.name.startswith(prefix)]
        if not matching:
            return not_met(f"no filters starting with {prefix!r}")

        for name in matching:
            result = await self.remove_filter_from_source(source_name, name)
            if not result:
                return result
        return ISSUED

    async def get_source_filter(self, source_name: str, filter_name: str) -> FilterInfo | None:
        if not self.connection.is_connected:
            return None
        try:
            return await self.transport.get_source_filter(source_name, filter_name)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_COMMAND_FAILED",
                "operation": "get_source_filter",
                "error_kind": _classify(e).value,
                "error": repr(e),
                "details": {"source": source_name, "filter": filter_name},
            })
            return None

    async def add_filter_to_source(
        self,
        source_name: str,
        filter_name: str,
        filter_kind: str,
        settings: dict[str, Any] | None = None,
    ) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        if not source_name or not filter_name or not filter_kind:
            return failed(ErrorKind.ARGUMENT, "source, filter name and kind are required")
        return await self._issue(
            "add_filter_to_source",
            lambda: self.transport.create_source_filter(
                source_name, filter_name, filter_kind, dict(settings or {}),
            ),
            details={"source": source_name, "filter": filter_name, "kind": filter_kind},
        )

    async def set_source_filter_settings(
        self,
        source_name: str,
        filter_name: str,
        settings: dict[str, Any],
    ) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        return await self._issue(
            "set_source_filter_settings",
            lambda: self.transport.set_source_filter_settings(
                source_name, filter_name, dict(settings),
            ),
            details={"source": source_name, "filter": filter_name},
        )

    async def set_source_filter_visibility(
        self,
        source_name: str,
        filter_name: str,
        visible: bool,
    ) -> CommandResult:
        r = self._require_connected()
        if r is not None:
            return r
        return await self._issue(
            "set_source_filter_visibility",
            lambda: self.transport.set_source_filter_enabled(source_name, filter_name, visible),
            details={"source": source_name, "filter": filter_name, "visible": visible},
        )

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def dispose(self) -> None:
        """Disconnect (restoring the original location) on shutdown."""
        await self.connection.disconnect()
