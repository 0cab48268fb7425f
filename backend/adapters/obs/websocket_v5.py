"""
OBS WebSocket v5 transport.

Core model:
- One WebSocket per identified session; opened by connect(), closed by
  disconnect() or by the backend.
- Requests are correlated to responses by requestId; each awaits its own
  future, resolved by the single receiver task.
- Backend events are translated into BackendNotification events and
  emitted fire-and-forget, so a slow event sink can never stall the
  receiver (and with it every pending request).

Event behavior:
- RecordStateChanged / StreamStateChanged / ReplayBufferStateChanged:
  terminal states only => OutputStateChanged. STARTING/STOPPING are dropped.
- While the stream output is active, GetStreamStatus is polled and
  emitted as StreamStatusUpdated.
- On identify, the current state of every output is fetched and emitted
  as OutputStateChanged so the mirror starts from the truth.

Design constraints:
- Transport must not track connection status (ConnectionManager does).
- Transport must not check preconditions (ObsService does).
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import time
from typing import Any, Callable, Coroutine
from uuid import uuid4

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from adapters.obs.base import (
    FilterInfo,
    ObsAuthError,
    ObsConnectionError,
    ObsError,
    ObsRequestError,
    ObsTransport,
    validate_url,
)
from observability.logger import log_event
from orchestrator.enums.output import Output, OutputState
from orchestrator.events import (
    Event,
    EventType,
    ObsConnected,
    ObsDisconnected,
    OutputStateChanged,
    StreamStats,
    StreamStatusUpdated,
)
from spec import (
    OBS_CLOSE_AUTH_FAILED,
    OBS_EVENT_SUBSCRIPTIONS,
    OBS_FILENAME_FORMAT_CATEGORY,
    OBS_FILENAME_FORMAT_PARAMETER,
    OBS_HANDSHAKE_TIMEOUT_S,
    OBS_OP_EVENT,
    OBS_OP_HELLO,
    OBS_OP_IDENTIFIED,
    OBS_OP_IDENTIFY,
    OBS_OP_REQUEST,
    OBS_OP_REQUEST_RESPONSE,
    OBS_OUTPUT_PAUSED,
    OBS_OUTPUT_RESUMED,
    OBS_OUTPUT_STARTED,
    OBS_OUTPUT_STOPPED,
    OBS_REQUEST_TIMEOUT_S,
    OBS_RPC_VERSION,
    STREAM_STATUS_POLL_S,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


_STATE_EVENTS: dict[str, Output] = {
    "RecordStateChanged": Output.RECORD,
    "StreamStateChanged": Output.STREAM,
    "ReplayBufferStateChanged": Output.REPLAY_BUFFER,
}

_TERMINAL_STATES: dict[str, OutputState] = {
    OBS_OUTPUT_STARTED: OutputState.STARTED,
    OBS_OUTPUT_RESUMED: OutputState.STARTED,
    OBS_OUTPUT_STOPPED: OutputState.STOPPED,
    OBS_OUTPUT_PAUSED: OutputState.PAUSED,
}


def auth_response(password: str, salt: str, challenge: str) -> str:
    """
    Compute the identify authentication string.

    base64(sha256(base64(sha256(password + salt)) + challenge))
    """
    secret = base64.b64encode(
        hashlib.sha256((password + salt).encode("utf-8")).digest()
    )
    return base64.b64encode(
        hashlib.sha256(secret + challenge.encode("utf-8")).digest()
    ).decode("ascii")


def _filter_from(data: dict[str, Any], name: str | None = None) -> FilterInfo:
    return FilterInfo(
        name=name if name is not None else str(data.get("filterName", "")),
        kind=str(data.get("filterKind", "")),
        enabled=bool(data.get("filterEnabled", True)),
        index=int(data.get("filterIndex", 0)),
        settings=dict(data.get("filterSettings") or {}),
    )


def _stats_from(data: dict[str, Any]) -> StreamStats:
    return StreamStats(
        active=bool(data.get("outputActive", False)),
        reconnecting=bool(data.get("outputReconnecting", False)),
        timecode=str(data.get("outputTimecode", "")),
        duration_ms=int(data.get("outputDuration", 0)),
        congestion=float(data.get("outputCongestion", 0.0) or 0.0),
        bytes_sent=int(data.get("outputBytes", 0)),
        skipped_frames=int(data.get("outputSkippedFrames", 0)),
        total_frames=int(data.get("outputTotalFrames", 0)),
    )


class ObsWebSocketTransport(ObsTransport):
    """
    obs-websocket 5.x client built on `websockets`.

    Public interface is ObsTransport; see adapters/obs/base.py.
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Coroutine[Any, Any, None]],
        request_timeout_s: float = OBS_REQUEST_TIMEOUT_S,
        handshake_timeout_s: float = OBS_HANDSHAKE_TIMEOUT_S,
        stream_poll_s: float = STREAM_STATUS_POLL_S,
    ) -> None:
        self._emit_async = emit_event
        self._request_timeout_s = request_timeout_s
        self._handshake_timeout_s = handshake_timeout_s
        self._stream_poll_s = stream_poll_s

        self._ws: ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._poll_task: asyncio.Task[None] | None = None

        self._pending: dict[str, asyncio.Future[dict[str, Any]]] = {}
        self._emit_tasks: set[asyncio.Task[None]] = set()

        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Emission
    # -------------------------------------------------------------------------

    def _emit(self, event: Event) -> None:
        # Fire-and-forget; keep a reference so the task is not collected.
        task = asyncio.create_task(self._emit_async(event))
        self._emit_tasks.add(task)
        task.add_done_callback(self._emit_tasks.discard)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, url: str, password: str) -> None:
        validate_url(url)

        async with self._lock:
            if self._ws is not None:
                return

            try:
                ws = await ws_connect(
                    url.strip(),
                    max_size=2**24,
                    open_timeout=self._handshake_timeout_s,
                    ping_interval=None,
                )
            except (OSError, asyncio.TimeoutError, InvalidHandshake) as e:
                raise ObsConnectionError(f"cannot reach OBS at {url}: {e!r}") from e
            except InvalidURI as e:
                raise ValueError(str(e)) from e

            try:
                await asyncio.wait_for(
                    self._identify(ws, password),
                    timeout=self._handshake_timeout_s,
                )
            except asyncio.TimeoutError as e:
                await ws.close()
                raise ObsConnectionError("OBS identify handshake timed out") from e
            except BaseException:
                await ws.close()
                raise

            self._ws = ws
            self._recv_task = asyncio.create_task(self._recv_loop(ws))

        self._emit(ObsConnected(event_type=EventType.OBS_CONNECTED, ts_ms=_now_ms()))
        await self._sync_output_states()

    async def disconnect(self) -> None:
        async with self._lock:
            ws = self._ws
            recv_task = self._recv_task

        if ws is None:
            return

        await ws.close()

        # Receiver sees the close, clears state and emits ObsDisconnected.
        if recv_task is not None and not recv_task.done():
            try:
                await asyncio.wait_for(recv_task, timeout=self._request_timeout_s)
            except asyncio.TimeoutError:
                recv_task.cancel()

    async def _identify(self, ws: ClientConnection, password: str) -> None:
        hello = await self._recv_json(ws)
        if hello.get("op") != OBS_OP_HELLO:
            raise ObsError(f"expected Hello, got op {hello.get('op')}")

        hello_d = hello.get("d") or {}
        identify: dict[str, Any] = {
            "rpcVersion": OBS_RPC_VERSION,
            "eventSubscriptions": OBS_EVENT_SUBSCRIPTIONS,
        }

        auth = hello_d.get("authentication")
        if auth:
            if not password:
                raise ObsAuthError("OBS requires a password")
            identify["authentication"] = auth_response(
                password, auth["salt"], auth["challenge"]
            )

        await ws.send(json.dumps({"op": OBS_OP_IDENTIFY, "d": identify}))

        identified = await self._recv_json(ws)
        if identified.get("op") != OBS_OP_IDENTIFIED:
            raise ObsError(f"expected Identified, got op {identified.get('op')}")

    @staticmethod
    async def _recv_json(ws: ClientConnection) -> dict[str, Any]:
        try:
            raw = await ws.recv()
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else None
            if code == OBS_CLOSE_AUTH_FAILED:
                raise ObsAuthError("OBS authentication failed") from e
            raise ObsConnectionError(f"OBS closed the connection ({code})") from e
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ObsError(f"malformed OBS message: {e}") from e

    # -------------------------------------------------------------------------
    # Background loops
    # -------------------------------------------------------------------------

    async def _recv_loop(self, ws: ClientConnection) -> None:
        """
        Resolve request futures and translate backend events.

        On exit (close from either side, or failure):
        - fail every pending request
        - stop stream polling
        - emit ObsDisconnected
        """
        reason = "closed"
        try:
            async for raw in ws:
                try:
                    msg = json.loads(raw)
                except (TypeError, ValueError) as e:
                    log_event({
                        "ts_ms": _now_ms(),
                        "event_type": "OBS_MALFORMED_MESSAGE",
                        "error": str(e),
                    })
                    continue

                op = msg.get("op")
                data = msg.get("d") or {}
                if op == OBS_OP_REQUEST_RESPONSE:
                    fut = self._pending.get(data.get("requestId", ""))
                    if fut is not None and not fut.done():
                        fut.set_result(data)
                elif op == OBS_OP_EVENT:
                    self._handle_event(data)
        except asyncio.CancelledError:
            reason = "cancelled"
        except ConnectionClosed as e:
            reason = f"connection_closed ({e.rcvd.code if e.rcvd else None})"
        except Exception as e:  # pylint: disable=broad-exception-caught
            reason = f"recv_failed: {e!r}"
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_RECV_LOOP_FAILED",
                "error": repr(e),
            })
        finally:
            if self._ws is ws:
                self._ws = None
                self._recv_task = None
            self._stop_stream_poll()
            for fut in self._pending.values():
                if not fut.done():
                    fut.set_exception(ObsConnectionError("OBS connection lost"))
            self._pending.clear()
            self._emit(
                ObsDisconnected(
                    event_type=EventType.OBS_DISCONNECTED,
                    ts_ms=_now_ms(),
                    reason=reason,
                )
            )

    def _handle_event(self, data: dict[str, Any]) -> None:
        output = _STATE_EVENTS.get(data.get("eventType", ""))
        if output is None:
            return

        raw_state = (data.get("eventData") or {}).get("outputState", "")
        state = _TERMINAL_STATES.get(raw_state)
        if state is None:
            return

        if output is Output.STREAM:
            if state is OutputState.STARTED:
                self._start_stream_poll()
            elif state is OutputState.STOPPED:
                self._stop_stream_poll()

        self._emit(
            OutputStateChanged(
                event_type=EventType.OUTPUT_STATE_CHANGED,
                ts_ms=_now_ms(),
                output=output,
                state=state,
            )
        )

    def _start_stream_poll(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._stream_poll_loop())

    def _stop_stream_poll(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _stream_poll_loop(self) -> None:
        try:
            while True:
                try:
                    data = await self._request("GetStreamStatus")
                except ObsError:
                    return
                self._emit(
                    StreamStatusUpdated(
                        event_type=EventType.STREAM_STATUS_UPDATED,
                        ts_ms=_now_ms(),
                        stats=_stats_from(data),
                    )
                )
                await asyncio.sleep(self._stream_poll_s)
        except asyncio.CancelledError:
            return

    async def _sync_output_states(self) -> None:
        """Emit the current state of every output right after identify."""
        status_requests = (
            (Output.RECORD, "GetRecordStatus"),
            (Output.STREAM, "GetStreamStatus"),
            (Output.REPLAY_BUFFER, "GetReplayBufferStatus"),
        )
        for output, request_type in status_requests:
            try:
                data = await self._request(request_type)
            except ObsError as e:
                # Replay buffer is unavailable unless enabled in OBS settings.
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "OBS_STATE_SYNC_SKIPPED",
                    "output": output.value,
                    "error": str(e),
                })
                continue

            if not data.get("outputActive", False):
                state = OutputState.STOPPED
            elif data.get("outputPaused", False):
                state = OutputState.PAUSED
            else:
                state = OutputState.STARTED

            if output is Output.STREAM and state is OutputState.STARTED:
                self._start_stream_poll()

            self._emit(
                OutputStateChanged(
                    event_type=EventType.OUTPUT_STATE_CHANGED,
                    ts_ms=_now_ms(),
                    output=output,
                    state=state,
                )
            )

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    async def _request(
        self,
        request_type: str,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        ws = self._ws
        if ws is None:
            raise ObsConnectionError(f"{request_type}: not connected")

        request_id = uuid4().hex
        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = fut

        payload: dict[str, Any] = {
            "requestType": request_type,
            "requestId": request_id,
        }
        if data:
            payload["requestData"] = data

        try:
            await ws.send(json.dumps({"op": OBS_OP_REQUEST, "d": payload}))
            response = await asyncio.wait_for(fut, timeout=self._request_timeout_s)
        except asyncio.TimeoutError as e:
            raise ObsConnectionError(f"{request_type}: timed out") from e
        except ConnectionClosed as e:
            raise ObsConnectionError(f"{request_type}: connection closed") from e
        finally:
            self._pending.pop(request_id, None)

        status = response.get("requestStatus") or {}
        if not status.get("result", False):
            raise ObsRequestError(request_type, status.get("code"), status.get("comment"))

        return response.get("responseData") or {}

    # Recording ---------------------------------------------------------------

    async def start_record(self) -> None:
        await self._request("StartRecord")

    async def stop_record(self) -> None:
        await self._request("StopRecord")

    async def toggle_record(self) -> None:
        await self._request("ToggleRecord")

    async def get_record_directory(self) -> str:
        data = await self._request("GetRecordDirectory")
        return str(data.get("recordDirectory") or "")

    async def set_record_directory(self, directory: str) -> None:
        await self._request("SetRecordDirectory", {"recordDirectory": directory})

    async def get_filename_formatting(self) -> str:
        data = await self._request(
            "GetProfileParameter",
            {
                "parameterCategory": OBS_FILENAME_FORMAT_CATEGORY,
                "parameterName": OBS_FILENAME_FORMAT_PARAMETER,
            },
        )
        return str(data.get("parameterValue") or "")

    async def set_filename_formatting(self, filename_format: str) -> None:
        await self._request(
            "SetProfileParameter",
            {
                "parameterCategory": OBS_FILENAME_FORMAT_CATEGORY,
                "parameterName": OBS_FILENAME_FORMAT_PARAMETER,
                "parameterValue": filename_format,
            },
        )

    # Replay buffer -----------------------------------------------------------

    async def start_replay_buffer(self) -> None:
        await self._request("StartReplayBuffer")

    async def stop_replay_buffer(self) -> None:
        await self._request("StopReplayBuffer")

    async def toggle_replay_buffer(self) -> None:
        await self._request("ToggleReplayBuffer")

    async def save_replay_buffer(self) -> None:
        await self._request("SaveReplayBuffer")

    # Streaming ---------------------------------------------------------------

    async def toggle_stream(self) -> None:
        await self._request("ToggleStream")

    # Source filters ----------------------------------------------------------

    async def get_source_filters(self, source_name: str) -> list[FilterInfo]:
        data = await self._request("GetSourceFilterList", {"sourceName": source_name})
        return [_filter_from(f) for f in data.get("filters") or []]

    async def get_source_filter(self, source_name: str, filter_name: str) -> FilterInfo:
        data = await self._request(
            "GetSourceFilter",
            {"sourceName": source_name, "filterName": filter_name},
        )
        return _filter_from(data, name=filter_name)

    async def create_source_filter(
        self,
        source_name: str,
        filter_name: str,
        filter_kind: str,
        settings: dict[str, Any],
    ) -> None:
        await self._request(
            "CreateSourceFilter",
            {
                "sourceName": source_name,
                "filterName": filter_name,
                "filterKind": filter_kind,
                "filterSettings": settings,
            },
        )

    async def remove_source_filter(self, source_name: str, filter_name: str) -> None:
        await self._request(
            "RemoveSourceFilter",
            {"sourceName": source_name, "filterName": filter_name},
        )

    async def set_source_filter_settings(
        self,
        source_name: str,
        filter_name: str,
        settings: dict[str, Any],
    ) -> None:
        await self._request(
            "SetSourceFilterSettings",
            {
                "sourceName": source_name,
                "filterName": filter_name,
                "filterSettings": settings,
                "overlay": True,
            },
        )

    async def set_source_filter_enabled(
        self,
        source_name: str,
        filter_name: str,
        enabled: bool,
    ) -> None:
        await self._request(
            "SetSourceFilterEnabled",
            {
                "sourceName": source_name,
                "filterName": filter_name,
                "filterEnabled": enabled,
            },
        )
