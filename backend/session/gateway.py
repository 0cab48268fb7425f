"""
Event gateway.

Responsibilities:
- One gateway == one connected game-state event source
- Route inbound JSON messages -> orchestrator events
- Keep the game context snapshot current (territory, online status)
- Answer every message with ACK or ERROR
- Forward events into runtime

NOT responsible for:
- Executing commands
- Any state machine logic
- OBS calls
"""

from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass
from typing import Any, Callable
from uuid import uuid4

from adapters.game.snapshot import GameStateSnapshot
from observability.logger import log_event
from orchestrator.events import (
    CombatEntered,
    CombatExited,
    CountdownTicked,
    DutyCompleted,
    DutyStarted,
    DutyWiped,
    Event,
    EventType,
    SourceConnected,
    SourceDisconnected,
)
from orchestrator.runtime import Runtime
from spec import GATEWAY_PAYLOAD_PREVIEW_CHARS


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_source_id() -> str:
    return f"src_{uuid4().hex[:12]}"


class _InvalidPayload(ValueError):
    pass


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise _InvalidPayload(f"{key} must be an integer")
    return value


def _require_number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _InvalidPayload(f"{key} must be a number")
    if not math.isfinite(value):
        raise _InvalidPayload(f"{key} must be finite")
    return float(value)


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _InvalidPayload(f"{key} must be a string")
    return value


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send back to the event source
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# EventGateway
# ------------------------------------------------------------------

class EventGateway:
    """
    Translator between one event source connection and the runtime.

    Message types:
        COMBAT_ENTERED, COMBAT_EXITED
        COUNTDOWN_TICKED        {value}
        DUTY_STARTED, DUTY_COMPLETED, DUTY_WIPED   {territory_id}
        TERRITORY_CHANGED       {territory_id, zone_name?}
        ONLINE_STATUS_CHANGED   {status_id}

    Every message may carry ts_ms; the gateway clock is used otherwise.
    """

    def __init__(self, *, runtime: Runtime, game: GameStateSnapshot) -> None:
        self._runtime = runtime
        self._game = game
        self.source_id: str | None = None

        self._handlers: dict[str, Callable[[dict[str, Any], int], Event | None]] = {
            "COMBAT_ENTERED": self._combat_entered,
            "COMBAT_EXITED": self._combat_exited,
            "COUNTDOWN_TICKED": self._countdown_ticked,
            "DUTY_STARTED": self._duty_started,
            "DUTY_COMPLETED": self._duty_completed,
            "DUTY_WIPED": self._duty_wiped,
            "TERRITORY_CHANGED": self._territory_changed,
            "ONLINE_STATUS_CHANGED": self._online_status_changed,
        }

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def on_connect(self) -> GatewayResult:
        """Called when an event source connects."""
        self.source_id = _new_source_id()

        await self._dispatch(
            SourceConnected(
                event_type=EventType.SOURCE_CONNECTED,
                ts_ms=_now_ms(),
                source_id=self.source_id,
            )
        )

        return GatewayResult(outbound_json=({
            "type": "SOURCE_INIT",
            "source_id": self.source_id,
            "accepted_types": sorted(self._handlers),
        },))

    async def on_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the event source goes away."""
        if self.source_id is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SOURCE",
                "reason": reason,
            })
            return GatewayResult()

        await self._dispatch(
            SourceDisconnected(
                event_type=EventType.SOURCE_DISCONNECTED,
                ts_ms=_now_ms(),
                source_id=self.source_id,
                reason=reason,
            )
        )
        self.source_id = None
        return GatewayResult()

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to orchestrator events."""
        if self.source_id is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SOURCE",
                "payload_preview": payload[:GATEWAY_PAYLOAD_PREVIEW_CHARS],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "source_id": self.source_id,
                "error": str(e),
                "payload_preview": payload[:GATEWAY_PAYLOAD_PREVIEW_CHARS],
            })
            return self._error(None, "invalid_json")

        if not isinstance(data, dict):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "source_id": self.source_id,
                "error": "message must be a JSON object",
                "payload_preview": payload[:GATEWAY_PAYLOAD_PREVIEW_CHARS],
            })
            return self._error(None, "invalid_json")

        msg_type = data.get("type")
        handler = self._handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": msg_type,
                "source_id": self.source_id,
            })
            return self._error(msg_type, "unknown_message_type")

        ts_ms = data.get("ts_ms")
        if isinstance(ts_ms, bool) or not isinstance(ts_ms, int):
            ts_ms = _now_ms()

        try:
            event = handler(data, ts_ms)
        except _InvalidPayload as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INVALID_MESSAGE_PAYLOAD",
                "msg_type": msg_type,
                "source_id": self.source_id,
                "error": str(e),
            })
            return self._error(msg_type, str(e))

        if event is not None:
            await self._dispatch(event)

        return GatewayResult(outbound_json=({"type": "ACK", "msg_type": msg_type},))

    @staticmethod
    def _error(msg_type: Any, reason: str) -> GatewayResult:
        return GatewayResult(outbound_json=({
            "type": "ERROR",
            "msg_type": msg_type,
            "reason": reason,
        },))

    # ------------------------------------------------------------------
    # Message handlers
    # ------------------------------------------------------------------

    def _combat_entered(self, data: dict[str, Any], ts_ms: int) -> Event:
        return CombatEntered(event_type=EventType.COMBAT_ENTERED, ts_ms=ts_ms)

    def _combat_exited(self, data: dict[str, Any], ts_ms: int) -> Event:
        return CombatExited(event_type=EventType.COMBAT_EXITED, ts_ms=ts_ms)

    def _countdown_ticked(self, data: dict[str, Any], ts_ms: int) -> Event:
        return CountdownTicked(
            event_type=EventType.COUNTDOWN_TICKED,
            ts_ms=ts_ms,
            value=_require_number(data, "value"),
        )

    def _duty_started(self, data: dict[str, Any], ts_ms: int) -> Event:
        return DutyStarted(
            event_type=EventType.DUTY_STARTED,
            ts_ms=ts_ms,
            territory_id=_require_int(data, "territory_id"),
        )

    def _duty_completed(self, data: dict[str, Any], ts_ms: int) -> Event:
        return DutyCompleted(
            event_type=EventType.DUTY_COMPLETED,
            ts_ms=ts_ms,
            territory_id=_require_int(data, "territory_id"),
        )

    def _duty_wiped(self, data: dict[str, Any], ts_ms: int) -> Event:
        return DutyWiped(
            event_type=EventType.DUTY_WIPED,
            ts_ms=ts_ms,
            territory_id=_require_int(data, "territory_id"),
        )

    def _territory_changed(self, data: dict[str, Any], ts_ms: int) -> None:
        territory_id = _require_int(data, "territory_id")
        zone_name = _optional_str(data, "zone_name")
        self._game.set_territory(territory_id, zone_name)
        log_event({
            "ts_ms": ts_ms,
            "event_type": "GAME_TERRITORY_CHANGED",
            "source_id": self.source_id,
            "territory_id": territory_id,
            "zone_name": zone_name,
        })

    def _online_status_changed(self, data: dict[str, Any], ts_ms: int) -> None:
        status_id = _require_int(data, "status_id")
        self._game.set_online_status(status_id)
        log_event({
            "ts_ms": ts_ms,
            "event_type": "GAME_ONLINE_STATUS_CHANGED",
            "source_id": self.source_id,
            "status_id": status_id,
        })

    # ------------------------------------------------------------------
    # Runtime dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        """Forward event into runtime; runtime owns all orchestration."""
        await self._runtime.handle_event(event)
