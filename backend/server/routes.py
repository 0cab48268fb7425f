"""
Route registration for the auto-record API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Expose manual OBS controls
- Pull dependencies from app.state
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from obs.results import CommandResult
from obs.service import ObsService
from observability.logger import log_event
from session.gateway import EventGateway, GatewayResult


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------

class ConnectRequest(BaseModel):
    address: str | None = None
    password: str | None = None


class AddFilterRequest(BaseModel):
    name: str
    kind: str
    settings: dict[str, Any] = Field(default_factory=dict)


class FilterVisibilityRequest(BaseModel):
    visible: bool


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _result(result: CommandResult) -> dict[str, Any]:
    return {
        "issued": result.issued,
        "error": result.error.value if result.error is not None else None,
        "detail": result.detail,
    }


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    def obs() -> ObsService:
        return app.state.obs

    # ------------------------------------------------------------------
    # Health / status
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/status")
    async def status() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        service = obs()
        state = app.state.runtime.state
        previous = service.connection.previous_location
        return {
            "connection": service.connection.status.value,
            "outputs": service.outputs.snapshot(),
            "game": app.state.game.snapshot(),
            "orchestrator": {
                "auto_stop_pending": state.auto_stop_pending,
                "auto_stop_id": state.auto_stop_id,
                "last_countdown_value": state.last_countdown_value,
            },
            "previous_location": {
                "directory": previous.directory,
                "filename_format": previous.filename_format,
            },
        }

    # ------------------------------------------------------------------
    # Event source
    # ------------------------------------------------------------------

    @app.websocket("/ws/events")
    async def events_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = EventGateway(runtime=app.state.runtime, game=app.state.game)

        try:
            result = await gateway.on_connect()
            await _flush_gateway_result(ws, result)

            while True:
                text = await ws.receive_text()
                result = await gateway.on_json_message(text)
                await _flush_gateway_result(ws, result)

        except WebSocketDisconnect:
            await gateway.on_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "source_id": gateway.source_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.on_disconnect(reason="server_error")

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    @app.post("/obs/connect")
    async def obs_connect(body: ConnectRequest | None = None) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        config = app.state.config
        address = body.address if body and body.address else config.obs_address
        password = body.password if body and body.password is not None else config.obs_password
        task = obs().connection.connect(address, password)
        return {
            "started": task is not None,
            "status": obs().connection.status.value,
        }

    @app.post("/obs/disconnect")
    async def obs_disconnect() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        disconnected = await obs().connection.disconnect()
        return {
            "disconnected": disconnected,
            "status": obs().connection.status.value,
        }

    # ------------------------------------------------------------------
    # Recording / replay buffer / streaming
    # ------------------------------------------------------------------

    @app.post("/obs/recording/start")
    async def recording_start() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().start_recording())

    @app.post("/obs/recording/stop")
    async def recording_stop() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().stop_recording())

    @app.post("/obs/recording/toggle")
    async def recording_toggle() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().toggle_recording())

    @app.get("/obs/recording/location")
    async def recording_location() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        location = await obs().get_recording_location()
        if location is None:
            raise HTTPException(status_code=503, detail="recording location unavailable")
        return asdict(location)

    @app.post("/obs/replay-buffer/start")
    async def replay_start() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().start_replay_buffer())

    @app.post("/obs/replay-buffer/stop")
    async def replay_stop() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().stop_replay_buffer())

    @app.post("/obs/replay-buffer/save")
    async def replay_save() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().save_replay_buffer())

    @app.post("/obs/replay-buffer/toggle")
    async def replay_toggle() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().toggle_replay_buffer())

    @app.post("/obs/streaming/toggle")
    async def streaming_toggle() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().toggle_streaming())

    # ------------------------------------------------------------------
    # Source filters
    # ------------------------------------------------------------------

    @app.get("/obs/sources/{source}/filters/{name}")
    async def filter_get(source: str, name: str) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        info = await obs().get_source_filter(source, name)
        if info is None:
            raise HTTPException(status_code=404, detail="filter not found")
        return asdict(info)

    @app.post("/obs/sources/{source}/filters")
    async def filter_add(source: str, body: AddFilterRequest) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(
            await obs().add_filter_to_source(source, body.name, body.kind, body.settings)
        )

    @app.put("/obs/sources/{source}/filters/{name}/settings")
    async def filter_settings(source: str, name: str, settings: dict[str, Any]) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().set_source_filter_settings(source, name, settings))

    @app.put("/obs/sources/{source}/filters/{name}/visibility")
    async def filter_visibility(source: str, name: str, body: FilterVisibilityRequest) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().set_source_filter_visibility(source, name, body.visible))

    @app.delete("/obs/sources/{source}/filters/{name}")
    async def filter_remove(source: str, name: str) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().remove_filter_from_source(source, name))

    @app.delete("/obs/sources/{source}/filters")
    async def filter_remove_prefix(source: str, prefix: str) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _result(await obs().remove_filters_with_prefix(source, prefix))

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    @app.get("/obs/notices")
    async def notices() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return {"notices": obs().drain_notices()}


async def _flush_gateway_result(
    ws: WebSocket,
    result: GatewayResult,
) -> None:
    for msg in result.outbound_json:
        await ws.send_text(json.dumps(msg))
