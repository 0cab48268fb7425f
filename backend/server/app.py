"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build the shared OBS service, game snapshot and runtime
- Auto-connect on startup, restore + disconnect on shutdown
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.game.snapshot import GameStateSnapshot
from adapters.obs.base import ObsTransport
from adapters.obs.websocket_v5 import ObsWebSocketTransport
from config import AppConfig
from obs.service import ObsService
from observability import logger
from observability.logger import log_event
from orchestrator.events import Event
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import OrchestratorState

from server.routes import register_routes


EventSink = Callable[[Event], Awaitable[None]]
TransportFactory = Callable[[EventSink], ObsTransport]


def _default_transport(emit_event: EventSink) -> ObsTransport:
    return ObsWebSocketTransport(emit_event=emit_event)


def create_app(
    config: AppConfig | None = None,
    transport_factory: TransportFactory | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with a fake OBS transport and explicit configuration
    - ASGI server compatibility
    """
    config = config if config is not None else AppConfig.load_from_env()
    logger.configure(enable_json_logs=config.enable_json_logs)

    runtime: Runtime | None = None

    async def emit(event: Event) -> None:
        if runtime is not None:
            await runtime.handle_event(event)

    factory = transport_factory if transport_factory is not None else _default_transport
    obs = ObsService(factory(emit))
    game = GameStateSnapshot()
    runtime = Runtime(
        initial_state=OrchestratorState(),
        context=RuntimeExecutionContext(obs=obs, game=game, config=config),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log_event({
            "event_type": "APP_STARTED",
            "env": config.env,
            "obs_address": config.obs_address,
        })
        if config.auto_connect and config.obs_password:
            obs.connection.connect(config.obs_address, config.obs_password)

        yield

        await app.state.runtime.shutdown()
        await app.state.obs.dispose()
        log_event({"event_type": "APP_STOPPED"})

    app = FastAPI(title="OBS Auto-Record API", lifespan=lifespan)

    app.state.config = config
    app.state.obs = obs
    app.state.game = game
    app.state.runtime = runtime

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app
