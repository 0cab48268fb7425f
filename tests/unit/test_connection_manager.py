# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

import obs.connection as connection_mod
from adapters.obs.base import ObsAuthError, ObsConnectionError, ObsRequestError
from obs.connection import ConnectionManager
from obs.connection_status import ConnectionStatus
from obs.location import RecordingLocation
from orchestrator.events import EventType, ObsDisconnected

from fakes import FakeTransport


URL = "ws://127.0.0.1:4455"


@pytest.fixture
def logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(connection_mod, "log_event", emitted.append)
    return emitted


async def _connected(transport: FakeTransport) -> ConnectionManager:
    manager = ConnectionManager(transport)
    task = manager.connect(URL, "secret")
    assert task is not None
    await task
    assert manager.is_connected
    return manager


# ---------------------------------------------------------------------
# Connect
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_concurrent_connect_runs_one_handshake(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    transport.gate = asyncio.Event()
    manager = ConnectionManager(transport)

    first = manager.connect(URL, "secret")
    second = manager.connect(URL, "secret")

    assert first is not None
    assert second is None
    assert manager.status is ConnectionStatus.CONNECTING
    assert any(e.get("reason") == "attempt_in_flight" for e in logs)

    transport.gate.set()
    await first

    assert transport.names().count("connect") == 1
    assert manager.status is ConnectionStatus.CONNECTED


@pytest.mark.asyncio
async def test_connect_when_connected_is_rejected(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    manager = await _connected(transport)

    assert manager.connect(URL, "secret") is None
    assert transport.names().count("connect") == 1
    assert any(e.get("reason") == "already_connected" for e in logs)


@pytest.mark.asyncio
async def test_malformed_url_leaves_status_unchanged(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    manager = ConnectionManager(transport)

    for url in ("", "http://127.0.0.1:4455", "ws://"):
        assert manager.connect(url, "secret") is None

    assert manager.status is ConnectionStatus.DISCONNECTED
    assert transport.calls == []
    assert all(e["reason"] == "invalid_argument" for e in logs)


@pytest.mark.asyncio
async def test_auth_failure_sets_failed_and_closes_transport(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    transport.failures["connect"] = ObsAuthError("bad password")
    manager = ConnectionManager(transport)

    task = manager.connect(URL, "wrong")
    assert task is not None
    await task

    assert manager.status is ConnectionStatus.FAILED
    assert manager.connection_failed
    assert "disconnect" in transport.names()
    assert any(e["event_type"] == "OBS_AUTH_FAILED" for e in logs)


@pytest.mark.asyncio
async def test_lock_is_released_after_failure(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    transport.failures["connect"] = ObsConnectionError("refused")
    manager = ConnectionManager(transport)

    task = manager.connect(URL, "secret")
    assert task is not None
    await task
    assert manager.status is ConnectionStatus.FAILED

    del transport.failures["connect"]
    retry = manager.connect(URL, "secret")
    assert retry is not None
    await retry

    assert manager.status is ConnectionStatus.CONNECTED


@pytest.mark.asyncio
async def test_transport_argument_error_restores_prior_status(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    transport.failures["connect"] = ValueError("bad address")
    manager = ConnectionManager(transport)

    task = manager.connect(URL, "secret")
    assert task is not None
    await task

    assert manager.status is ConnectionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_cancelled_attempt_releases_lock(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    transport.gate = asyncio.Event()
    manager = ConnectionManager(transport)

    task = manager.connect(URL, "secret")
    assert task is not None
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)

    assert manager.status is ConnectionStatus.DISCONNECTED
    assert manager.connect(URL, "secret") is not None


# ---------------------------------------------------------------------
# Location snapshot / restore
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_snapshot_is_taken_before_connected(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport(record_directory="/clips", filename_format="fmt")
    manager = await _connected(transport)

    assert manager.previous_location == RecordingLocation(directory="/clips", filename_format="fmt")
    assert transport.names() == ["connect", "get_record_directory", "get_filename_formatting"]


@pytest.mark.asyncio
async def test_disconnect_restores_exact_snapshot(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport(record_directory="/clips", filename_format="fmt")
    manager = await _connected(transport)

    transport.record_directory = "/clips/LimsaLominsa"
    transport.filename_format = "fmt_LimsaLominsa"

    assert await manager.disconnect() is True

    assert transport.record_directory == "/clips"
    assert transport.filename_format == "fmt"
    assert transport.names()[-1] == "disconnect"
    assert manager.status is ConnectionStatus.DISCONNECTED
    assert manager.previous_location == RecordingLocation.EMPTY


@pytest.mark.asyncio
async def test_failed_snapshot_connects_and_restores_nothing(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    transport.failures["get_record_directory"] = ObsRequestError("GetRecordDirectory", 600, "not available")
    manager = await _connected(transport)

    assert manager.previous_location.is_empty

    await manager.disconnect()

    assert "set_record_directory" not in transport.names()
    assert "set_filename_formatting" not in transport.names()


@pytest.mark.asyncio
async def test_lost_connection_during_snapshot_fails_the_attempt(
    logs: list[dict[str, Any]],
) -> None:
    transport = FakeTransport()
    transport.failures["get_record_directory"] = ObsConnectionError("OBS connection lost")
    manager = ConnectionManager(transport)

    task = manager.connect(URL, "secret")
    assert task is not None
    await task

    assert manager.status is ConnectionStatus.FAILED
    assert manager.previous_location.is_empty
    assert transport.names()[-1] == "disconnect"
    assert any(e["event_type"] == "OBS_CONNECT_FAILED" for e in logs)


@pytest.mark.asyncio
async def test_backend_close_while_connecting_fails_the_attempt(logs: list[dict[str, Any]]) -> None:
    """
    The transport's ObsDisconnected may be delivered before the handshake
    finishes; the attempt must end FAILED, never CONNECTED without a socket.
    """
    manager: ConnectionManager | None = None

    class ClosingTransport(FakeTransport):
        closes = 1

        async def get_record_directory(self) -> str:
            assert manager is not None
            if self.closes:
                self.closes -= 1
                manager.apply(ObsDisconnected(
                    event_type=EventType.OBS_DISCONNECTED, ts_ms=0, reason="connection_closed",
                ))
            return await super().get_record_directory()

    transport = ClosingTransport()
    manager = ConnectionManager(transport)

    task = manager.connect(URL, "secret")
    assert task is not None
    await task

    assert manager.status is ConnectionStatus.FAILED
    assert not manager.is_connected
    assert any(e["event_type"] == "OBS_LOST_DURING_CONNECT" for e in logs)

    # The next trigger can try again.
    await asyncio.sleep(0)
    second = manager.connect(URL, "secret")
    assert second is not None
    await second
    assert manager.is_connected


@pytest.mark.asyncio
async def test_manager_holds_the_in_flight_attempt(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    transport.gate = asyncio.Event()
    manager = ConnectionManager(transport)

    task = manager.connect(URL, "secret")

    assert task is not None
    assert manager.attempt is task

    transport.gate.set()
    await task
    await asyncio.sleep(0)

    assert manager.attempt is None


@pytest.mark.asyncio
async def test_restore_failure_still_disconnects(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    manager = await _connected(transport)
    transport.failures["set_record_directory"] = ObsConnectionError("gone")

    assert await manager.disconnect() is True

    assert manager.status is ConnectionStatus.DISCONNECTED
    assert "set_filename_formatting" in transport.names()
    assert any(e["event_type"] == "OBS_LOCATION_RESTORE_FAILED" for e in logs)


@pytest.mark.asyncio
async def test_disconnect_when_not_connected_is_noop(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    manager = ConnectionManager(transport)

    assert await manager.disconnect() is False
    assert transport.calls == []


# ---------------------------------------------------------------------
# Backend notifications
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_backend_close_marks_disconnected(logs: list[dict[str, Any]]) -> None:
    manager = await _connected(FakeTransport())

    manager.apply(
        ObsDisconnected(event_type=EventType.OBS_DISCONNECTED, ts_ms=0, reason="obs_exited")
    )

    assert manager.status is ConnectionStatus.DISCONNECTED
    assert manager.previous_location.is_empty
