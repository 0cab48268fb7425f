# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

import pytest

import obs.service as service_mod
from adapters.obs.base import FilterInfo, ObsAuthError, ObsRequestError
from obs.location import RecordingLocation
from obs.results import ErrorKind
from obs.service import ObsService
from orchestrator.enums.output import Output, OutputState
from orchestrator.events import (
    EventType,
    ObsDisconnected,
    OutputStateChanged,
    StreamStats,
    StreamStatusUpdated,
)

from fakes import FakeTransport


@pytest.fixture
def logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(service_mod, "log_event", emitted.append)
    return emitted


def _output(output: Output, state: OutputState) -> OutputStateChanged:
    return OutputStateChanged(
        event_type=EventType.OUTPUT_STATE_CHANGED, ts_ms=0, output=output, state=state,
    )


async def _connected_service() -> tuple[ObsService, FakeTransport]:
    transport = FakeTransport()
    service = ObsService(transport)
    task = service.connection.connect("ws://localhost:4455", "secret")
    assert task is not None
    await task
    transport.calls.clear()
    return service, transport


# ---------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_commands_are_noops_when_disconnected(logs: list[dict[str, Any]]) -> None:
    transport = FakeTransport()
    service = ObsService(transport)

    results = [
        await service.start_recording(),
        await service.stop_recording(),
        await service.toggle_recording(),
        await service.start_replay_buffer(),
        await service.save_replay_buffer(),
        await service.toggle_streaming(),
    ]

    assert all(r.is_noop and not r for r in results)
    assert transport.calls == []


@pytest.mark.asyncio
async def test_stop_recording_while_stopped_sends_nothing(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    result = await service.stop_recording()

    assert result.is_noop
    assert transport.calls == []


@pytest.mark.asyncio
async def test_start_recording_only_from_stopped(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    assert await service.start_recording()
    assert transport.names() == ["start_record"]

    # Issued is not confirmed: the mirror only moves on notification.
    assert service.outputs.record is OutputState.STOPPED

    service.apply_notification(_output(Output.RECORD, OutputState.STARTED))
    again = await service.start_recording()

    assert again.is_noop
    assert transport.names() == ["start_record"]


@pytest.mark.asyncio
async def test_stop_recording_from_paused_is_noop(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()
    service.apply_notification(_output(Output.RECORD, OutputState.PAUSED))

    assert (await service.stop_recording()).is_noop
    assert (await service.start_recording()).is_noop
    assert transport.calls == []


@pytest.mark.asyncio
async def test_replay_buffer_save_requires_started(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    assert (await service.save_replay_buffer()).is_noop

    service.apply_notification(_output(Output.REPLAY_BUFFER, OutputState.STARTED))

    assert await service.save_replay_buffer()
    assert await service.stop_replay_buffer()
    assert transport.names() == ["save_replay_buffer", "stop_replay_buffer"]


@pytest.mark.asyncio
async def test_toggles_only_need_a_connection(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    assert await service.toggle_recording()
    assert await service.toggle_replay_buffer()
    assert await service.toggle_streaming()
    assert transport.names() == ["toggle_record", "toggle_replay_buffer", "toggle_stream"]


# ---------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_backend_failure_is_transient_and_noticed(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()
    transport.failures["start_record"] = ObsRequestError("StartRecord", 702, "output failed to start")

    result = await service.start_recording()

    assert not result
    assert result.error is ErrorKind.TRANSIENT
    assert any(e["event_type"] == "OBS_COMMAND_FAILED" for e in logs)

    notices = service.drain_notices()
    assert [n["operation"] for n in notices] == ["start_recording"]
    assert service.drain_notices() == []


@pytest.mark.asyncio
async def test_auth_and_argument_failures_are_classified(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()
    transport.failures["toggle_stream"] = ObsAuthError("expired")
    transport.failures["toggle_record"] = ValueError("bad")

    assert (await service.toggle_streaming()).error is ErrorKind.AUTHENTICATION
    assert (await service.toggle_recording()).error is ErrorKind.ARGUMENT


@pytest.mark.asyncio
async def test_output_already_running_is_a_silent_noop(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()
    transport.failures["start_record"] = ObsRequestError("StartRecord", 500, "output running")

    result = await service.start_recording()

    assert result.is_noop
    assert any(e["event_type"] == "OBS_COMMAND_NOOP" for e in logs)
    assert service.drain_notices() == []


@pytest.mark.asyncio
async def test_rejected_request_fields_are_argument_errors(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()
    transport.failures["toggle_record"] = ObsRequestError("ToggleRecord", 300, "missing field")

    assert (await service.toggle_recording()).error is ErrorKind.ARGUMENT


# ---------------------------------------------------------------------
# Recording location
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_set_recording_location_applies_only_non_empty_fields(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    result = await service.set_recording_location(RecordingLocation(directory="/clips/Zone"))

    assert result
    assert transport.calls == [("set_record_directory", "/clips/Zone")]


@pytest.mark.asyncio
async def test_set_recording_location_refused_while_recording(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()
    service.apply_notification(_output(Output.RECORD, OutputState.STARTED))

    result = await service.set_recording_location(
        RecordingLocation(directory="/clips/Zone", filename_format="fmt_Zone")
    )

    assert result.is_noop
    assert transport.calls == []


@pytest.mark.asyncio
async def test_get_recording_location(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    location = await service.get_recording_location()

    assert location == RecordingLocation(
        directory=transport.record_directory, filename_format=transport.filename_format,
    )


# ---------------------------------------------------------------------
# Source filters
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_remove_filters_with_prefix(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()
    transport.filters["Game"] = [
        FilterInfo(name="zone_blur", kind="blur"),
        FilterInfo(name="zone_tint", kind="color"),
        FilterInfo(name="crop", kind="crop_filter"),
    ]

    assert await service.remove_filters_with_prefix("Game", "zone_")

    assert [f.name for f in transport.filters["Game"]] == ["crop"]


@pytest.mark.asyncio
async def test_remove_filters_with_prefix_without_match_is_noop(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()
    transport.filters["Game"] = [FilterInfo(name="crop", kind="crop_filter")]

    assert (await service.remove_filters_with_prefix("Game", "zone_")).is_noop
    assert "remove_source_filter" not in transport.names()


@pytest.mark.asyncio
async def test_add_and_get_filter(logs: list[dict[str, Any]]) -> None:
    service, _ = await _connected_service()

    assert await service.add_filter_to_source("Game", "blur", "blur_filter", {"size": 4})
    info = await service.get_source_filter("Game", "blur")

    assert info is not None
    assert info.kind == "blur_filter"
    assert info.settings == {"size": 4}


@pytest.mark.asyncio
async def test_get_missing_filter_returns_none(logs: list[dict[str, Any]]) -> None:
    service, _ = await _connected_service()

    assert await service.get_source_filter("Game", "missing") is None


@pytest.mark.asyncio
async def test_filter_names_are_required(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    result = await service.add_filter_to_source("Game", "", "blur_filter")

    assert result.error is ErrorKind.ARGUMENT
    assert transport.calls == []


@pytest.mark.asyncio
async def test_filter_visibility_and_settings(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    assert await service.set_source_filter_visibility("Game", "blur", False)
    assert await service.set_source_filter_settings("Game", "blur", {"size": 8})

    assert transport.calls == [
        ("set_source_filter_enabled", "Game", "blur", False),
        ("set_source_filter_settings", "Game", "blur", {"size": 8}),
    ]


# ---------------------------------------------------------------------
# Notifications / dispose
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_notifications_reach_mirror_and_connection(logs: list[dict[str, Any]]) -> None:
    service, _ = await _connected_service()

    service.apply_notification(_output(Output.STREAM, OutputState.STARTED))
    service.apply_notification(
        StreamStatusUpdated(
            event_type=EventType.STREAM_STATUS_UPDATED,
            ts_ms=0,
            stats=StreamStats(active=True, timecode="00:01:00.000"),
        )
    )
    assert service.outputs.stream is OutputState.STARTED
    assert service.outputs.stream_stats.timecode == "00:01:00.000"

    service.apply_notification(
        ObsDisconnected(event_type=EventType.OBS_DISCONNECTED, ts_ms=0)
    )
    assert not service.connection.is_connected
    assert service.outputs.stream is OutputState.STOPPED


@pytest.mark.asyncio
async def test_dispose_restores_and_disconnects(logs: list[dict[str, Any]]) -> None:
    service, transport = await _connected_service()

    await service.dispose()

    assert transport.names()[-1] == "disconnect"
    assert not service.connection.is_connected
