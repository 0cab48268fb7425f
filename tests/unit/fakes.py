# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring

from __future__ import annotations

import asyncio
from typing import Any

from adapters.obs.base import FilterInfo, ObsTransport
from orchestrator.events import Event


class FakeTransport(ObsTransport):
    """
    In-memory OBS transport.

    - calls: every transport method invoked, in order
    - failures: method name -> exception to raise
    - gate: when set, connect() waits for it (an attempt "in flight")
    """

    def __init__(
        self,
        *,
        record_directory: str = "/home/me/Videos",
        filename_format: str = "%CCYY-%MM-%DD %hh-%mm-%ss",
    ) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, Exception] = {}
        self.gate: asyncio.Event | None = None
        self.record_directory = record_directory
        self.filename_format = filename_format
        self.filters: dict[str, list[FilterInfo]] = {}
        self.emitted: list[Event] = []

    async def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        exc = self.failures.get(name)
        if exc is not None:
            raise exc

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    # Lifecycle ----------------------------------------------------------------

    async def connect(self, url: str, password: str) -> None:
        self.calls.append(("connect", url, password))
        if self.gate is not None:
            await self.gate.wait()
        exc = self.failures.get("connect")
        if exc is not None:
            raise exc

    async def disconnect(self) -> None:
        await self._call("disconnect")

    # Recording ----------------------------------------------------------------

    async def start_record(self) -> None:
        await self._call("start_record")

    async def stop_record(self) -> None:
        await self._call("stop_record")

    async def toggle_record(self) -> None:
        await self._call("toggle_record")

    async def get_record_directory(self) -> str:
        await self._call("get_record_directory")
        return self.record_directory

    async def set_record_directory(self, directory: str) -> None:
        await self._call("set_record_directory", directory)
        self.record_directory = directory

    async def get_filename_formatting(self) -> str:
        await self._call("get_filename_formatting")
        return self.filename_format

    async def set_filename_formatting(self, filename_format: str) -> None:
        await self._call("set_filename_formatting", filename_format)
        self.filename_format = filename_format

    # Replay buffer ------------------------------------------------------------

    async def start_replay_buffer(self) -> None:
        await self._call("start_replay_buffer")

    async def stop_replay_buffer(self) -> None:
        await self._call("stop_replay_buffer")

    async def toggle_replay_buffer(self) -> None:
        await self._call("toggle_replay_buffer")

    async def save_replay_buffer(self) -> None:
        await self._call("save_replay_buffer")

    # Streaming ----------------------------------------------------------------

    async def toggle_stream(self) -> None:
        await self._call("toggle_stream")

    # Source filters -----------------------------------------------------------

    async def get_source_filters(self, source_name: str) -> list[FilterInfo]:
        await self._call("get_source_filters", source_name)
        return list(self.filters.get(source_name, []))

    async def get_source_filter(self, source_name: str, filter_name: str) -> FilterInfo:
        await self._call("get_source_filter", source_name, filter_name)
        for f in self.filters.get(source_name, []):
            if f.name == filter_name:
                return f
        raise LookupError(filter_name)

    async def create_source_filter(
        self,
        source_name: str,
        filter_name: str,
        filter_kind: str,
        settings: dict[str, Any],
    ) -> None:
        await self._call("create_source_filter", source_name, filter_name, filter_kind, settings)
        self.filters.setdefault(source_name, []).append(
            FilterInfo(name=filter_name, kind=filter_kind, settings=settings)
        )

    async def remove_source_filter(self, source_name: str, filter_name: str) -> None:
        await self._call("remove_source_filter", source_name, filter_name)
        self.filters[source_name] = [
            f for f in self.filters.get(source_name, []) if f.name != filter_name
        ]

    async def set_source_filter_settings(
        self,
        source_name: str,
        filter_name: str,
        settings: dict[str, Any],
    ) -> None:
        await self._call("set_source_filter_settings", source_name, filter_name, settings)

    async def set_source_filter_enabled(
        self,
        source_name: str,
        filter_name: str,
        enabled: bool,
    ) -> None:
        await self._call("set_source_filter_enabled", source_name, filter_name, enabled)


class FakeGame:
    def __init__(
        self,
        *,
        territory_id: int = 0,
        zone_names: dict[int, str] | None = None,
        online_status_id: int = 0,
    ) -> None:
        self.territory = territory_id
        self.zones = dict(zone_names or {})
        self.online_status = online_status_id

    def territory_id(self) -> int:
        return self.territory

    def zone_name(self, territory_id: int) -> str | None:
        return self.zones.get(territory_id)

    def online_status_id(self) -> int:
        return self.online_status
