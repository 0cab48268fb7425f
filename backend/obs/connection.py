"""
Connection manager for the OBS backend.

Responsibilities:
- Own ConnectionStatus (the only writer)
- Guard against concurrent connect attempts
- Run the handshake off the caller's path
- Snapshot the backend recording location on connect and put it back
  on disconnect

Non-responsibilities:
- No output state (see obs/output_state.py)
- No recording/replay commands (see obs/service.py)
- No retries; the next triggering event tries again
"""

from __future__ import annotations

import asyncio
import threading
import time

from adapters.obs.base import ObsAuthError, ObsConnectionError, ObsTransport, validate_url
from obs.connection_status import ConnectionStatus
from obs.location import RecordingLocation
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.events import Event, ObsConnected, ObsDisconnected


def _now_ms() -> int:
    return int(time.time() * 1000)


class ConnectionManager:
    """
    Lifecycle of the single backend connection.

    Status transitions:
        DISCONNECTED/FAILED --connect()--> CONNECTING
        CONNECTING --handshake ok--> CONNECTED
        CONNECTING --auth rejected--> FAILED
        CONNECTING --bad argument--> (status before the attempt)
        CONNECTING --other error--> FAILED
        CONNECTING --backend closed mid-handshake--> FAILED
        CONNECTED --disconnect() / backend closed--> DISCONNECTED

    The connect lock is a plain threading.Lock taken with a
    non-blocking acquire: a second caller never waits, it is turned
    away. The lock is released by the handshake task's done-callback,
    which runs on every exit path including cancellation.
    """

    def __init__(self, transport: ObsTransport) -> None:
        self._transport = transport
        self._status = ConnectionStatus.DISCONNECTED
        self._connect_lock = threading.Lock()
        self._previous_location = RecordingLocation.EMPTY

        # In-flight handshake; held until it finishes so the task (and the
        # lock release in its done-callback) cannot be collected early.
        self._attempt: asyncio.Task[None] | None = None
        # Set when the backend closes the socket while CONNECTING.
        self._lost_during_attempt = False

    # ------------------------------------------------------------------
    # Read-only views (never touch the network)
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    @property
    def connection_failed(self) -> bool:
        return self._status is ConnectionStatus.FAILED

    @property
    def previous_location(self) -> RecordingLocation:
        """Backend location captured when the current connection was made."""
        return self._previous_location

    @property
    def transport(self) -> ObsTransport:
        return self._transport

    @property
    def attempt(self) -> asyncio.Task[None] | None:
        """The handshake task while one is in flight."""
        return self._attempt

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------

    def connect(self, url: str, password: str) -> asyncio.Task[None] | None:
        """
        Start a connection attempt without blocking the caller.

        Returns the handshake task, or None when nothing was started
        (bad arguments, already connected, attempt in flight).
        """
        try:
            validate_url(url)
            if not isinstance(password, str):
                raise ValueError("OBS password must be a string")
        except ValueError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_CONNECT_REJECTED",
                "reason": "invalid_argument",
                "error": str(e),
            })
            return None

        if self.is_connected:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_CONNECT_REJECTED",
                "reason": "already_connected",
            })
            return None

        if not self._connect_lock.acquire(blocking=False):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_CONNECT_REJECTED",
                "reason": "attempt_in_flight",
            })
            return None

        prior = self._status
        self._status = ConnectionStatus.CONNECTING
        self._lost_during_attempt = False
        try:
            task = asyncio.create_task(self._handshake(url, password, prior))
        except BaseException:
            self._status = prior
            self._connect_lock.release()
            raise

        self._attempt = task
        task.add_done_callback(lambda t: self._on_handshake_done(t, prior))

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "OBS_CONNECT_STARTED",
            "url": url,
        })
        return task

    async def _handshake(self, url: str, password: str, prior: ConnectionStatus) -> None:
        opened = False
        try:
            with timed("obs_handshake", details={"url": url}):
                await self._transport.connect(url, password)
            opened = True

            # Snapshot before CONNECTED so no facade call can change the
            # backend location first.
            self._previous_location = await self._snapshot_location()
            if self._lost_during_attempt:
                raise ObsConnectionError("OBS closed the connection during the handshake")
            self._status = ConnectionStatus.CONNECTED

            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_CONNECTED",
                "url": url,
                "previous_directory": self._previous_location.directory,
                "previous_filename_format": self._previous_location.filename_format,
            })

        except ObsAuthError as e:
            self._status = ConnectionStatus.FAILED
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_AUTH_FAILED",
                "url": url,
                "error": str(e),
            })
            await self._force_close()

        except ValueError as e:
            self._status = prior
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_CONNECT_REJECTED",
                "reason": "invalid_argument",
                "error": str(e),
            })

        except Exception as e:  # pylint: disable=broad-exception-caught
            # A late success may already have flipped the status.
            if self._status is not ConnectionStatus.CONNECTED:
                self._status = ConnectionStatus.FAILED
                self._previous_location = RecordingLocation.EMPTY
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_CONNECT_FAILED",
                "url": url,
                "error": repr(e),
            })
            if opened and self._status is ConnectionStatus.FAILED:
                await self._force_close()

    def _on_handshake_done(self, task: asyncio.Task[None], prior: ConnectionStatus) -> None:
        if task.cancelled() and self._status is ConnectionStatus.CONNECTING:
            self._status = prior
        if self._attempt is task:
            self._attempt = None
        self._connect_lock.release()

    async def _snapshot_location(self) -> RecordingLocation:
        """
        Read the backend location; an empty snapshot when OBS refuses.

        A lost connection is not a refusal: ObsConnectionError fails the
        attempt instead.
        """
        try:
            directory = await self._transport.get_record_directory()
            filename_format = await self._transport.get_filename_formatting()
        except ObsConnectionError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_LOCATION_SNAPSHOT_FAILED",
                "error": repr(e),
            })
            return RecordingLocation.EMPTY
        return RecordingLocation(directory=directory, filename_format=filename_format)

    async def _force_close(self) -> None:
        try:
            await self._transport.disconnect()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OBS_DISCONNECT_FAILED",
                "error": repr(e),
            })

    # ------------------------------------------------------------------
    # Disconnect
    # ------------------------------------------------------------------

    async def disconnect(self) -> bool:
        """
        Restore the snapshot location, then close the session.

        Returns False (and does nothing) when not connected.
        """
        if not self.is_connected:
            return False

        await self._restore_location(self._previous_location)
        await self._force_close()

        self._status = ConnectionStatus.DISCONNECTED
        self._previous_location = RecordingLocation.EMPTY

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "OBS_DISCONNECTED",
            "reason": "requested",
        })
        return True

    async def _restore_location(self, location: RecordingLocation) -> None:
        if location.directory.strip():
            try:
                await self._transport.set_record_directory(location.directory)
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "OBS_LOCATION_RESTORE_FAILED",
                    "field": "directory",
                    "error": repr(e),
                })

        if location.filename_format.strip():
            try:
                await self._transport.set_filename_formatting(location.filename_format)
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "OBS_LOCATION_RESTORE_FAILED",
                    "field": "filename_format",
                    "error": repr(e),
                })

    # ------------------------------------------------------------------
    # Backend notifications
    # ------------------------------------------------------------------

    def apply(self, event: Event) -> None:
        """Apply a backend lifecycle notification."""
        if isinstance(event, ObsConnected):
            log_event({
                "ts_ms": event.ts_ms,
                "event_type": "OBS_IDENTIFIED",
                "status": self._status.value,
            })
            return

        if isinstance(event, ObsDisconnected):
            if self._status is ConnectionStatus.CONNECTING:
                self._lost_during_attempt = True
                log_event({
                    "ts_ms": event.ts_ms,
                    "event_type": "OBS_LOST_DURING_CONNECT",
                    "reason": event.reason or "backend_closed",
                })
            elif self._status is ConnectionStatus.CONNECTED:
                self._status = ConnectionStatus.DISCONNECTED
                self._previous_location = RecordingLocation.EMPTY
                log_event({
                    "ts_ms": event.ts_ms,
                    "event_type": "OBS_DISCONNECTED",
                    "reason": event.reason or "backend_closed",
                })
