"""
OBS transport contract.

This module defines the *interface only*: no guards, no retries, no
orchestration decisions live here.

Key invariants:
- The transport executes exactly the request it is asked for; callers
  (ConnectionManager, ObsService) own every precondition check.
- The transport emits backend notifications (ObsConnected,
  ObsDisconnected, OutputStateChanged, StreamStatusUpdated) through the
  async emit_event sink it was constructed with. It never mutates
  connection or output state itself.
- Failures raise one of the exceptions below; nothing else escapes.
"""

from __future__ import annotations

import urllib.parse
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from spec import OBS_URL_SCHEMES


# ---------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------

class ObsError(Exception):
    """Base class for transport failures."""


class ObsAuthError(ObsError):
    """Backend rejected the password (or required one that was not given)."""


class ObsConnectionError(ObsError):
    """Socket-level failure: refused, dropped, timed out."""


class ObsRequestError(ObsError):
    """
    Backend answered a request with a failure status.

    code is the backend's request status code when known.
    """

    def __init__(self, request_type: str, code: int | None, comment: str | None) -> None:
        super().__init__(f"{request_type} failed ({code}): {comment or 'no comment'}")
        self.request_type = request_type
        self.code = code
        self.comment = comment


# ---------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class FilterInfo:
    """One filter attached to a source."""
    name: str
    kind: str
    enabled: bool = True
    index: int = 0
    settings: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------

def validate_url(url: str) -> None:
    """
    Raise ValueError unless url is a ws:// or wss:// address with a host.
    """
    if not isinstance(url, str) or not url.strip():
        raise ValueError("OBS address must be a non-empty string")
    parsed = urllib.parse.urlparse(url.strip())
    if parsed.scheme not in OBS_URL_SCHEMES:
        raise ValueError(f"OBS address must use ws:// or wss://, got {url!r}")
    if not parsed.hostname:
        raise ValueError(f"OBS address has no host: {url!r}")


# ---------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------

class ObsTransport(ABC):
    """
    Abstract remote-control client for one OBS instance.

    Implementations are responsible for:
    - The connect / authenticate handshake
    - Sending requests and correlating responses
    - Delivering backend notifications to the event sink

    Non-responsibilities:
    - No connection status bookkeeping
    - No output state caching
    - No precondition checks
    """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def connect(self, url: str, password: str) -> None:
        """
        Open and authenticate a session.

        Raises:
            ObsAuthError on rejected credentials.
            ValueError on a malformed url.
            ObsConnectionError / ObsError on anything else.
        """
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the session. Idempotent."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    @abstractmethod
    async def start_record(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def stop_record(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def toggle_record(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_record_directory(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def set_record_directory(self, directory: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_filename_formatting(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def set_filename_formatting(self, filename_format: str) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Replay buffer
    # ------------------------------------------------------------------

    @abstractmethod
    async def start_replay_buffer(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def stop_replay_buffer(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def toggle_replay_buffer(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def save_replay_buffer(self) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    @abstractmethod
    async def toggle_stream(self) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Source filters
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_source_filters(self, source_name: str) -> list[FilterInfo]:
        raise NotImplementedError

    @abstractmethod
    async def get_source_filter(self, source_name: str, filter_name: str) -> FilterInfo:
        raise NotImplementedError

    @abstractmethod
    async def create_source_filter(
        self,
        source_name: str,
        filter_name: str,
        filter_kind: str,
        settings: dict[str, Any],
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def remove_source_filter(self, source_name: str, filter_name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def set_source_filter_settings(
        self,
        source_name: str,
        filter_name: str,
        settings: dict[str, Any],
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def set_source_filter_enabled(
        self,
        source_name: str,
        filter_name: str,
        enabled: bool,
    ) -> None:
        raise NotImplementedError
