"""
SPEC-AS-CONSTANTS
-----------------
Single source of truth for all behavioral constants in the recorder.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- User-tunable values live in config.py, not here.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Delayed auto-stop
# =============================================================================

# One countdown step of the delayed-stop sequence. Cancellation is observed
# within a step, never only at its boundary.
AUTO_STOP_TICK_S: Final[float] = 1.0

# Online status id the game reports while the player watches a cutscene.
# Default only; overridable through CUTSCENE_ONLINE_STATUS_ID.
DEFAULT_CUTSCENE_ONLINE_STATUS_ID: Final[int] = 15

DEFAULT_STOP_RECORD_DELAY_S: Final[int] = 5

# =============================================================================
# Territory
# =============================================================================

# Territory id reported while not in any zone (login screen, loading).
NO_TERRITORY_ID: Final[int] = 0

ZONE_SUFFIX_SEPARATOR: Final[str] = "_"

# =============================================================================
# OBS connection
# =============================================================================

DEFAULT_OBS_ADDRESS: Final[str] = "ws://127.0.0.1:4455"
OBS_URL_SCHEMES: Final[Tuple[str, ...]] = ("ws", "wss")

# =============================================================================
# OBS WebSocket v5 protocol
# =============================================================================

OBS_RPC_VERSION: Final[int] = 1

# EventSubscription bitmask: General (1 << 0) | Outputs (1 << 6)
OBS_EVENT_SUBSCRIPTIONS: Final[int] = (1 << 0) | (1 << 6)

OBS_OP_HELLO: Final[int] = 0
OBS_OP_IDENTIFY: Final[int] = 1
OBS_OP_IDENTIFIED: Final[int] = 2
OBS_OP_EVENT: Final[int] = 5
OBS_OP_REQUEST: Final[int] = 6
OBS_OP_REQUEST_RESPONSE: Final[int] = 7

# WebSocketCloseCode.AuthenticationFailed
OBS_CLOSE_AUTH_FAILED: Final[int] = 4009

# RequestStatus codes that classify a rejected request
OBS_STATUS_MISSING_FIELD: Final[int] = 300
OBS_STATUS_INVALID_FIELD_TYPE: Final[int] = 400
OBS_STATUS_OUTPUT_RUNNING: Final[int] = 500
OBS_STATUS_OUTPUT_NOT_RUNNING: Final[int] = 501

OBS_HANDSHAKE_TIMEOUT_S: Final[float] = 5.0
OBS_REQUEST_TIMEOUT_S: Final[float] = 5.0

# Latest stream statistics are polled while the stream output is active.
STREAM_STATUS_POLL_S: Final[float] = 2.0

# Profile parameter holding the recording filename pattern.
OBS_FILENAME_FORMAT_CATEGORY: Final[str] = "Output"
OBS_FILENAME_FORMAT_PARAMETER: Final[str] = "FilenameFormatting"

# Terminal output states reported in *StateChanged events
OBS_OUTPUT_STARTED: Final[str] = "OBS_WEBSOCKET_OUTPUT_STARTED"
OBS_OUTPUT_STOPPED: Final[str] = "OBS_WEBSOCKET_OUTPUT_STOPPED"
OBS_OUTPUT_PAUSED: Final[str] = "OBS_WEBSOCKET_OUTPUT_PAUSED"
OBS_OUTPUT_RESUMED: Final[str] = "OBS_WEBSOCKET_OUTPUT_RESUMED"

# =============================================================================
# Event gateway
# =============================================================================

GATEWAY_PAYLOAD_PREVIEW_CHARS: Final[int] = 100

# Max notices kept for the user-facing channel before the oldest are dropped.
NOTICE_BUFFER_MAX: Final[int] = 50
