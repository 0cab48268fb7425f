"""
Connection status tracking for the OBS backend connection.

Connection lifecycle is tracked separately from the orchestrator state.
connection_status: DISCONNECTED | CONNECTING | CONNECTED | FAILED

This is pure data owned by ConnectionManager, not by orchestrator state.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Connection lifecycle status.

    Separate from and independent of orchestrator state.
    Exactly one value at any time.
    """
    DISCONNECTED = "DISCONNECTED"  # Not connected
    CONNECTING = "CONNECTING"      # Handshake in flight
    CONNECTED = "CONNECTED"        # Identified session with the backend
    FAILED = "FAILED"              # Last attempt failed; needs a new attempt
