"""
Authoritative orchestrator state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need besides config and
  connection status, which are passed in per call.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OrchestratorState:
    """Immutable snapshot of all orchestrator-owned state."""

    # ------------------------------------------------------------------
    # Countdown edge detection
    # ------------------------------------------------------------------
    # None until the first tick; a start needs a previous value to
    # compare against.
    last_countdown_value: float | None = None

    # ------------------------------------------------------------------
    # Delayed auto-stop (single slot)
    # ------------------------------------------------------------------
    auto_stop_pending: bool = False

    # Monotonic; bumped on every new sequence and never reused.
    # 0 means "no sequence has been started yet".
    auto_stop_id: int = 0
