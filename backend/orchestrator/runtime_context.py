"""
Runtime execution context.

Provides Runtime with live access to the imperative resources it needs
for command execution (OBS facade, game context, configuration).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from config import AppConfig, AutoRecordConfig
    from obs.service import ObsService


# ---------------------------------------------------------------------
# Game Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class GameContextProtocol(Protocol):
    def territory_id(self) -> int: ...

    def zone_name(self, territory_id: int) -> str | None:
        """
        Display name for a territory, or None when unknown.
        """

    def online_status_id(self) -> int: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Runtime is allowed to:
    - Call the OBS facade and connection manager
    - Read game context
    - Read configuration

    Runtime is NOT allowed to:
    - Write connection status or output state directly
    - Perform orchestration decisions
    """

    def __init__(
        self,
        *,
        obs: ObsService,
        game: GameContextProtocol,
        config: AppConfig,
    ) -> None:
        self.obs = obs
        self.game = game
        self.config = config

    @property
    def auto_record(self) -> AutoRecordConfig:
        return self.config.auto_record

    @property
    def connected(self) -> bool:
        return self.obs.connection.is_connected
