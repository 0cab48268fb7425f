"""
Game state snapshot.

Holds the latest territory and online status reported by the external
game-state detector, plus every zone name it has told us about.

Written by the event gateway, read by the runtime (zone lookup for the
recording location) and by the auto-stop manager (cutscene check).
"""

from __future__ import annotations

from spec import NO_TERRITORY_ID


class GameStateSnapshot:
    """
    Implements GameContextProtocol (see orchestrator/runtime_context.py).

    Zone names are remembered per territory id, so a later lookup for a
    territory seen earlier still resolves.
    """

    def __init__(self) -> None:
        self._territory_id: int = NO_TERRITORY_ID
        self._online_status_id: int = 0
        self._zone_names: dict[int, str] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def territory_id(self) -> int:
        return self._territory_id

    def zone_name(self, territory_id: int) -> str | None:
        return self._zone_names.get(territory_id)

    def online_status_id(self) -> int:
        return self._online_status_id

    # ------------------------------------------------------------------
    # Writes (gateway only)
    # ------------------------------------------------------------------

    def set_territory(self, territory_id: int, zone_name: str | None = None) -> None:
        self._territory_id = territory_id
        if zone_name is not None and zone_name.strip():
            self._zone_names[territory_id] = zone_name.strip()

    def set_online_status(self, status_id: int) -> None:
        self._online_status_id = status_id

    def snapshot(self) -> dict[str, object]:
        return {
            "territory_id": self._territory_id,
            "zone_name": self.zone_name(self._territory_id),
            "online_status_id": self._online_status_id,
        }
