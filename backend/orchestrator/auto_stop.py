"""
Delayed auto-stop runtime.

Responsibilities:
- Run one countdown task per stop_id
- Give each task its own cancellation signal
- Hold the countdown while the player is in a cutscene (when enabled)
- Emit AutoStopElapsed on completion, AutoStopAborted on failure

Non-responsibilities:
- NO decision whether to stop (reducer does that)
- NO stop_id generation
- NO OBS calls

This module is infrastructure only.
"""

from __future__ import annotations

import asyncio
import time
from asyncio import Task
from dataclasses import dataclass
from typing import Awaitable, Callable

from orchestrator.events import (
    AutoStopAborted,
    AutoStopElapsed,
    Event,
    EventType,
)
from spec import AUTO_STOP_TICK_S


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

EventSink = Callable[[Event], Awaitable[None]]
HoldFn = Callable[[], bool]


@dataclass(frozen=True)
class _Sequence:
    task: Task[None]
    cancel: asyncio.Event


# ---------------------------------------------------------------------
# Auto-stop Manager
# ---------------------------------------------------------------------

class AutoStopManager:
    """
    Runtime manager for delayed-stop sequences.

    Lifecycle:
    1. Reducer emits StartAutoStop(stop_id, delay_s)
    2. Runtime calls start(stop_id=..., delay_s=...)
    3a. Reducer emits CancelAutoStop(stop_id) -> cancel(stop_id)
    3b. Countdown reaches zero outside a cutscene -> AutoStopElapsed
    3c. Countdown fails -> AutoStopAborted

    This class never decides what happens next.
    """

    def __init__(
        self,
        *,
        emit_event: EventSink,
        hold: HoldFn,
        tick_s: float = AUTO_STOP_TICK_S,
    ) -> None:
        self._emit_event = emit_event
        self._hold = hold
        self._tick_s = tick_s

        self._sequences: dict[int, _Sequence] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, *, stop_id: int, delay_s: int) -> None:
        """
        Start a countdown for stop_id.

        Idempotent: a second start for a live stop_id is ignored.
        """
        if stop_id in self._sequences:
            return

        cancel = asyncio.Event()
        task = asyncio.create_task(
            self._run(stop_id=stop_id, delay_s=delay_s, cancel=cancel)
        )
        self._sequences[stop_id] = _Sequence(task=task, cancel=cancel)
        task.add_done_callback(lambda _t: self._sequences.pop(stop_id, None))

    def cancel(self, stop_id: int) -> None:
        """
        Signal cancellation; the countdown exits within one tick.

        No-op for unknown or finished stop_ids.
        """
        seq = self._sequences.get(stop_id)
        if seq is not None:
            seq.cancel.set()

    def is_active(self, stop_id: int) -> bool:
        return stop_id in self._sequences

    @property
    def active_ids(self) -> tuple[int, ...]:
        return tuple(self._sequences)

    def clear_all(self) -> None:
        """
        Cancel and clear all outstanding countdowns.
        Used on shutdown.
        """
        for seq in self._sequences.values():
            seq.cancel.set()
            seq.task.cancel()
        self._sequences.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(self, *, stop_id: int, delay_s: int, cancel: asyncio.Event) -> None:
        try:
            remaining = delay_s
            while True:
                if cancel.is_set():
                    return

                try:
                    await asyncio.wait_for(cancel.wait(), timeout=self._tick_s)
                    return
                except asyncio.TimeoutError:
                    pass

                remaining -= 1
                if remaining > 0 or self._hold():
                    continue
                break

        except asyncio.CancelledError:
            return

        except Exception as e:  # pylint: disable=broad-exception-caught
            await self._emit_event(
                AutoStopAborted(
                    event_type=EventType.AUTO_STOP_ABORTED,
                    ts_ms=_now_ms(),
                    stop_id=stop_id,
                    reason=repr(e),
                )
            )
            return

        await self._emit_event(
            AutoStopElapsed(
                event_type=EventType.AUTO_STOP_ELAPSED,
                ts_ms=_now_ms(),
                stop_id=stop_id,
            )
        )


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _now_ms() -> int:
    return int(time.time() * 1000)
