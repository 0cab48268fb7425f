"""
Output state mirror.

Last-known state of each backend output, as reported by the backend.

Invariants:
- Written ONLY by apply(), i.e. by backend notifications.
- Facade calls never write here; a start request does not flip the
  mirror to STARTED, the backend's confirmation does.
- Reads are plain attribute reads and may lag the backend briefly.
"""

from __future__ import annotations

from orchestrator.enums.output import Output, OutputState
from orchestrator.events import (
    Event,
    ObsDisconnected,
    OutputStateChanged,
    StreamStats,
    StreamStatusUpdated,
)


class OutputStateMirror:
    def __init__(self) -> None:
        self.record: OutputState = OutputState.STOPPED
        self.stream: OutputState = OutputState.STOPPED
        self.replay_buffer: OutputState = OutputState.STOPPED
        self.stream_stats: StreamStats = StreamStats()

    def get(self, output: Output) -> OutputState:
        if output is Output.RECORD:
            return self.record
        if output is Output.STREAM:
            return self.stream
        return self.replay_buffer

    def apply(self, event: Event) -> bool:
        """
        Apply a backend notification.

        Returns True if the mirror changed.
        """
        if isinstance(event, OutputStateChanged):
            if self.get(event.output) is event.state:
                return False
            if event.output is Output.RECORD:
                self.record = event.state
            elif event.output is Output.STREAM:
                self.stream = event.state
                if event.state is OutputState.STOPPED:
                    self.stream_stats = StreamStats()
            else:
                self.replay_buffer = event.state
            return True

        if isinstance(event, StreamStatusUpdated):
            self.stream_stats = event.stats
            return True

        if isinstance(event, ObsDisconnected):
            # Nothing is known about a backend we are not connected to.
            self.reset()
            return True

        return False

    def reset(self) -> None:
        self.record = OutputState.STOPPED
        self.stream = OutputState.STOPPED
        self.replay_buffer = OutputState.STOPPED
        self.stream_stats = StreamStats()

    def snapshot(self) -> dict[str, object]:
        return {
            "record": self.record.value,
            "stream": self.stream.value,
            "replay_buffer": self.replay_buffer.value,
            "stream_stats": {
                "active": self.stream_stats.active,
                "reconnecting": self.stream_stats.reconnecting,
                "timecode": self.stream_stats.timecode,
                "duration_ms": self.stream_stats.duration_ms,
                "congestion": self.stream_stats.congestion,
                "bytes_sent": self.stream_stats.bytes_sent,
                "skipped_frames": self.stream_stats.skipped_frames,
                "total_frames": self.stream_stats.total_frames,
            },
        }
