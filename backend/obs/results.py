"""
Result types for OBS facade operations.

Every facade operation returns a CommandResult instead of raising, so
callers and tests can tell "already satisfied" from "failed".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """
    Failure classification for backend operations.

    TRANSIENT:
        Network hiccup or backend rejection. Logged and surfaced to the
        user; the core never retries on its own, the next triggering
        event does.

    AUTHENTICATION:
        Backend refused the credentials. Terminal for the current
        connection attempt.

    PRECONDITION_NOT_MET:
        Not an error. The action is already satisfied or currently
        impossible (not connected, output already in that state).

    ARGUMENT:
        Malformed input (URL, password, empty names).
    """

    TRANSIENT = "transient"
    AUTHENTICATION = "authentication"
    PRECONDITION_NOT_MET = "precondition_not_met"
    ARGUMENT = "argument"


@dataclass(frozen=True)
class CommandResult:
    """
    Outcome of a single facade operation.

    issued means the command was sent to the backend, not that the
    backend completed it; confirmation arrives later through the
    output state mirror.
    """

    issued: bool
    error: ErrorKind | None = None
    detail: str | None = None

    def __bool__(self) -> bool:
        return self.issued

    @property
    def is_noop(self) -> bool:
        return self.error is ErrorKind.PRECONDITION_NOT_MET


ISSUED = CommandResult(issued=True)


def not_met(detail: str) -> CommandResult:
    return CommandResult(
        issued=False,
        error=ErrorKind.PRECONDITION_NOT_MET,
        detail=detail,
    )


def failed(kind: ErrorKind, detail: str) -> CommandResult:
    return CommandResult(issued=False, error=kind, detail=detail)
