from __future__ import annotations

from pathlib import Path

EX_OK = 0
EX_USAGE = 64
EX_SOFTWARE = 70


class RunPartsError(RuntimeError):
    """Base class for run-parts failures."""


class ConfigError(RunPartsError):
    """Raised when options or configuration values are invalid."""


class ExecutionError(RunPartsError):
    """Raised when a single file could not be executed to completion."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class SpawnError(ExecutionError):
    """Raised when the child process could not be started."""


class MuxError(ExecutionError):
    """Raised when the output multiplexer cannot deliver chunks."""


class MuxTransportError(MuxError):
    """Raised when a producer's pipe breaks while being read."""


class MuxClosedError(MuxError):
    """Raised when every producer closed without a terminating chunk."""
