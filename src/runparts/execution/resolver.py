from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from runparts.execution.base import EX_SOFTWARE
from runparts.execution.mux import TAG_DONE, Chunk, Mux


class Stream(enum.Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True, slots=True)
class Output:
    stream: Stream
    data: bytes


@dataclass(frozen=True, slots=True)
class DoneStatus:
    code: int


@dataclass(frozen=True, slots=True)
class DoneError:
    message: bytes


Event = Output | DoneStatus | DoneError


def classify(chunk: Chunk) -> Event:
    if chunk.tag == TAG_DONE:
        if len(chunk.data) == 1:
            return DoneStatus(chunk.data[0])
        return DoneError(chunk.data)
    if chunk.tag is None:
        return Output(Stream.STDOUT, chunk.data)
    return Output(Stream.STDERR, chunk.data)


@dataclass(slots=True)
class Report:
    """One-shot prefix naming the file, printed before its first output.

    Whichever stream emits first uses up the prefix, even when that stream
    has prefixing disabled.
    """

    label: str
    report: bool = False
    verbose: bool = False
    used: bool = field(default=False, init=False)

    @classmethod
    def for_path(cls, path: Path, *, report: bool, verbose: bool) -> Report:
        return cls(str(path), report=report, verbose=verbose)

    def _take(self, enabled: bool) -> str | None:
        if self.used:
            return None
        self.used = True
        return self.label if enabled else None

    def out_prefix(self) -> str | None:
        return self._take(self.report)

    def err_prefix(self) -> str | None:
        # With --verbose the name already went to stderr.
        return self._take(self.report and not self.verbose)


def _forward(destination: BinaryIO, data: bytes, prefix: str | None) -> None:
    if prefix is not None:
        destination.write(os.fsencode(prefix) + b":\n")
    destination.write(data)
    destination.flush()


def read_until_done(
    mux: Mux,
    report: Report,
    stdout: BinaryIO,
    stderr: BinaryIO,
) -> int:
    """Forward chunks to their destinations until the done-chunk resolves a status."""
    while True:
        event = classify(mux.read())
        if isinstance(event, DoneStatus):
            return event.code
        if isinstance(event, DoneError):
            stderr.write(event.message)
            stderr.flush()
            return EX_SOFTWARE
        if event.stream is Stream.STDOUT:
            _forward(stdout, event.data, report.out_prefix())
        else:
            _forward(stderr, event.data, report.err_prefix())
