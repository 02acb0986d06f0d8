from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Literal

from runparts.config import RunPartsConfig
from runparts.execution import EX_OK, EX_SOFTWARE, ConfigError, ExecutionError, execute
from runparts.filters import filter_file, find_files, is_executable

logger = logging.getLogger(__name__)

FileAction = Literal["listed", "tested", "executed", "failed", "skipped"]
RunEventHook = Callable[[dict[str, Any]], None]


@dataclass(slots=True)
class FileResult:
    path: Path
    action: FileAction
    exit_code: int = EX_OK


@dataclass(slots=True)
class RunSummary:
    results: list[FileResult] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def exit_code(self) -> int:
        if not self.results:
            return EX_OK
        return self.results[-1].exit_code

    @property
    def failures(self) -> list[FileResult]:
        return [result for result in self.results if result.exit_code != EX_OK]


def parse_umask(value: str) -> int:
    try:
        mask = int(value, 8)
    except ValueError as exc:
        raise ConfigError(f"invalid umask '{value}': not an octal number") from exc
    if not 0 <= mask <= 0o777:
        raise ConfigError(f"invalid umask '{value}': out of range")
    return mask


def compile_regex(pattern: str | None) -> re.Pattern[str] | None:
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"invalid regex '{pattern}': {exc}") from exc


class RunParts:
    """Runs every eligible file in a directory, one after another."""

    def __init__(
        self,
        config: RunPartsConfig,
        *,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
        event_hook: RunEventHook | None = None,
    ) -> None:
        if config.list_only and config.test:
            raise ConfigError("--list and --test cannot be used together")
        self.config = config
        self.stdout = stdout
        self.stderr = stderr
        self.event_hook = event_hook
        self.regex = compile_regex(config.regex)
        self.umask = parse_umask(config.umask)

    def _emit(self, event: dict[str, Any]) -> None:
        if self.event_hook is not None:
            self.event_hook(event)

    def _out(self) -> BinaryIO:
        return self.stdout if self.stdout is not None else sys.stdout.buffer

    def _err(self) -> BinaryIO:
        return self.stderr if self.stderr is not None else sys.stderr.buffer

    def _write_line(self, destination: BinaryIO, text: str) -> None:
        destination.write(os.fsencode(text) + b"\n")
        destination.flush()

    def _describe(self, path: Path) -> str:
        return f"{path} {' '.join(self.config.args)}"

    def eligible_files(self, directory: Path) -> list[Path]:
        files = find_files(directory, reverse=self.config.reverse)
        return [
            path
            for path in files
            if filter_file(path, lsbsysinit=self.config.lsbsysinit, regex=self.regex)
        ]

    def run(self, directory: Path) -> RunSummary:
        files = self.eligible_files(directory)
        if not (self.config.list_only or self.config.test):
            os.umask(self.umask)
        logger.info(f"Processing {len(files)} file(s) in {directory}")

        summary = RunSummary()
        status = EX_OK
        for path in files:
            if self.config.exit_on_error and status != EX_OK:
                summary.stopped_early = True
                self._emit({"event": "run_stopped", "path": str(path), "exit_code": status})
                break
            result = self.act_on_file(path)
            summary.results.append(result)
            status = result.exit_code
        return summary

    def act_on_file(self, path: Path) -> FileResult:
        if self.config.list_only:
            self._write_line(self._out(), self._describe(path))
            return FileResult(path, "listed")
        if not is_executable(path):
            self._emit({"event": "file_skipped", "path": str(path)})
            return FileResult(path, "skipped")
        if self.config.test:
            self._write_line(self._out(), self._describe(path))
            return FileResult(path, "tested")

        if self.config.verbose:
            self._write_line(self._err(), self._describe(path))
        self._emit({"event": "file_start", "path": str(path), "args": list(self.config.args)})
        try:
            exit_code = execute(path, self.config, stdout=self._out(), stderr=self._err())
            action: FileAction = "executed"
        except ExecutionError as exc:
            logger.debug(f"Execution of {path} failed: {exc}")
            self._write_line(self._err(), f"run-parts: {exc}")
            self._emit({"event": "exec_failed", "path": str(path), "error": str(exc)})
            exit_code = EX_SOFTWARE
            action = "failed"
        if self.config.verbose:
            self._write_line(self._err(), f"{self._describe(path)} exit status {exit_code}")
        self._emit({"event": "file_exit", "path": str(path), "exit_code": exit_code})
        return FileResult(path, action, exit_code)
