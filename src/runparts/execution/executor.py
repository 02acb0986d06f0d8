from __future__ import annotations

import logging
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from runparts.execution.base import MuxError, SpawnError
from runparts.execution.mux import TAG_DONE, TAG_STDERR, Mux
from runparts.execution.resolver import Report, read_until_done
from runparts.execution.watcher import CompletionWatcher

if TYPE_CHECKING:
    from runparts.config import RunPartsConfig

logger = logging.getLogger(__name__)

SpawnFactory = Callable[..., subprocess.Popen]


def build_command(path: Path, config: RunPartsConfig) -> list[str]:
    return [str(path), *config.args]


def execute(
    path: Path,
    config: RunPartsConfig,
    *,
    stdout: BinaryIO | None = None,
    stderr: BinaryIO | None = None,
    spawn: SpawnFactory = subprocess.Popen,
) -> int:
    """Run one file as a child process and return its resolved exit status.

    The child's stdout and stderr are forwarded chunk by chunk to ``stdout``
    and ``stderr`` (the process's own binary streams by default). Raises
    ``SpawnError`` if the child cannot be started and ``MuxError`` if its
    output cannot be collected.
    """
    stdout = stdout if stdout is not None else sys.stdout.buffer
    stderr = stderr if stderr is not None else sys.stderr.buffer
    command = build_command(path, config)

    mux = Mux()
    out_sender = mux.make_untagged_sender()
    err_sender = mux.make_tagged_sender(TAG_STDERR)
    done_sender = mux.make_producer(TAG_DONE)
    try:
        try:
            process = spawn(
                command,
                stdout=out_sender.fileno(),
                stderr=err_sender.fileno(),
                close_fds=True,
            )
        except OSError as exc:
            reason = exc.strerror or str(exc)
            raise SpawnError(f"failed to exec {path}: {reason}", path=path) from exc
        logger.debug(f"Spawned {command} as pid {process.pid}")

        out_sender.start()
        err_sender.start()
        drain = (out_sender, err_sender) if config.drain_output else ()
        CompletionWatcher(process, done_sender, drain=drain).start()

        report = Report.for_path(path, report=config.report, verbose=config.verbose)
        try:
            status = read_until_done(mux, report, stdout, stderr)
        except MuxError as exc:
            if exc.path is None:
                exc.path = path
            raise
    finally:
        mux.close()
    logger.debug(f"{path} resolved to status {status}")
    return status
