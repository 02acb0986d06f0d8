from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Iterable

from runparts.execution.mux import PipeProducer, Producer

logger = logging.getLogger(__name__)


def encode_exit_status(returncode: int) -> int:
    """Map a Popen return code to a shell-style exit status byte.

    Popen reports death by signal ``s`` as ``-s``; shells report ``128 + s``.
    """
    if returncode < 0:
        return (128 - returncode) & 0xFF
    return returncode & 0xFF


class CompletionWatcher:
    """Waits for a child on its own thread and posts exactly one done-chunk.

    The done payload is a single byte holding the encoded exit status, or a
    multi-byte error description when the wait itself fails.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        done: Producer,
        *,
        drain: Iterable[PipeProducer] = (),
    ) -> None:
        self.process = process
        self.done = done
        self.drain = list(drain)
        self._thread: threading.Thread | None = None

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(
            target=self._run, name=f"watcher-{self.process.pid}", daemon=True
        )
        self._thread.start()
        return self._thread

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            try:
                returncode = self.process.wait()
            except OSError as exc:
                logger.debug(f"Waiting on pid {self.process.pid} failed: {exc!r}")
                self.done.write(f"Error: {exc!r}\n".encode())
                return
            for producer in self.drain:
                producer.join()
            status = encode_exit_status(returncode)
            logger.debug(f"pid {self.process.pid} exited: returncode={returncode} status={status}")
            self.done.write(bytes([status]))
        finally:
            self.done.close()
