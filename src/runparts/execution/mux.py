"""Tagged output multiplexer.

Several producers write byte chunks, each producer bound to a fixed tag, and a
single consumer reads them back one chunk at a time in arrival order. Chunks
from one producer keep their write order; nothing is promised across
producers.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from dataclasses import dataclass

from runparts.execution.base import MuxClosedError, MuxError, MuxTransportError

logger = logging.getLogger(__name__)

TAG_STDERR = "e"
TAG_DONE = "d"
READ_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class Chunk:
    tag: str | None
    data: bytes


@dataclass(frozen=True, slots=True)
class _EndOfStream:
    tag: str | None
    error: OSError | None = None


class Producer:
    """In-process write endpoint bound to one tag."""

    def __init__(self, mux: Mux, tag: str | None) -> None:
        self.mux = mux
        self.tag = tag
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> None:
        with self._lock:
            if self._closed:
                raise MuxError(f"write to closed producer (tag={self.tag!r})")
            if data:
                self.mux._deliver(Chunk(self.tag, bytes(data)))

    def close(self, error: OSError | None = None) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self.mux._deliver(_EndOfStream(self.tag, error))


class PipeProducer(Producer):
    """Producer fed from an OS pipe.

    The write end is meant to be handed to a child process as one of its
    standard streams. After ``start()`` a pump thread forwards every read from
    the pipe as one chunk until end-of-stream.
    """

    def __init__(self, mux: Mux, tag: str | None) -> None:
        super().__init__(mux, tag)
        self._read_fd, self._write_fd = os.pipe()
        self._pump: threading.Thread | None = None

    def fileno(self) -> int:
        if self._write_fd < 0:
            raise MuxError(f"pipe write end already released (tag={self.tag!r})")
        return self._write_fd

    @property
    def started(self) -> bool:
        return self._pump is not None

    def start(self) -> None:
        # The child holds its own copy; ours would keep the pipe open forever.
        self._release_write_end()
        self._pump = threading.Thread(
            target=self._pump_loop, name=f"mux-pump-{self.tag or 'out'}", daemon=True
        )
        self._pump.start()

    def join(self, timeout: float | None = None) -> None:
        if self._pump is not None:
            self._pump.join(timeout)

    def discard(self) -> None:
        """Release both pipe ends of a producer that was never started."""
        if self.started:
            return
        self._release_write_end()
        if self._read_fd >= 0:
            os.close(self._read_fd)
            self._read_fd = -1
        self.close()

    def _release_write_end(self) -> None:
        if self._write_fd >= 0:
            os.close(self._write_fd)
            self._write_fd = -1

    def _pump_loop(self) -> None:
        error: OSError | None = None
        try:
            while True:
                data = os.read(self._read_fd, READ_SIZE)
                if not data:
                    break
                self.write(data)
        except OSError as exc:
            logger.debug(f"Pipe read failed for tag {self.tag!r}: {exc}")
            error = exc
        finally:
            os.close(self._read_fd)
            self._read_fd = -1
            self.close(error)


class Mux:
    """Merges tagged producers into one blocking read for a single consumer."""

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[Chunk | _EndOfStream] = queue.SimpleQueue()
        self._producers: list[Producer] = []
        self._open = 0

    def _register(self, producer: Producer) -> Producer:
        self._producers.append(producer)
        self._open += 1
        return producer

    def _deliver(self, item: Chunk | _EndOfStream) -> None:
        self._queue.put(item)

    def make_producer(self, tag: str | None) -> Producer:
        return self._register(Producer(self, tag))

    def make_untagged_sender(self) -> PipeProducer:
        return self._register(PipeProducer(self, None))  # type: ignore[return-value]

    def make_tagged_sender(self, tag: str) -> PipeProducer:
        return self._register(PipeProducer(self, tag))  # type: ignore[return-value]

    def read(self) -> Chunk:
        while True:
            if self._open == 0 and self._queue.empty():
                raise MuxClosedError("all producers closed before a terminating chunk")
            item = self._queue.get()
            if isinstance(item, _EndOfStream):
                self._open -= 1
                if item.error is not None:
                    raise MuxTransportError(
                        f"producer {item.tag!r} failed: {item.error}"
                    ) from item.error
                continue
            return item

    def close(self) -> None:
        for producer in self._producers:
            if isinstance(producer, PipeProducer):
                producer.discard()
