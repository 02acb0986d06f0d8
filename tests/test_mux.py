import os
import threading

import pytest

from runparts.execution.base import MuxClosedError, MuxError, MuxTransportError
from runparts.execution.mux import TAG_DONE, TAG_STDERR, Chunk, Mux


def _drain(mux: Mux) -> list[Chunk]:
    chunks: list[Chunk] = []
    with pytest.raises(MuxClosedError):
        while True:
            chunks.append(mux.read())
    return chunks


def test_per_producer_order_is_preserved_across_threads() -> None:
    mux = Mux()
    producers = [mux.make_producer(tag) for tag in (None, TAG_STDERR, TAG_DONE)]

    def feed(producer) -> None:
        for index in range(300):
            producer.write(str(index).encode())
        producer.close()

    threads = [threading.Thread(target=feed, args=(producer,)) for producer in producers]
    for thread in threads:
        thread.start()

    seen: dict[str | None, list[int]] = {None: [], TAG_STDERR: [], TAG_DONE: []}
    for chunk in _drain(mux):
        seen[chunk.tag].append(int(chunk.data))
    for thread in threads:
        thread.join()

    for values in seen.values():
        assert values == list(range(300))


def test_pipe_producer_forwards_bytes_written_to_its_descriptor() -> None:
    mux = Mux()
    sender = mux.make_tagged_sender(TAG_STDERR)
    os.write(sender.fileno(), b"from child")
    sender.start()

    chunks = _drain(mux)

    assert b"".join(chunk.data for chunk in chunks) == b"from child"
    assert all(chunk.tag == TAG_STDERR for chunk in chunks)


def test_pipe_producer_releases_write_end_on_start() -> None:
    mux = Mux()
    sender = mux.make_untagged_sender()
    sender.start()
    sender.join(timeout=5)

    with pytest.raises(MuxError):
        sender.fileno()
    with pytest.raises(MuxClosedError):
        mux.read()


def test_read_raises_when_all_producers_close_without_data() -> None:
    mux = Mux()
    mux.make_producer(TAG_DONE).close()

    with pytest.raises(MuxClosedError):
        mux.read()


def test_read_reports_transport_failure() -> None:
    mux = Mux()
    producer = mux.make_producer(None)
    producer.write(b"partial")
    producer.close(OSError(5, "Input/output error"))

    assert mux.read() == Chunk(None, b"partial")
    with pytest.raises(MuxTransportError):
        mux.read()


def test_write_after_close_is_rejected() -> None:
    mux = Mux()
    producer = mux.make_producer(TAG_DONE)
    producer.close()

    with pytest.raises(MuxError):
        producer.write(b"x")


def test_empty_writes_are_not_delivered() -> None:
    mux = Mux()
    producer = mux.make_producer(None)
    producer.write(b"")
    producer.write(b"data")
    producer.close()

    assert _drain(mux) == [Chunk(None, b"data")]


def test_close_discards_unstarted_pipes() -> None:
    mux = Mux()
    sender = mux.make_untagged_sender()
    mux.close()

    with pytest.raises(MuxError):
        sender.fileno()
    assert sender.closed is True
