from runparts.execution.base import (
    EX_OK,
    EX_SOFTWARE,
    EX_USAGE,
    ConfigError,
    ExecutionError,
    MuxClosedError,
    MuxError,
    MuxTransportError,
    RunPartsError,
    SpawnError,
)
from runparts.execution.executor import execute
from runparts.execution.mux import TAG_DONE, TAG_STDERR, Chunk, Mux, PipeProducer, Producer
from runparts.execution.resolver import Report, read_until_done
from runparts.execution.watcher import CompletionWatcher, encode_exit_status

__all__ = [
    "EX_OK",
    "EX_SOFTWARE",
    "EX_USAGE",
    "TAG_DONE",
    "TAG_STDERR",
    "Chunk",
    "CompletionWatcher",
    "ConfigError",
    "ExecutionError",
    "Mux",
    "MuxClosedError",
    "MuxError",
    "MuxTransportError",
    "PipeProducer",
    "Producer",
    "Report",
    "RunPartsError",
    "SpawnError",
    "encode_exit_status",
    "execute",
    "read_until_done",
]
