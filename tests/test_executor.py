import io
import os
import subprocess
from pathlib import Path
from typing import Any

import pytest

from runparts.config import RunPartsConfig
from runparts.execution import EX_SOFTWARE, SpawnError, execute

pytestmark = pytest.mark.skipif(os.name != "posix", reason="requires POSIX processes")


def _script(directory: Path, name: str, body: str) -> Path:
    path = directory / name
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(0o755)
    return path


def _run(path: Path, config: RunPartsConfig | None = None, **kwargs: Any) -> tuple[int, bytes, bytes]:
    stdout, stderr = io.BytesIO(), io.BytesIO()
    status = execute(
        path, config or RunPartsConfig.default(), stdout=stdout, stderr=stderr, **kwargs
    )
    return status, stdout.getvalue(), stderr.getvalue()


def test_stdout_and_success(tmp_path: Path) -> None:
    path = _script(tmp_path, "10hello", "echo hello\n")

    assert _run(path) == (0, b"hello\n", b"")


def test_stderr_and_exit_code(tmp_path: Path) -> None:
    path = _script(tmp_path, "20oops", "echo oops >&2\nexit 3\n")

    assert _run(path) == (3, b"", b"oops\n")


def test_exit_code_42(tmp_path: Path) -> None:
    path = _script(tmp_path, "30answer", "exit 42\n")

    status, _, _ = _run(path)
    assert status == 42


def test_signal_death_maps_to_128_plus_signal(tmp_path: Path) -> None:
    path = _script(tmp_path, "40killed", "kill -9 $$\n")

    status, _, _ = _run(path)
    assert status == 137


def test_arguments_are_passed(tmp_path: Path) -> None:
    path = _script(tmp_path, "50args", 'echo "$@"\n')

    status, stdout, _ = _run(path, RunPartsConfig(args=["start", "now"]))
    assert status == 0
    assert stdout == b"start now\n"


def test_report_prefix_precedes_stdout(tmp_path: Path) -> None:
    path = _script(tmp_path, "10foo", "echo hello\n")

    _, stdout, stderr = _run(path, RunPartsConfig(report=True))

    assert stdout == f"{path}:\n".encode() + b"hello\n"
    assert stderr == b""


def test_report_prefix_appears_once_across_streams(tmp_path: Path) -> None:
    path = _script(tmp_path, "10both", "echo out\necho err >&2\necho more\n")

    _, stdout, stderr = _run(path, RunPartsConfig(report=True))

    prefix = f"{path}:\n".encode()
    assert (stdout + stderr).count(prefix) == 1
    assert stdout.replace(prefix, b"") == b"out\nmore\n"
    assert stderr.replace(prefix, b"") == b"err\n"


def test_drain_delivers_all_output_before_status(tmp_path: Path) -> None:
    path = _script(tmp_path, "60bulk", "head -c 300000 /dev/zero\n")

    status, stdout, _ = _run(path)

    assert status == 0
    assert len(stdout) == 300000


def test_without_drain_status_is_still_resolved(tmp_path: Path) -> None:
    path = _script(tmp_path, "70quick", "echo quick\nexit 5\n")

    status, _, _ = _run(path, RunPartsConfig(drain_output=False))
    assert status == 5


def test_missing_file_is_spawn_error(tmp_path: Path) -> None:
    with pytest.raises(SpawnError) as excinfo:
        _run(tmp_path / "missing")
    assert excinfo.value.path == tmp_path / "missing"


def test_non_executable_is_spawn_error(tmp_path: Path) -> None:
    path = tmp_path / "plain"
    path.write_text("#!/bin/sh\necho hi\n", encoding="utf-8")
    path.chmod(0o644)

    with pytest.raises(SpawnError, match="failed to exec"):
        _run(path)


def test_exec_format_error_is_spawn_error(tmp_path: Path) -> None:
    path = tmp_path / "garbage"
    path.write_bytes(b"\x00\x01\x02 not a program\n")
    path.chmod(0o755)

    with pytest.raises(SpawnError):
        _run(path)


def test_wait_failure_resolves_to_software_error(tmp_path: Path) -> None:
    path = _script(tmp_path, "80silent", "exit 0\n")

    def spawn_with_broken_wait(*args: Any, **kwargs: Any) -> subprocess.Popen:
        process = subprocess.Popen(*args, **kwargs)

        def broken_wait(timeout: float | None = None) -> int:
            _ = timeout
            raise ChildProcessError(10, "No child processes")

        process.wait = broken_wait  # type: ignore[method-assign]
        return process

    status, stdout, stderr = _run(path, spawn=spawn_with_broken_wait)

    assert status == EX_SOFTWARE
    assert stdout == b""
    assert stderr.startswith(b"Error: ")
    assert b"No child processes" in stderr
