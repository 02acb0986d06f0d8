from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from runparts.execution.base import ConfigError

DEFAULT_UMASK = "022"


@dataclass(slots=True)
class RunPartsConfig:
    args: list[str] = field(default_factory=list)
    report: bool = False
    verbose: bool = False
    test: bool = False
    list_only: bool = False
    reverse: bool = False
    exit_on_error: bool = False
    umask: str = DEFAULT_UMASK
    lsbsysinit: bool = False
    regex: str | None = None
    drain_output: bool = True

    @classmethod
    def default(cls) -> RunPartsConfig:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> RunPartsConfig:
        run = dict(data.get("run", {}))
        unknown = sorted(set(run) - set(cls.__slots__))
        if unknown:
            raise ConfigError(f"Unknown [run] option(s): {', '.join(unknown)}")
        if "args" in run:
            run["args"] = [str(item) for item in run["args"]]
        if "umask" in run:
            run["umask"] = str(run["umask"])
        return cls(**run)

    def merge_cli(
        self,
        *,
        args: tuple[str, ...] = (),
        report: bool = False,
        verbose: bool = False,
        test: bool = False,
        list_only: bool = False,
        reverse: bool = False,
        exit_on_error: bool = False,
        umask: str | None = None,
        lsbsysinit: bool = False,
        regex: str | None = None,
        no_drain: bool = False,
    ) -> RunPartsConfig:
        """Layer command-line values on top of file values.

        Flags can only switch options on; ``args`` are appended.
        """
        return RunPartsConfig(
            args=[*self.args, *args],
            report=self.report or report,
            verbose=self.verbose or verbose,
            test=self.test or test,
            list_only=self.list_only or list_only,
            reverse=self.reverse or reverse,
            exit_on_error=self.exit_on_error or exit_on_error,
            umask=umask if umask is not None else self.umask,
            lsbsysinit=self.lsbsysinit or lsbsysinit,
            regex=regex if regex is not None else self.regex,
            drain_output=self.drain_output and not no_drain,
        )


def load_config(path: Path) -> RunPartsConfig:
    if not path.exists():
        return RunPartsConfig.default()
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc
    try:
        return RunPartsConfig.from_dict(data)
    except TypeError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc
