from __future__ import annotations

import os
import re
import stat
from pathlib import Path

from runparts.execution.base import RunPartsError

STD_SUFFIX_TO_IGNORE = (
    "~",
    ",",
    ".disabled",
    ".cfsaved",
    ".rpmsave",
    ".rpmorig",
    ".rpmnew",
    ".swp",
    ",v",
)

LSBSYSINIT_SUFFIX_TO_IGNORE = (".dpkg-old", ".dpkg-dist", ".dpkg-new", ".dpkg-tmp")

LSBSYSINIT_PATTERNS = (
    re.compile(r"[a-z0-9]+"),  # LANANA-assigned LSB hierarchical
    re.compile(r"_?([a-z0-9_.]+-)+[a-z0-9]+"),  # LANANA-assigned LSB reserved
    re.compile(r"[a-zA-Z0-9_-]+"),  # Debian cron script namespace
)


def find_files(directory: Path, *, reverse: bool = False) -> list[Path]:
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        raise RunPartsError(f"failed to open directory {directory}: {exc.strerror or exc}") from exc
    entries.sort(key=lambda entry: os.fsencode(entry.name))
    if reverse:
        entries.reverse()
    return entries


def filter_filename(
    name: str,
    *,
    lsbsysinit: bool = False,
    regex: re.Pattern[str] | None = None,
) -> bool:
    if name.endswith(STD_SUFFIX_TO_IGNORE):
        return False
    if lsbsysinit:
        if name.endswith(LSBSYSINIT_SUFFIX_TO_IGNORE):
            return False
        if not any(pattern.fullmatch(name) for pattern in LSBSYSINIT_PATTERNS):
            return False
    if regex is not None and not regex.search(name):
        return False
    return True


def filter_file(
    path: Path,
    *,
    lsbsysinit: bool = False,
    regex: re.Pattern[str] | None = None,
) -> bool:
    if path.is_dir():
        return False
    return filter_filename(path.name, lsbsysinit=lsbsysinit, regex=regex)


def is_executable(path: Path) -> bool:
    try:
        mode = path.stat().st_mode
    except OSError:
        return False
    return stat.S_ISREG(mode) and bool(mode & 0o111)
