"""Filesystem helpers: size query, verbatim copy, parent creation."""

from __future__ import annotations

import shutil
from pathlib import Path


def file_size(path: Path) -> int:
    return Path(path).stat().st_size


def copy_file(src: Path, dst: Path) -> None:
    """Copy src to dst byte for byte. OSError propagates unchanged."""

    shutil.copyfile(src, dst)


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
