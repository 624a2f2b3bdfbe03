# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/core/file_ops.py
"""
Atomic file operation utilities.

Downloads, sentinel/guide configuration files and lock markers must never be
observed half-written after a crash or reboot, so all writers go through here.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional


@contextmanager
def atomic_write(
    target_path: Path,
    *,
    suffix: str = ".part",
    dir: Optional[Path] = None,
) -> Generator[Path, None, None]:
    """
    Context manager for atomic file writes using temporary file + rename.

    Creates a temporary file, yields its path for writing, then atomically
    renames it to the target path on success. Removes the temp file on failure.

    Example:
        with atomic_write(Path("/var/lib/vmbootstrap/work/install.ps1")) as tmp:
            tmp.write_bytes(data)
    """
    target_path = Path(target_path)
    temp_dir = Path(dir) if dir else target_path.parent
    temp_dir.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(
        suffix=suffix,
        prefix=f".{target_path.name}.",
        dir=str(temp_dir),
    )
    temp_path = Path(temp_name)

    try:
        os.close(fd)  # caller opens temp_path itself
        yield temp_path
        os.replace(temp_path, target_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def write_json_atomic(path: Path, obj: Any) -> Path:
    """Serialize `obj` as JSON to `path` atomically; returns `path`."""
    path = Path(path)
    with atomic_write(path, suffix=".tmp") as tmp:
        tmp.write_text(json.dumps(obj, indent=2), encoding="utf-8")
    return path


def create_exclusive(path: Path) -> bool:
    """
    Create an empty file only if it does not exist yet.

    Returns True if this call created it, False if it was already there.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "x", encoding="utf-8"):
            pass
    except FileExistsError:
        return False
    return True
