# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/orchestrator/lock.py

from __future__ import annotations

from pathlib import Path
from typing import Union

from ..core.file_ops import create_exclusive
from ..core.utils import U


class LockMarker:
    """
    "This script already ran on this host" marker.

    Keyed by SHA-256 (upper-case hex) of the script URI string, so the same
    URI serving new content is still considered done. Written once, never
    removed, survives reboots.
    """

    def __init__(self, lock_dir: Union[str, Path], script_uri: str):
        self.lock_dir = Path(lock_dir)
        self.script_uri = script_uri
        self.key = U.sha256_hex_upper(script_uri)

    @property
    def path(self) -> Path:
        return self.lock_dir / f"{self.key}.lock"

    def exists(self) -> bool:
        return self.path.exists()

    def create(self) -> bool:
        """
        Create the empty marker. Returns False if another invocation created
        it first.
        """
        return create_exclusive(self.path)

    def __repr__(self) -> str:
        return f"LockMarker(path={str(self.path)!r})"
