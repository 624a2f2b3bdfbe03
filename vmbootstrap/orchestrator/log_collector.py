# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/orchestrator/log_collector.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from ..core.logger import Log
from ..storage.blob_client import BlobClient
from ..storage.exceptions import StorageError, wrap_log_upload_error
from ..storage.models import StorageCredential

LOG = logging.getLogger(__name__)

_MULTI_SLASH_RE = re.compile(r"/{2,}")


def log_blob_path(log_file: Union[str, Path], work_dir: Union[str, Path], prefix: str = "assets/logs") -> str:
    r"""
    Blob path for a log file: ``<prefix>/<path relative to work_dir>``.

    Works on the string form so Windows paths behave the same on any host:
    backslashes become forward slashes and runs of separators collapse.

        log_blob_path(r"C:\logs\\x.log", r"C:\logs") -> "assets/logs/x.log"
    """
    full = str(log_file)
    base = str(work_dir)
    if base and full.lower().startswith(base.lower()):
        rel = full[len(base):]
    else:
        rel = full
    joined = f"{prefix}/{rel}".replace("\\", "/")
    return _MULTI_SLASH_RE.sub("/", joined)


def find_log_files(work_dir: Union[str, Path], pattern: str = "*.log") -> List[Path]:
    root = Path(work_dir)
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob(pattern) if p.is_file())


@dataclass
class UploadReport:
    uploaded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class LogCollector:
    """
    Upload every log file under the working directory. A failure on one file
    is logged as a warning and the rest still go up.
    """

    def __init__(
        self,
        blob_client: BlobClient,
        *,
        prefix: str = "assets/logs",
        pattern: str = "*.log",
        logger: Optional[logging.Logger] = None,
    ):
        self.blob_client = blob_client
        self.prefix = prefix
        self.pattern = pattern
        self.logger = logger or LOG

    def upload_all(self, credential: StorageCredential, work_dir: Union[str, Path]) -> UploadReport:
        report = UploadReport()
        files = find_log_files(work_dir, self.pattern)
        self.logger.info("Uploading %d log file(s) from %s", len(files), work_dir)

        for f in files:
            blob = log_blob_path(f, work_dir, self.prefix)
            try:
                self.blob_client.upload(credential, blob, f)
            except (StorageError, OSError) as e:
                err = wrap_log_upload_error(f"Log upload failed for {f.name}: {e}", e, file=str(f), blob=blob)
                Log.warn(self.logger, err.user_message(include_context=True))
                report.failed.append(blob)
                continue
            report.uploaded.append(blob)

        return report
