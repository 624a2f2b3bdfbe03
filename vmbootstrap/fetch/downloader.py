# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/fetch/downloader.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlsplit

import requests
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from ..core.exceptions import (
    DownloadError,
    wrap_download_error,
    wrap_download_exhausted,
)
from ..core.file_ops import atomic_write
from ..core.logger import Log, is_tty
from ..core.retry import RetryExhausted, RetryPolicy, retry_operation
from ..core.utils import U
from .dns import flush_dns_cache

LOG = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 30
DEFAULT_DELAY_S = 15.0
CHUNK_BYTES = 1024 * 1024


def default_retry_policy(logger: Optional[logging.Logger] = None) -> RetryPolicy:
    return RetryPolicy(
        attempts=DEFAULT_ATTEMPTS,
        delay_s=DEFAULT_DELAY_S,
        before_retry=lambda: flush_dns_cache(logger),
    )


def filename_from_uri(source_uri: str) -> str:
    """
    Last path segment of the URI, URL-decoded. Query strings (SAS tokens)
    and fragments are ignored.
    """
    path = urlsplit(source_uri).path
    name = unquote(path.rstrip("/").rsplit("/", 1)[-1]) if path else ""
    if not name or name in (".", ".."):
        raise wrap_download_error(f"Cannot derive a file name from URI: {source_uri}", uri=source_uri)
    return name


def _progress() -> Progress:
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        transient=True,
    )


class ResilientDownloader:
    """
    Fetch a URI to a local directory with a bounded, fixed-delay retry loop.

    Every failed attempt is logged as a warning; between attempts the policy
    sleeps and then flushes the DNS cache. When all attempts fail the last
    error is raised as DownloadExhausted.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        *,
        policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        timeout_s: Optional[float] = None,
        show_progress: Optional[bool] = None,
    ):
        self.logger = logger or LOG
        self.policy = policy or default_retry_policy(self.logger)
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.show_progress = is_tty() if show_progress is None else show_progress

    def _write_body(self, resp: requests.Response, tmp: Path, name: str, expected: Optional[int]) -> int:
        written = 0
        progress = _progress() if self.show_progress else None
        with open(tmp, "wb") as f:
            if progress is not None:
                progress.start()
                task = progress.add_task(name, total=expected)
            try:
                for chunk in resp.iter_content(chunk_size=CHUNK_BYTES):
                    if not chunk:
                        continue
                    f.write(chunk)
                    written += len(chunk)
                    if progress is not None:
                        progress.update(task, completed=written)
            finally:
                if progress is not None:
                    progress.stop()
        return written

    def _attempt(self, source_uri: str, dest: Path) -> Path:
        try:
            resp = self.session.get(source_uri, stream=True, timeout=self.timeout_s, allow_redirects=True)
            try:
                resp.raise_for_status()
                total = resp.headers.get("Content-Length")
                expected = int(total) if total and total.isdigit() else None

                with atomic_write(dest) as tmp:
                    written = self._write_body(resp, tmp, dest.name, expected)
                    if expected is not None and written != expected:
                        raise wrap_download_error(
                            f"Size mismatch: expected {expected}, got {written}",
                            uri=source_uri,
                        )
            finally:
                resp.close()
        except requests.RequestException as e:
            raise wrap_download_error(f"Download of {source_uri} failed: {e}", e, uri=source_uri) from e
        except OSError as e:
            raise wrap_download_error(f"Writing {dest} failed: {e}", e, uri=source_uri) from e

        self.logger.debug("Downloaded %s -> %s (%d bytes)", source_uri, dest, written)
        return dest

    def fetch(self, target_dir: Union[str, Path], source_uri: str) -> Path:
        """
        Download `source_uri` into `target_dir` and return the local path.

        Raises:
            DownloadError: the URI has no usable file name
            DownloadExhausted: every attempt failed
        """
        target_dir = Path(target_dir)
        U.ensure_dir(target_dir)
        dest = target_dir / filename_from_uri(source_uri)

        try:
            return retry_operation(
                lambda: self._attempt(source_uri, dest),
                policy=self.policy,
                exceptions=DownloadError,
                operation_name=f"Download {dest.name}",
                logger=Log.bind(self.logger, file=dest.name),
            )
        except RetryExhausted as e:
            raise wrap_download_exhausted(
                f"Giving up on {source_uri} after {e.attempts} attempts: {e.last_exception}",
                e.last_exception,
                uri=source_uri,
                attempts=e.attempts,
            ) from e.last_exception
