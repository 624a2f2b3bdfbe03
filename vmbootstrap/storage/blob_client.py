# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/storage/blob_client.py
"""
Single-blob PUT/GET against the storage REST endpoint.

One request per call and no retries: a transient failure is the caller's
problem (the log uploader just skips that file).
"""

from __future__ import annotations

import logging
from email.utils import formatdate
from pathlib import Path
from typing import Callable, Dict, Optional, Union
from urllib.parse import quote

import requests

from ..core.file_ops import atomic_write
from .exceptions import wrap_transfer_error
from .models import (
    API_VERSION,
    BLOB_TYPE,
    BLOB_TYPE_HEADER,
    DATE_HEADER,
    DEFAULT_STORAGE_DOMAIN,
    VERSION_HEADER,
    StorageCredential,
)
from .signer import RequestSigner

LOG = logging.getLogger(__name__)

Source = Union[bytes, str, Path]


def rfc1123_now() -> str:
    return formatdate(usegmt=True)


def normalize_blob_path(blob_path: str) -> str:
    """Strip a single leading separator: "/a/b.txt" -> "a/b.txt"."""
    if blob_path[:1] in ("/", "\\"):
        return blob_path[1:]
    return blob_path


class BlobClient:
    def __init__(
        self,
        *,
        storage_domain: str = DEFAULT_STORAGE_DOMAIN,
        session: Optional[requests.Session] = None,
        timeout_s: Optional[float] = None,
        clock: Callable[[], str] = rfc1123_now,
        logger: Optional[logging.Logger] = None,
    ):
        self.storage_domain = storage_domain
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.clock = clock
        self.logger = logger or LOG

    def blob_url(self, credential: StorageCredential, blob_path: str) -> str:
        path = quote(normalize_blob_path(blob_path), safe="/")
        return f"https://{credential.account_name}.{self.storage_domain}/{path}"

    def _headers(self, credential: StorageCredential, method: str, url: str) -> Dict[str, str]:
        headers = {
            VERSION_HEADER: API_VERSION,
            DATE_HEADER: self.clock(),
        }
        if method == "PUT":
            headers[BLOB_TYPE_HEADER] = BLOB_TYPE
        headers["Authorization"] = RequestSigner.sign(credential, method, url, headers)
        return headers

    def _send(self, credential: StorageCredential, method: str, blob_path: str, data: Optional[bytes] = None) -> requests.Response:
        url = self.blob_url(credential, blob_path)
        headers = self._headers(credential, method, url)
        self.logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(method, url, headers=headers, data=data, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise wrap_transfer_error(f"{method} {blob_path} failed: {e}", e, blob=blob_path, method=method) from e

        if not 200 <= resp.status_code < 300:
            raise wrap_transfer_error(
                f"{method} {blob_path} returned HTTP {resp.status_code}",
                blob=blob_path,
                method=method,
                status=resp.status_code,
                body=(resp.text or "")[:300],
            )
        return resp

    def upload(self, credential: StorageCredential, blob_path: str, source: Source) -> None:
        """
        PUT `source` (raw bytes, or a local file path) as a block blob.

        Raises:
            BlobTransferError: transport failure or non-2xx response
            OSError: the source file cannot be read
        """
        data = source if isinstance(source, bytes) else Path(source).read_bytes()
        self._send(credential, "PUT", blob_path, data=data)
        self.logger.debug("Uploaded %d bytes to %s", len(data), normalize_blob_path(blob_path))

    def download(
        self,
        credential: StorageCredential,
        blob_path: str,
        output_file: Optional[Union[str, Path]] = None,
    ) -> Union[bytes, Path]:
        """
        GET a blob. Returns its bytes, or the written path when `output_file`
        is given (written atomically).
        """
        resp = self._send(credential, "GET", blob_path)
        body = resp.content
        if output_file is None:
            return body

        out = Path(output_file)
        with atomic_write(out) as tmp:
            tmp.write_bytes(body)
        return out
