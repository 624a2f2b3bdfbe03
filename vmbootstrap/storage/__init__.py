# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""Blob storage access signed with SharedKeyLite."""

from __future__ import annotations

from .blob_client import BlobClient, normalize_blob_path
from .exceptions import BlobTransferError, InvalidKey, LogUploadError, SigningError, StorageError
from .models import SigningRequest, StorageCredential
from .signer import RequestSigner

__all__ = [
    "BlobClient",
    "RequestSigner",
    "SigningRequest",
    "StorageCredential",
    "StorageError",
    "SigningError",
    "InvalidKey",
    "BlobTransferError",
    "LogUploadError",
    "normalize_blob_path",
]
