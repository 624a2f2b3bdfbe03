# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/storage/exceptions.py

from __future__ import annotations

from typing import Any, Optional

from ..core.exceptions import VmBootstrapError


class StorageError(VmBootstrapError):
    """
    Base exception for blob storage operations.

    Inherits exit codes, context tracking, cause chaining and secret
    redaction from VmBootstrapError.
    """
    pass


class SigningError(StorageError):
    """
    A request could not be signed (missing required header, header name
    collision after lower-casing).
    """
    pass


class InvalidKey(SigningError):
    """
    The storage account key is not valid base64.
    """
    pass


class BlobTransferError(StorageError):
    """
    A PUT/GET against the storage endpoint failed: transport error or
    non-2xx response. Never retried at this layer.
    """
    pass


class LogUploadError(BlobTransferError):
    """
    Uploading one log artifact failed. Non-fatal: logged and skipped.
    """
    pass


def wrap_signing_error(msg: str, exc: Optional[BaseException] = None, code: int = 41, **context: Any) -> SigningError:
    return SigningError(code=code, msg=msg, cause=exc, context=context or None)


def wrap_invalid_key(msg: str, exc: Optional[BaseException] = None, code: int = 42, **context: Any) -> InvalidKey:
    return InvalidKey(code=code, msg=msg, cause=exc, context=context or None)


def wrap_transfer_error(msg: str, exc: Optional[BaseException] = None, code: int = 43, **context: Any) -> BlobTransferError:
    return BlobTransferError(code=code, msg=msg, cause=exc, context=context or None)


def wrap_log_upload_error(msg: str, exc: Optional[BaseException] = None, code: int = 44, **context: Any) -> LogUploadError:
    return LogUploadError(code=code, msg=msg, cause=exc, context=context or None)
