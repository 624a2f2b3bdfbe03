# SPDX-License-Identifier: LGPL-3.0-or-later
# vmbootstrap/core/__init__.py
from .exceptions import (
    ConfigLoadError,
    DecryptionError,
    DownloadError,
    DownloadExhausted,
    Fatal,
    ScriptExecutionError,
    VmBootstrapError,
)
from .retry import RetryExhausted, RetryPolicy, retry_operation

__all__ = [
    "VmBootstrapError",
    "Fatal",
    "ConfigLoadError",
    "DecryptionError",
    "DownloadError",
    "DownloadExhausted",
    "ScriptExecutionError",
    "RetryPolicy",
    "RetryExhausted",
    "retry_operation",
]
