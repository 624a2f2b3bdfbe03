# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/storage/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

DATE_HEADER = "x-ms-date"
VERSION_HEADER = "x-ms-version"
BLOB_TYPE_HEADER = "x-ms-blob-type"

API_VERSION = "2015-02-21"
BLOB_TYPE = "BlockBlob"
AUTH_SCHEME = "SharedKeyLite"
DEFAULT_STORAGE_DOMAIN = "blob.core.windows.net"


@dataclass(frozen=True)
class StorageCredential:
    account_name: str
    account_key: str = field(repr=False)

    def __repr__(self) -> str:
        return f"StorageCredential(account_name={self.account_name!r}, account_key=<redacted>)"


@dataclass(frozen=True)
class SigningRequest:
    method: str
    target_uri: str
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for k, v in self.headers.items():
            if k.lower() == wanted:
                return v
        return None
