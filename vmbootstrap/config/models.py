# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/config/models.py

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from ..storage.models import StorageCredential

# publicSettings keys understood by the orchestrator; everything else is kept in `extra`.
SCRIPT_URI_KEYS = ("scriptFileUri", "fileUri", "scriptUri")
DEPENDENCY_KEYS = ("dependencyFileUris", "dependencyUris", "fileUris")
INSTALL_GUIDE_KEY = "installGuide"
SENTINEL_KEY = "scriptSentinelFileName"
ARGUMENTS_KEY = "scriptArguments"
STORAGE_NAME_KEY = "storageAccountName"
STORAGE_KEY_KEY = "storageAccountKey"


def _split_uris(value: Any) -> Tuple[str, ...]:
    # A single string is ";"-separated; commas are legal inside SAS query strings.
    if value is None:
        return ()
    if isinstance(value, str):
        parts = value.split(";")
    else:
        parts = [str(v) for v in value]
    return tuple(p.strip() for p in parts)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _first(raw: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for k in keys:
        if k in raw:
            return raw[k]
    return None


@dataclass(frozen=True)
class PublicSettings:
    script_uri: str
    dependency_uris: Tuple[str, ...] = ()
    install_guide: bool = False
    sentinel_blob_name: Optional[str] = None
    script_arguments: Tuple[str, ...] = ()
    storage_account_name: Optional[str] = None
    storage_account_key: Optional[str] = field(default=None, repr=False)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PublicSettings":
        """
        Build from the verbatim publicSettings object. Raises ValueError when
        no script URI is present.
        """
        script_uri = _first(raw, SCRIPT_URI_KEYS)
        if not isinstance(script_uri, str) or not script_uri.strip():
            raise ValueError(f"publicSettings must contain one of {', '.join(SCRIPT_URI_KEYS)}")

        args = raw.get(ARGUMENTS_KEY) or ()
        if isinstance(args, str):
            args = shlex.split(args)

        known = set(SCRIPT_URI_KEYS + DEPENDENCY_KEYS + (INSTALL_GUIDE_KEY, SENTINEL_KEY, ARGUMENTS_KEY, STORAGE_NAME_KEY, STORAGE_KEY_KEY))
        sentinel = raw.get(SENTINEL_KEY)
        return cls(
            script_uri=script_uri.strip(),
            dependency_uris=_split_uris(_first(raw, DEPENDENCY_KEYS)),
            install_guide=_truthy(raw.get(INSTALL_GUIDE_KEY, False)),
            sentinel_blob_name=str(sentinel).strip() if sentinel else None,
            script_arguments=tuple(str(a) for a in args),
            storage_account_name=raw.get(STORAGE_NAME_KEY) or None,
            storage_account_key=raw.get(STORAGE_KEY_KEY) or None,
            extra={k: v for k, v in raw.items() if k not in known},
        )


@dataclass(frozen=True)
class PrivateSettings:
    storage_account_name: Optional[str] = None
    storage_account_key: Optional[str] = field(default=None, repr=False)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PrivateSettings":
        return cls(
            storage_account_name=raw.get(STORAGE_NAME_KEY) or None,
            storage_account_key=raw.get(STORAGE_KEY_KEY) or None,
            extra={k: v for k, v in raw.items() if k not in (STORAGE_NAME_KEY, STORAGE_KEY_KEY)},
        )


@dataclass(frozen=True)
class ProvisioningConfig:
    public: PublicSettings
    private: Optional[PrivateSettings] = None

    @property
    def credential(self) -> Optional[StorageCredential]:
        """
        Storage credential for log upload, sentinel and guide config. Name and
        key may each come from either settings block; protected wins.
        """
        private = self.private or PrivateSettings()
        name = private.storage_account_name or self.public.storage_account_name
        key = private.storage_account_key or self.public.storage_account_key
        if not name or not key:
            return None
        return StorageCredential(account_name=name, account_key=key)
