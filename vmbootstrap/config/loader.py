# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/config/loader.py

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..core.exceptions import DecryptionError, wrap_config_error, wrap_decryption_error
from .decryptor import Decryptor
from .models import PrivateSettings, ProvisioningConfig, PublicSettings

LOG = logging.getLogger(__name__)

_SEQ_SETTINGS_RE = re.compile(r"^(\d+)\.settings$")


def resolve_settings_file(path: Union[str, Path]) -> Path:
    """
    A file is used as-is. For a directory, the highest-numbered
    ``<N>.settings`` file in it is used (the host bumps N on every update).
    """
    p = Path(path)
    if not p.is_dir():
        return p

    numbered = []
    for child in p.iterdir():
        m = _SEQ_SETTINGS_RE.match(child.name)
        if m and child.is_file():
            numbered.append((int(m.group(1)), child))
    if not numbered:
        raise wrap_config_error(f"No <N>.settings file in {p}", settings_dir=str(p))
    return max(numbered)[1]


class ConfigLoader:
    """
    Loads the extension settings file into a ProvisioningConfig.

    publicSettings is taken verbatim. protectedSettings, when present, is a
    base64 enveloped-encryption payload; it is decrypted with the injected
    Decryptor for the certificate named by protectedSettingsCertThumbprint
    and parsed as JSON.
    """

    def __init__(
        self,
        settings_file: Union[str, Path],
        decryptor: Optional[Decryptor] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings_file = Path(settings_file)
        self.decryptor = decryptor
        self.logger = logger or LOG

    def _read_handler_settings(self) -> Dict[str, Any]:
        path = resolve_settings_file(self.settings_file)
        try:
            raw = json.loads(path.read_text(encoding="utf-8-sig"))
        except FileNotFoundError as e:
            raise wrap_config_error(f"Settings file not found: {path}", e, path=str(path)) from e
        except OSError as e:
            raise wrap_config_error(f"Cannot read settings file {path}: {e}", e, path=str(path)) from e
        except json.JSONDecodeError as e:
            raise wrap_config_error(f"Settings file {path} is not valid JSON: {e}", e, path=str(path)) from e

        try:
            handler = raw["runtimeSettings"][0]["handlerSettings"]
        except (KeyError, IndexError, TypeError) as e:
            raise wrap_config_error(
                f"Settings file {path} has no runtimeSettings[0].handlerSettings",
                e,
                path=str(path),
            ) from e
        if not isinstance(handler, dict):
            raise wrap_config_error(f"handlerSettings in {path} is not an object", path=str(path))
        return handler

    def _decrypt_private(self, handler: Dict[str, Any]) -> Dict[str, Any]:
        thumbprint = handler.get("protectedSettingsCertThumbprint")
        if not thumbprint:
            raise wrap_decryption_error("protectedSettings present but protectedSettingsCertThumbprint is missing")
        if self.decryptor is None:
            raise wrap_decryption_error("protectedSettings present but no decryptor is configured")

        try:
            ciphertext = base64.b64decode(handler["protectedSettings"], validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise wrap_decryption_error("protectedSettings is not valid base64", e) from e

        plaintext = self.decryptor.decrypt(ciphertext, str(thumbprint))
        try:
            private = json.loads(plaintext.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise wrap_decryption_error("Decrypted protectedSettings is not JSON", e) from e
        if not isinstance(private, dict):
            raise wrap_decryption_error("Decrypted protectedSettings is not a JSON object")
        return private

    def load(self) -> ProvisioningConfig:
        """
        Raises:
            ConfigLoadError: missing/unreadable/malformed settings
            DecryptionError: protected settings present but not decryptable
        """
        handler = self._read_handler_settings()

        public_raw = handler.get("publicSettings") or {}
        if not isinstance(public_raw, dict):
            raise wrap_config_error("publicSettings is not a JSON object")
        try:
            public = PublicSettings.from_mapping(public_raw)
        except ValueError as e:
            raise wrap_config_error(str(e), e) from e

        private: Optional[PrivateSettings] = None
        if handler.get("protectedSettings"):
            try:
                private = PrivateSettings.from_mapping(self._decrypt_private(handler))
            except DecryptionError:
                raise
            except Exception as e:
                raise wrap_decryption_error(f"Decrypting protectedSettings failed: {e}", e) from e

        self.logger.debug(
            "Loaded settings: script=%s dependencies=%d protected=%s",
            public.script_uri,
            len(public.dependency_uris),
            private is not None,
        )
        return ProvisioningConfig(public=public, private=private)
