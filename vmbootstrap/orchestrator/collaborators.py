# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/orchestrator/collaborators.py
"""
Hand-off points to components that live outside this agent: the
deployment-completion step that later writes the sentinel blob, and the guide
application installer.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from ..core.file_ops import write_json_atomic
from ..storage.models import StorageCredential

LOG = logging.getLogger(__name__)

SENTINEL_FILE_NAME = "sentinel.json"
GUIDE_FILE_NAME = "guide.json"


class SentinelConfigWriter:
    """
    Persists what the deployment-completion step needs to write the sentinel
    blob. This agent never writes the sentinel itself.
    """

    def __init__(self, scratch_dir: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.scratch_dir = Path(scratch_dir)
        self.logger = logger or LOG

    @property
    def path(self) -> Path:
        return self.scratch_dir / SENTINEL_FILE_NAME

    def write(self, credential: StorageCredential, sentinel_name: str) -> Path:
        payload = {
            "PrimaryStorageAccountName": credential.account_name,
            "PrimaryStorageAccountKey": credential.account_key,
            "ScriptSentinelFileName": sentinel_name,
        }
        write_json_atomic(self.path, payload)
        self.logger.info("Sentinel config written to %s (sentinel=%s)", self.path, sentinel_name)
        return self.path


class GuideInstaller(Protocol):
    def install(self, settings: Dict[str, str]) -> None:
        """Receives {"StorageAccountName", "StorageAccountKey"}."""
        ...


class JsonGuideInstaller:
    """
    Default guide collaborator: leaves the startup configuration for the
    guide application in the scratch directory, where its installer reads it.
    """

    def __init__(self, scratch_dir: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.scratch_dir = Path(scratch_dir)
        self.logger = logger or LOG

    @property
    def path(self) -> Path:
        return self.scratch_dir / GUIDE_FILE_NAME

    def install(self, settings: Dict[str, str]) -> None:
        write_json_atomic(self.path, dict(settings))
        self.logger.info("Guide startup config written to %s", self.path)


def guide_settings(credential: StorageCredential) -> Dict[str, str]:
    return {
        "StorageAccountName": credential.account_name,
        "StorageAccountKey": credential.account_key,
    }
