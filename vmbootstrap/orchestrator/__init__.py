# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/orchestrator/__init__.py
"""
Orchestrator package.

The provisioning state machine and the pieces it drives directly: lock
marker, script runner, log upload and the external hand-offs.
"""

from .collaborators import GuideInstaller, JsonGuideInstaller, SentinelConfigWriter
from .lock import LockMarker
from .log_collector import LogCollector, UploadReport, find_log_files, log_blob_path
from .orchestrator import ProvisioningOrchestrator, RunResult, RunState
from .script_runner import ScriptRunner, interpreter_for

__all__ = [
    "ProvisioningOrchestrator",
    "RunResult",
    "RunState",
    "LockMarker",
    "LogCollector",
    "UploadReport",
    "find_log_files",
    "log_blob_path",
    "ScriptRunner",
    "interpreter_for",
    "SentinelConfigWriter",
    "GuideInstaller",
    "JsonGuideInstaller",
]
