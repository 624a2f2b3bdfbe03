# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/__init__.py
"""
vmbootstrap - run-once VM provisioning agent

Loads the host-supplied extension settings, downloads the provisioning
script and its dependencies, runs the script at most once per host, and
uploads the run's logs to blob storage signed with SharedKeyLite.

Usage as a library:

    from vmbootstrap import AgentConfig, ProvisioningOrchestrator
    from vmbootstrap.core.logger import Log

    logger = Log.setup(verbose=1)
    config = AgentConfig(settings_file="/var/lib/waagent/vmbootstrap/config")
    result = ProvisioningOrchestrator(logger, config).run()
"""

__version__ = "0.1.0"

from .config import AgentConfig, ConfigLoader, ProvisioningConfig
from .fetch import ResilientDownloader
from .orchestrator import ProvisioningOrchestrator, RunResult, RunState
from .storage import BlobClient, RequestSigner, StorageCredential

__all__ = [
    "__version__",
    "ProvisioningOrchestrator",
    "RunResult",
    "RunState",
    "AgentConfig",
    "ConfigLoader",
    "ProvisioningConfig",
    "ResilientDownloader",
    "BlobClient",
    "RequestSigner",
    "StorageCredential",
]
