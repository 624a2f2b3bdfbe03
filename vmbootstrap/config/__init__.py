# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""Agent configuration and extension settings loading."""

from __future__ import annotations

from .agent_config import AgentConfig, build_agent_config
from .decryptor import Decryptor, CertificateDecryptor
from .loader import ConfigLoader, resolve_settings_file
from .models import PrivateSettings, ProvisioningConfig, PublicSettings

__all__ = [
    "AgentConfig",
    "build_agent_config",
    "ConfigLoader",
    "Decryptor",
    "CertificateDecryptor",
    "ProvisioningConfig",
    "PublicSettings",
    "PrivateSettings",
    "resolve_settings_file",
]
