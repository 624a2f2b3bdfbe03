# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""Resilient downloads of provisioning scripts and their dependencies."""

from __future__ import annotations

from .dns import flush_dns_cache
from .downloader import ResilientDownloader, default_retry_policy, filename_from_uri

__all__ = ["ResilientDownloader", "default_retry_policy", "filename_from_uri", "flush_dns_cache"]
