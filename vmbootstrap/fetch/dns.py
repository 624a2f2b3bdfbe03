# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/fetch/dns.py

from __future__ import annotations

import logging
import subprocess
from typing import List, Optional

from ..core.utils import U

LOG = logging.getLogger(__name__)


def _flush_commands() -> List[List[str]]:
    if U.is_windows():
        return [["ipconfig", "/flushdns"]]
    # First one present wins: systemd-resolved (new and old CLI), nscd.
    return [
        ["resolvectl", "flush-caches"],
        ["systemd-resolve", "--flush-caches"],
        ["nscd", "--invalidate=hosts"],
    ]


def flush_dns_cache(logger: Optional[logging.Logger] = None) -> bool:
    """
    Flush the local resolver cache before another download attempt.

    Hosts without a caching resolver have nothing to flush; that and any
    failure of the flush itself only get logged, the next download attempt
    goes ahead regardless. Returns True if a flush command succeeded.
    """
    logger = logger or LOG
    for cmd in _flush_commands():
        if U.which(cmd[0]) is None:
            continue
        try:
            U.run_cmd(logger, cmd, capture=True, timeout=30)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.debug("DNS cache flush via %s failed: %s", cmd[0], e)
            continue
        logger.debug("DNS cache flushed via %s", cmd[0])
        return True
    logger.debug("No DNS cache flush tool available")
    return False
