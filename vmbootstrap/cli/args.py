# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/cli/args.py
from __future__ import annotations

import argparse
from typing import Any, Dict, Optional, Sequence, Tuple

from ..config.agent_config import AgentConfig, build_agent_config
from ..core.logger import c


class HelpFormatter(argparse.ArgumentDefaultsHelpFormatter, argparse.RawDescriptionHelpFormatter):
    pass


_EPILOG = """\
examples:
  vmbootstrap
  vmbootstrap --config /etc/vmbootstrap.yaml -vv
  vmbootstrap --settings-file ./0.settings --work-dir ./work --lock-dir ./locks --attempts 3 --retry-delay 0
"""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vmbootstrap",
        description=c("vmbootstrap: run a provisioning script once per host and ship its logs", "green", ["bold"]),
        formatter_class=HelpFormatter,
        epilog=_EPILOG,
    )

    g = p.add_argument_group("Config / logging")
    g.add_argument("--config", action="append", default=[], help="YAML agent config (repeatable; later files win).")
    g.add_argument("-v", "--verbose", action="count", default=0, help="-vv debug, -vvv trace.")
    g.add_argument("-q", "--quiet", action="count", default=0, help="-q warnings only, -qq errors only.")
    g.add_argument("--log-file", dest="log_file", default=None, help="Transcript path (default: <work-dir>/vmbootstrap.log).")
    g.add_argument("--json-logs", action="store_true", help="NDJSON logs.")
    g.add_argument("--no-color", action="store_true", help="Disable colored console output.")
    g.add_argument("--dump-config", action="store_true", help="Print the effective agent config and exit.")

    g = p.add_argument_group("Paths")
    g.add_argument("--settings-file", dest="settings_file", default=None, help="Extension settings file, or directory of <N>.settings files.")
    g.add_argument("--work-dir", dest="work_dir", default=None, help="Download/execution directory; its *.log files are uploaded.")
    g.add_argument("--lock-dir", dest="lock_dir", default=None, help="Directory holding run-once lock markers.")
    g.add_argument("--scratch-dir", dest="scratch_dir", default=None, help="Directory for sentinel/guide hand-off files.")
    g.add_argument("--cert-dir", dest="cert_dir", default=None, help="Directory with <THUMBPRINT>.crt/.prv files.")

    g = p.add_argument_group("Network")
    g.add_argument("--storage-domain", dest="storage_domain", default=None, help="Blob endpoint domain.")
    g.add_argument("--attempts", dest="download_attempts", type=int, default=None, help="Download attempts per URI.")
    g.add_argument("--retry-delay", dest="retry_delay_s", type=float, default=None, help="Seconds between download attempts.")
    g.add_argument("--no-dns-flush", dest="flush_dns", action="store_const", const=False, default=None, help="Do not flush the DNS cache between attempts.")
    g.add_argument("--http-timeout", dest="http_timeout_s", type=float, default=None, help="Per-request timeout in seconds (default: none).")
    g.add_argument("--script-timeout", dest="script_timeout_s", type=float, default=None, help="Kill the provisioning script after this many seconds (default: none).")

    return p


_OVERRIDE_KEYS = (
    "settings_file",
    "work_dir",
    "lock_dir",
    "scratch_dir",
    "cert_dir",
    "storage_domain",
    "download_attempts",
    "retry_delay_s",
    "flush_dns",
    "http_timeout_s",
    "script_timeout_s",
)


def parse_args(argv: Optional[Sequence[str]] = None) -> Tuple[argparse.Namespace, AgentConfig]:
    """
    Parse CLI flags and build the effective AgentConfig
    (defaults <- --config YAML files <- CLI flags).
    """
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    overrides: Dict[str, Any] = {k: getattr(args, k) for k in _OVERRIDE_KEYS}
    config = build_agent_config(args.config, overrides)
    return args, config
