# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/__main__.py
from __future__ import annotations

import sys
import traceback
from typing import Optional, Sequence

from .cli.args import parse_args
from .core.exceptions import VmBootstrapError, format_exception_for_cli
from .core.logger import Log
from .core.utils import U
from .orchestrator.orchestrator import ProvisioningOrchestrator


def _print_stderr(msg: str) -> None:
    print(msg, file=sys.stderr)


def run(argv: Optional[Sequence[str]] = None) -> int:
    # Phase 1: config (no logger yet, so errors go straight to stderr)
    try:
        args, config = parse_args(argv)
    except VmBootstrapError as e:
        _print_stderr(f"💥 ERROR    {e}")
        return e.code

    if args.dump_config:
        print(U.json_dump(config.to_dict()))
        return 0

    log_file = args.log_file or config.transcript_path
    logger = Log.setup(
        args.verbose,
        log_file,
        quiet=args.quiet,
        color=not args.no_color,
        json_logs=args.json_logs,
    )

    # Phase 2: provision
    try:
        result = ProvisioningOrchestrator(logger, config).run()
    except VmBootstrapError as e:
        logger.error(format_exception_for_cli(e, verbose=args.verbose))
        return e.code
    except KeyboardInterrupt:
        logger.warning("Interrupted by user (Ctrl+C).")
        return 130
    except Exception as e:
        logger.error("💥 UNHANDLED %s: %s", type(e).__name__, e)
        logger.debug(traceback.format_exc())
        return 1

    logger.info("Finished: %s", result.state.value)
    return 0


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
