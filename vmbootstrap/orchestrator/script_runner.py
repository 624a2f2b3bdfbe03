# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/orchestrator/script_runner.py

from __future__ import annotations

import logging
import os
import stat
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.exceptions import wrap_script_error
from ..core.utils import U

LOG = logging.getLogger(__name__)


def interpreter_for(script: Path, *, windows: Optional[bool] = None) -> List[str]:
    """
    Command prefix that runs `script` in a fresh interpreter process.
    An empty list means the script is executed directly.
    """
    windows = U.is_windows() if windows is None else windows
    suffix = script.suffix.lower()
    if suffix == ".ps1":
        shell = "powershell.exe" if windows else "pwsh"
        return [shell, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-File"]
    if suffix == ".py":
        return [sys.executable]
    if suffix == ".sh":
        return ["bash"]
    if suffix in (".cmd", ".bat"):
        return ["cmd.exe", "/c"]
    return []


class ScriptRunner:
    def __init__(self, logger: Optional[logging.Logger] = None, *, timeout_s: Optional[float] = None):
        self.logger = logger or LOG
        self.timeout_s = timeout_s

    def command_for(self, script: Path, args: Sequence[str] = ()) -> List[str]:
        prefix = interpreter_for(script)
        if not prefix:
            mode = script.stat().st_mode
            os.chmod(script, mode | stat.S_IXUSR | stat.S_IXGRP)
        return prefix + [str(script)] + list(args)

    def run(self, script: Union[str, Path], args: Sequence[str] = (), cwd: Optional[Union[str, Path]] = None) -> int:
        """
        Run the script to completion, streaming its output into the log.

        Raises:
            ScriptExecutionError: non-zero exit, timeout, or the interpreter
                could not be started
        """
        script = Path(script)
        cmd = self.command_for(script, args)
        try:
            cp = U.run_cmd(self.logger, cmd, cwd=cwd or script.parent, stream=True, timeout=self.timeout_s)
        except subprocess.CalledProcessError as e:
            raise wrap_script_error(
                f"Script {script.name} exited with code {e.returncode}",
                e,
                script=str(script),
                exit_code=e.returncode,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise wrap_script_error(f"Script {script.name} timed out", e, script=str(script)) from e
        except OSError as e:
            raise wrap_script_error(f"Cannot start {cmd[0]}: {e}", e, script=str(script)) from e
        return cp.returncode
