# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/core/utils.py
from __future__ import annotations

import hashlib
import json
import logging
import os
import shlex
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

PathLike = Union[str, Path]


class U:
    """Small host helpers shared by the fetch, config and orchestrator packages."""

    @staticmethod
    def ensure_dir(p: PathLike) -> Path:
        p = Path(p)
        p.mkdir(parents=True, exist_ok=True)
        return p

    @staticmethod
    def which(prog: str) -> Optional[str]:
        return shutil.which(prog)

    @staticmethod
    def is_windows() -> bool:
        return os.name == "nt"

    @staticmethod
    def sha256_hex_upper(text: str) -> str:
        """Lock marker key: SHA-256 of the UTF-8 text as 64 upper-case hex digits."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest().upper()

    @staticmethod
    def json_dump(obj: Any) -> str:
        return json.dumps(obj, indent=2, sort_keys=True, default=str)

    @staticmethod
    def _pretty_cmd(cmd: List[str]) -> str:
        return " ".join(shlex.quote(str(x)) for x in cmd)

    @staticmethod
    def run_cmd(
        logger: logging.Logger,
        cmd: List[str],
        *,
        check: bool = True,
        capture: bool = False,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        cwd: Optional[PathLike] = None,
        stream: bool = False,
    ) -> subprocess.CompletedProcess:
        """
        Run a host command.

        capture=True collects stdout/stderr as text. stream=True merges them
        and logs every line at INFO as it arrives; provisioning script output
        reaches the transcript this way.

        Raises CalledProcessError (non-zero exit with check=True) or
        TimeoutExpired (the process is killed first). OSError from a missing
        executable propagates untouched.
        """
        pretty = U._pretty_cmd(cmd)
        logger.debug("Running: %s", pretty)
        workdir = str(cwd) if cwd is not None else None

        if stream:
            cp = U._run_streamed(logger, cmd, env=env, timeout=timeout, cwd=workdir)
        else:
            try:
                cp = subprocess.run(
                    cmd,
                    capture_output=capture,
                    text=True,
                    env=env,
                    timeout=timeout,
                    cwd=workdir,
                )
            except subprocess.TimeoutExpired:
                logger.error("Timed out after %ss: %s", timeout, pretty)
                raise

        if check and cp.returncode != 0:
            detail = (cp.stderr or "").strip() if capture else ""
            logger.error("Exit %s: %s%s", cp.returncode, pretty, f"\n{detail}" if detail else "")
            raise subprocess.CalledProcessError(cp.returncode, cmd, output=cp.stdout, stderr=cp.stderr)
        return cp

    @staticmethod
    def _run_streamed(
        logger: logging.Logger,
        cmd: List[str],
        *,
        env: Optional[Dict[str, str]],
        timeout: Optional[float],
        cwd: Optional[str],
    ) -> subprocess.CompletedProcess:
        lines: List[str] = []
        expired = threading.Event()

        with subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            env=env,
            cwd=cwd,
        ) as proc:

            def _expire() -> None:
                expired.set()
                proc.kill()

            # A blocked readline cannot observe a deadline; the timer kills
            # the child, which closes the pipe and ends the loop.
            timer = threading.Timer(timeout, _expire) if timeout else None
            if timer is not None:
                timer.daemon = True
                timer.start()
            try:
                assert proc.stdout is not None
                for line in proc.stdout:
                    line = line.rstrip("\r\n")
                    lines.append(line)
                    logger.info(line)
                rc = proc.wait()
            except BaseException:
                proc.kill()
                raise
            finally:
                if timer is not None:
                    timer.cancel()

        output = "\n".join(lines)
        if expired.is_set():
            logger.error("Timed out after %ss: %s", timeout, U._pretty_cmd(cmd))
            raise subprocess.TimeoutExpired(cmd, timeout, output=output)
        return subprocess.CompletedProcess(cmd, rc, stdout=output, stderr="")
