# SPDX-License-Identifier: LGPL-3.0-or-later
# vmbootstrap/core/logger.py
"""
Console and transcript logging.

A provisioning run writes to two places: the console (whatever captured the
agent's stderr, usually the host extension handler) and the run transcript, a
``*.log`` file inside the working directory. The transcript is uploaded with
the script's own logs, so it always records at DEBUG (or TRACE with -vvv)
whatever the console level is.
"""

from __future__ import annotations

import datetime as _dt
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from termcolor import colored

from .exceptions import redact

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

TRANSCRIPT_HANDLER_NAME = "vmbootstrap-transcript"

# levelname -> (emoji, termcolor colour)
_LEVEL_STYLE: Dict[str, Tuple[str, str]] = {
    "TRACE": ("🧬", "cyan"),
    "DEBUG": ("🔍", "blue"),
    "INFO": ("✅", "green"),
    "WARNING": ("⚠️", "yellow"),
    "ERROR": ("💥", "red"),
    "CRITICAL": ("🧨", "red"),
}

Ctx = Mapping[str, Any]


def is_tty(stream: Any = None) -> bool:
    stream = sys.stderr if stream is None else stream
    try:
        return bool(stream.isatty())
    except (AttributeError, ValueError):
        return False


def c(text: str, color: Optional[str] = None, attrs: Optional[List[str]] = None, *, enable: bool = True) -> str:
    """termcolor wrapper that is a no-op when disabled or colourless."""
    if not enable or not color:
        return text
    return colored(text, color=color, attrs=attrs or [])


def _ctx_of(record: logging.LogRecord) -> Dict[str, Any]:
    # Context keys such as storage_account_key must never reach the transcript,
    # which is uploaded to the same storage account.
    ctx = getattr(record, "ctx", None)
    if not ctx:
        return {}
    return {str(k): redact(v, str(k)) for k, v in dict(ctx).items()}


def _one_line(v: Any) -> str:
    return str(v).replace("\r", "\\r").replace("\n", "\\n")


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Carries a context dict (file name, URI, attempt, ...) into every record.
    Per-call ``extra={"ctx": {...}}`` is merged on top.

        log = Log.bind(logger, file="install.ps1")
        log.warning("attempt failed", extra={"ctx": {"attempt": 2}})
    """

    def __init__(self, logger: logging.Logger, ctx: Optional[Ctx] = None):
        super().__init__(logger, {"ctx": dict(ctx or {})})

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["ctx"] = {**self.extra["ctx"], **dict(extra.get("ctx") or {})}
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **ctx: Any) -> "ContextLoggerAdapter":
        return ContextLoggerAdapter(self.logger, {**self.extra["ctx"], **ctx})


class EmojiFormatter(logging.Formatter):
    """
    Console: ``12:01:02 ✅ INFO     message k=v``.
    Transcript (detailed=True): millisecond timestamps plus logger and source
    location, never coloured.
    """

    def __init__(self, *, color: bool = False, detailed: bool = False):
        super().__init__()
        self.color = color
        self.detailed = detailed

    def format(self, record: logging.LogRecord) -> str:
        emoji, colour = _LEVEL_STYLE.get(record.levelname, ("•", ""))
        when = _dt.datetime.fromtimestamp(record.created)
        ts = when.strftime("%H:%M:%S.%f")[:-3] if self.detailed else when.strftime("%H:%M:%S")

        use_color = self.color and is_tty()
        level = c(f"{record.levelname:<8}", colour, enable=use_color)
        msg = record.getMessage()
        if record.levelno >= logging.WARNING:
            msg = c(msg, colour, ["bold"], enable=use_color)

        where = f" [{record.name} {record.module}:{record.lineno}]" if self.detailed else ""
        ctx = " ".join(f"{k}={_one_line(v)}" for k, v in sorted(_ctx_of(record).items()))
        line = f"{ts} {emoji} {level}{where} {msg}" + (f" {ctx}" if ctx else "")
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line, UTC timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        obj: Dict[str, Any] = {
            "ts": _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "pid": os.getpid(),
        }
        ctx = _ctx_of(record)
        if ctx:
            obj["ctx"] = {k: _one_line(v) for k, v in ctx.items()}
        if record.exc_info:
            obj["traceback"] = self.formatException(record.exc_info)
        return json.dumps(obj, ensure_ascii=False, default=str)


class Log:
    @staticmethod
    def _level_from_flags(verbose: int, quiet: int) -> int:
        """-qq error, -q warning, default info, -vv debug, -vvv trace; quiet wins."""
        if quiet:
            return logging.ERROR if quiet >= 2 else logging.WARNING
        if verbose >= 3:
            return TRACE
        return logging.DEBUG if verbose >= 2 else logging.INFO

    @staticmethod
    def bind(logger: logging.Logger, **ctx: Any) -> ContextLoggerAdapter:
        return ContextLoggerAdapter(logger, ctx)

    @staticmethod
    def banner(logger: logging.Logger, title: str) -> None:
        logger.info(f" {title.strip()} ".center(72, "─"))

    @staticmethod
    def step(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("➡️  %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def ok(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("✅ %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def warn(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.warning("⚠️  %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def fail(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.error("💥 %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def trace(logger: logging.Logger, msg: str, *args: Any, **ctx: Any) -> None:
        if logger.isEnabledFor(TRACE):
            logger.log(TRACE, msg, *args, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def transcript_handler(path: Union[str, Path], *, level: int = logging.DEBUG, json_logs: bool = False) -> logging.FileHandler:
        """Append-mode file handler for the run transcript."""
        fp = Path(path).expanduser().resolve()
        fp.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(fp, mode="a", encoding="utf-8")
        fh.set_name(TRANSCRIPT_HANDLER_NAME)
        fh.setLevel(level)
        fh.setFormatter(JsonFormatter() if json_logs else EmojiFormatter(detailed=True))
        return fh

    @staticmethod
    def flush(logger: Union[logging.Logger, logging.LoggerAdapter]) -> None:
        """Flush the transcript so an upload that follows sees every line."""
        base = logger.logger if isinstance(logger, logging.LoggerAdapter) else logger
        if isinstance(base, logging.Logger):
            for h in base.handlers:
                h.flush()

    @staticmethod
    def setup(
        verbose: int = 0,
        log_file: Optional[Union[str, Path]] = None,
        *,
        quiet: int = 0,
        color: bool = True,
        logger_name: str = "vmbootstrap",
        json_logs: bool = False,
    ) -> logging.Logger:
        """
        Configure and return the project's logger.

        The console follows -v/-q. The transcript (`log_file`) records at
        DEBUG, or TRACE when the console does.
        """
        console_level = Log._level_from_flags(verbose, quiet)
        file_level = min(console_level, logging.DEBUG)

        logger = logging.getLogger(logger_name)
        logger.propagate = False
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(console_level)
        sh.setFormatter(JsonFormatter() if json_logs else EmojiFormatter(color=color))
        logger.addHandler(sh)

        if log_file:
            logger.addHandler(Log.transcript_handler(log_file, level=file_level, json_logs=json_logs))
            logger.setLevel(file_level)
        else:
            logger.setLevel(console_level)

        logger.debug("Logging ready (console=%s, transcript=%s)", logging.getLevelName(console_level), log_file or "-")
        return logger
