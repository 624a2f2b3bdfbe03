# SPDX-License-Identifier: LGPL-3.0-or-later
# vmbootstrap/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


def _safe_int(x: Any, default: int = 1) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return default


def _clamp_exit_code(code: int) -> int:
    # Exit codes are 0..255 on every platform we run on.
    if code < 0:
        return 1
    if code > 255:
        return 255
    return code


def _one_line(s: str, limit: int = 600) -> str:
    s = (s or "").strip().replace("\r", " ").replace("\n", " ")
    s = " ".join(s.split())
    return s if len(s) <= limit else (s[: limit - 3] + "...")


_SECRET_KEY_PARTS = (
    "pass",
    "password",
    "secret",
    "token",
    "auth",
    "signature",
    "sas",
    "private",
    "key",
)

REDACTED = "***REDACTED***"


def _is_secret_key(k: str) -> bool:
    ks = (k or "").lower()
    return any(p in ks for p in _SECRET_KEY_PARTS)


def redact(value: Any, key: str = "") -> Any:
    """Return `value` with secret-looking keys masked (recurses into dicts)."""
    if key and _is_secret_key(key):
        return REDACTED
    if isinstance(value, dict):
        return {k: redact(v, str(k)) for k, v in value.items()}
    return value


def _format_context_compact(ctx: Dict[str, Any]) -> str:
    # Stable order, redaction, single-line.
    parts = []
    for k in sorted(ctx.keys()):
        v = redact(ctx.get(k), str(k))
        parts.append(f"{k}={v!r}" if v != REDACTED else f"{k}=<redacted>")
    return ", ".join(parts)


@dataclass(eq=False)
class VmBootstrapError(Exception):
    """
    Base project error with:
      - stable fields for reporting/JSON
      - readable __str__ (what users see)
      - an exit code that is always a valid process status
    """
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _clamp_exit_code(_safe_int(self.code, default=1))
        self.msg = _one_line(self.msg) or self.__class__.__name__
        if self.context is None:
            self.context = {}
        super().__init__(self.msg)
        # Some tooling inspects Exception.args directly.
        self.args = (self.msg,)

    def with_context(self, **ctx: Any) -> "VmBootstrapError":
        if self.context is None:
            self.context = {}
        self.context.update(ctx)
        return self

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        """
        Human-friendly message for CLI output/logs.
        """
        parts = [self.msg or self.__class__.__name__]

        if include_context and self.context:
            parts.append(f"[{_one_line(_format_context_compact(self.context), limit=600)}]")

        if include_cause and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_one_line(str(self.cause))})")

        return " ".join(parts)

    def __str__(self) -> str:
        return self.user_message(include_context=False, include_cause=False)

    def to_dict(self, *, include_cause: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.msg,
            "context": redact(self.context or {}),
        }
        if include_cause and self.cause is not None:
            d["cause"] = {"type": type(self.cause).__name__, "message": _one_line(str(self.cause))}
        return d


class Fatal(VmBootstrapError):
    """
    User-facing fatal error (exit code is honored by main()).
    """
    pass


class ConfigLoadError(VmBootstrapError):
    """
    Extension settings are missing, unreadable or malformed.
    Raised before any download happens.
    """
    pass


class DecryptionError(ConfigLoadError):
    """
    Protected settings could not be decrypted (no certificate for the
    thumbprint, or the payload did not decrypt).
    """
    pass


class DownloadError(VmBootstrapError):
    """A single download attempt failed, or the source URI is unusable."""
    pass


class DownloadExhausted(DownloadError):
    """Every attempt allowed by the retry policy failed."""
    pass


class ScriptExecutionError(VmBootstrapError):
    """The provisioning script exited non-zero or could not be started."""
    pass


def wrap_fatal(msg: str, exc: Optional[BaseException] = None, code: int = 1, **context: Any) -> Fatal:
    return Fatal(code=code, msg=msg, cause=exc, context=context or None)


def wrap_config_error(msg: str, exc: Optional[BaseException] = None, code: int = 10, **context: Any) -> ConfigLoadError:
    return ConfigLoadError(code=code, msg=msg, cause=exc, context=context or None)


def wrap_decryption_error(msg: str, exc: Optional[BaseException] = None, code: int = 11, **context: Any) -> DecryptionError:
    return DecryptionError(code=code, msg=msg, cause=exc, context=context or None)


def wrap_download_error(msg: str, exc: Optional[BaseException] = None, code: int = 20, **context: Any) -> DownloadError:
    return DownloadError(code=code, msg=msg, cause=exc, context=context or None)


def wrap_download_exhausted(msg: str, exc: Optional[BaseException] = None, code: int = 21, **context: Any) -> DownloadExhausted:
    return DownloadExhausted(code=code, msg=msg, cause=exc, context=context or None)


def wrap_script_error(msg: str, exc: Optional[BaseException] = None, code: int = 30, **context: Any) -> ScriptExecutionError:
    return ScriptExecutionError(code=code, msg=msg, cause=exc, context=context or None)


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One-liner output for CLI.

    verbose=0: just message
    verbose=1: message + compact context (if any)
    verbose>=2: message + context + cause
    """
    if isinstance(e, VmBootstrapError):
        return e.user_message(
            include_context=(verbose >= 1),
            include_cause=(verbose >= 2),
        )

    if verbose >= 2:
        return f"{type(e).__name__}: {_one_line(str(e))}"
    return _one_line(str(e)) or type(e).__name__
