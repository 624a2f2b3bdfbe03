# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/config/agent_config.py
"""
Agent configuration: where things live on this host and how hard to retry.

Layering (later wins): platform defaults, YAML files (--config, in order),
CLI flags.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from ..core.exceptions import wrap_fatal
from ..storage.models import DEFAULT_STORAGE_DOMAIN

LOG = logging.getLogger(__name__)


def _default_paths() -> Dict[str, Path]:
    if os.name == "nt":
        root = Path(os.environ.get("SystemDrive", "C:") + "\\")
        packages = root / "Packages" / "Plugins" / "vmbootstrap"
        return {
            "settings_file": packages / "RuntimeSettings",
            "work_dir": packages / "work",
            "lock_dir": root / "Windows" / "Temp" / "vmbootstrap",
            "scratch_dir": root / "AzureData",
            "cert_dir": packages / "certs",
        }
    return {
        "settings_file": Path("/var/lib/waagent/vmbootstrap/config"),
        "work_dir": Path("/var/lib/vmbootstrap/work"),
        "lock_dir": Path("/var/lib/vmbootstrap/locks"),
        "scratch_dir": Path("/var/lib/vmbootstrap/scratch"),
        "cert_dir": Path("/var/lib/waagent"),
    }


_PATH_FIELDS = ("settings_file", "work_dir", "lock_dir", "scratch_dir", "cert_dir")


@dataclass
class AgentConfig:
    settings_file: Path = field(default_factory=lambda: _default_paths()["settings_file"])
    work_dir: Path = field(default_factory=lambda: _default_paths()["work_dir"])
    lock_dir: Path = field(default_factory=lambda: _default_paths()["lock_dir"])
    scratch_dir: Path = field(default_factory=lambda: _default_paths()["scratch_dir"])
    cert_dir: Path = field(default_factory=lambda: _default_paths()["cert_dir"])

    storage_domain: str = DEFAULT_STORAGE_DOMAIN
    log_blob_prefix: str = "assets/logs"
    log_glob: str = "*.log"
    transcript_name: str = "vmbootstrap.log"

    download_attempts: int = 30
    retry_delay_s: float = 15.0
    flush_dns: bool = True
    http_timeout_s: Optional[float] = None
    script_timeout_s: Optional[float] = None

    def __post_init__(self) -> None:
        for name in _PATH_FIELDS:
            setattr(self, name, Path(getattr(self, name)).expanduser())
        if int(self.download_attempts) < 1:
            raise wrap_fatal(f"download_attempts must be >= 1 (got {self.download_attempts})", code=2)
        if float(self.retry_delay_s) < 0:
            raise wrap_fatal(f"retry_delay_s must be >= 0 (got {self.retry_delay_s})", code=2)
        if self.script_timeout_s is not None and float(self.script_timeout_s) <= 0:
            raise wrap_fatal(f"script_timeout_s must be > 0 (got {self.script_timeout_s})", code=2)
        self.download_attempts = int(self.download_attempts)
        self.retry_delay_s = float(self.retry_delay_s)

    @property
    def transcript_path(self) -> Path:
        return self.work_dir / self.transcript_name

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in dataclasses.fields(cls)]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AgentConfig":
        """Unknown keys are rejected so typos in YAML do not silently fall back to defaults."""
        norm = {str(k).replace("-", "_"): v for k, v in data.items()}
        unknown = sorted(set(norm) - set(cls.field_names()))
        if unknown:
            raise wrap_fatal(f"Unknown agent config key(s): {', '.join(unknown)}", code=2, keys=unknown)
        return cls(**norm)

    def to_dict(self) -> Dict[str, Any]:
        d = dataclasses.asdict(self)
        for name in _PATH_FIELDS:
            d[name] = str(d[name])
        return d


def load_yaml_files(paths: Sequence[str], logger: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """Load and shallow-merge YAML mappings; later files override earlier ones."""
    logger = logger or LOG
    merged: Dict[str, Any] = {}
    for p in paths:
        path = Path(p).expanduser()
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except OSError as e:
            raise wrap_fatal(f"Cannot read config file {path}: {e}", e, code=2, path=str(path)) from e
        except yaml.YAMLError as e:
            raise wrap_fatal(f"Config file {path} is not valid YAML: {e}", e, code=2, path=str(path)) from e
        if not isinstance(data, dict):
            raise wrap_fatal(f"Config file {path} must contain a mapping", code=2, path=str(path))
        logger.debug("Loaded agent config %s (%d keys)", path, len(data))
        merged.update(data)
    return merged


def build_agent_config(
    config_files: Sequence[str] = (),
    overrides: Optional[Mapping[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> AgentConfig:
    """Defaults <- YAML files <- non-None overrides."""
    data = load_yaml_files(config_files, logger)
    for k, v in (overrides or {}).items():
        if v is not None:
            data[k] = v
    return AgentConfig.from_mapping(data)
