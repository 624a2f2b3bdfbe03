# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/orchestrator/orchestrator.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..config.agent_config import AgentConfig
from ..config.decryptor import CertificateDecryptor
from ..config.loader import ConfigLoader
from ..config.models import ProvisioningConfig
from ..core.exceptions import format_exception_for_cli, wrap_config_error
from ..core.logger import Log
from ..core.logging_utils import log_step
from ..core.retry import RetryPolicy
from ..core.utils import U
from ..fetch.dns import flush_dns_cache
from ..fetch.downloader import ResilientDownloader
from ..storage.blob_client import BlobClient
from ..storage.models import StorageCredential
from .collaborators import GuideInstaller, JsonGuideInstaller, SentinelConfigWriter, guide_settings
from .lock import LockMarker
from .log_collector import LogCollector, UploadReport
from .script_runner import ScriptRunner


class RunState(str, Enum):
    INIT = "init"
    CONFIG_LOADED = "config_loaded"
    LOCK_CHECKED = "lock_checked"
    SKIPPED_ALREADY_RUN = "skipped_already_run"
    PROCEEDING = "proceeding"
    DEPENDENCIES_FETCHED = "dependencies_fetched"
    SCRIPT_DOWNLOADED = "script_downloaded"
    SENTINEL_CONFIG_WRITTEN = "sentinel_config_written"
    GUIDE_INSTALLED = "guide_installed"
    LOCK_WRITTEN = "lock_written"
    SCRIPT_EXECUTED = "script_executed"
    LOGS_UPLOADED = "logs_uploaded"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunResult:
    state: RunState
    history: List[RunState] = field(default_factory=list)
    lock_path: Optional[Path] = None
    script_path: Optional[Path] = None
    dependencies: List[Path] = field(default_factory=list)
    upload: Optional[UploadReport] = None

    @property
    def skipped(self) -> bool:
        return RunState.SKIPPED_ALREADY_RUN in self.history


class ProvisioningOrchestrator:
    """
    Runs the provisioning script for this host at most once.

    Flow: load settings -> check lock marker -> download dependencies and
    script -> optional sentinel/guide hand-off -> write lock marker -> run
    script. Once settings are loaded, logs are uploaded whatever happens
    next; a failure is re-raised after that.
    """

    def __init__(
        self,
        logger: logging.Logger,
        config: AgentConfig,
        *,
        config_loader: Optional[ConfigLoader] = None,
        downloader: Optional[ResilientDownloader] = None,
        blob_client: Optional[BlobClient] = None,
        script_runner: Optional[ScriptRunner] = None,
        sentinel_writer: Optional[SentinelConfigWriter] = None,
        guide_installer: Optional[GuideInstaller] = None,
        log_collector: Optional[LogCollector] = None,
    ):
        self.logger = logger
        self.config = config

        self.config_loader = config_loader or ConfigLoader(
            config.settings_file,
            CertificateDecryptor(config.cert_dir, logger=logger),
            logger=logger,
        )
        self.downloader = downloader or ResilientDownloader(
            logger,
            policy=RetryPolicy(
                attempts=config.download_attempts,
                delay_s=config.retry_delay_s,
                before_retry=(lambda: flush_dns_cache(logger)) if config.flush_dns else None,
            ),
            timeout_s=config.http_timeout_s,
        )
        self.blob_client = blob_client or BlobClient(
            storage_domain=config.storage_domain,
            timeout_s=config.http_timeout_s,
            logger=logger,
        )
        self.script_runner = script_runner or ScriptRunner(logger, timeout_s=config.script_timeout_s)
        self.sentinel_writer = sentinel_writer or SentinelConfigWriter(config.scratch_dir, logger)
        self.guide_installer = guide_installer or JsonGuideInstaller(config.scratch_dir, logger)
        self.log_collector = log_collector or LogCollector(
            self.blob_client,
            prefix=config.log_blob_prefix,
            pattern=config.log_glob,
            logger=logger,
        )

        self.state = RunState.INIT
        self.history: List[RunState] = []

    def _enter(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)
        Log.trace(self.logger, "state -> %s", state.value)

    def _result(self, **kwargs) -> RunResult:
        return RunResult(state=self.state, history=list(self.history), **kwargs)

    @staticmethod
    def _require_credential(pc: ProvisioningConfig, purpose: str) -> StorageCredential:
        cred = pc.credential
        if cred is None:
            raise wrap_config_error(f"{purpose} needs storage account name and key in the settings")
        return cred

    def _fetch_dependencies(self, pc: ProvisioningConfig, result: RunResult) -> None:
        uris = [u for u in pc.public.dependency_uris if u and u.strip()]
        with log_step(self.logger, f"Downloading {len(uris)} dependencies"):
            for uri in uris:
                result.dependencies.append(self.downloader.fetch(self.config.work_dir, uri.strip()))
        self._enter(RunState.DEPENDENCIES_FETCHED)

    def _provision(self, pc: ProvisioningConfig, lock: LockMarker, result: RunResult) -> None:
        work_dir = self.config.work_dir
        U.ensure_dir(work_dir)

        self._fetch_dependencies(pc, result)

        with log_step(self.logger, "Downloading script"):
            result.script_path = self.downloader.fetch(work_dir, pc.public.script_uri)
        self._enter(RunState.SCRIPT_DOWNLOADED)

        if pc.public.sentinel_blob_name:
            cred = self._require_credential(pc, "Sentinel config")
            self.sentinel_writer.write(cred, pc.public.sentinel_blob_name)
            self._enter(RunState.SENTINEL_CONFIG_WRITTEN)

        if pc.public.install_guide:
            cred = self._require_credential(pc, "Guide install")
            with log_step(self.logger, "Installing guide"):
                self.guide_installer.install(guide_settings(cred))
            self._enter(RunState.GUIDE_INSTALLED)

        # The marker goes down before execution: a script that reboots the
        # host must not run again on the next boot.
        if not lock.create():
            Log.warn(self.logger, "Lock marker appeared while provisioning; another run owns this script", lock=str(lock.path))
            self._enter(RunState.SKIPPED_ALREADY_RUN)
            return
        self._enter(RunState.LOCK_WRITTEN)

        with log_step(self.logger, f"Running {result.script_path.name}"):
            self.script_runner.run(result.script_path, pc.public.script_arguments, cwd=work_dir)
        self._enter(RunState.SCRIPT_EXECUTED)

    def _upload_logs(self, pc: Optional[ProvisioningConfig]) -> Optional[UploadReport]:
        cred = pc.credential if pc is not None else None
        if cred is None:
            Log.warn(self.logger, "No storage credential in settings; logs stay local", work_dir=str(self.config.work_dir))
            return None

        Log.flush(self.logger)
        try:
            report = self.log_collector.upload_all(cred, self.config.work_dir)
        except Exception as e:
            # Per-file failures are handled by the collector; this only guards
            # the run outcome against enumeration errors.
            Log.warn(self.logger, f"Log upload phase failed: {format_exception_for_cli(e)}")
            return None

        self._enter(RunState.LOGS_UPLOADED)
        if report.failed:
            Log.warn(self.logger, f"{len(report.failed)} log file(s) were not uploaded")
        else:
            Log.ok(self.logger, f"Uploaded {len(report.uploaded)} log file(s)")
        return report

    def run(self) -> RunResult:
        Log.banner(self.logger, "vmbootstrap")
        self.history = []
        self._enter(RunState.INIT)

        pc: Optional[ProvisioningConfig] = None
        result = self._result()
        already_ran = False

        try:
            with log_step(self.logger, "Loading settings"):
                pc = self.config_loader.load()
            self._enter(RunState.CONFIG_LOADED)

            lock = LockMarker(self.config.lock_dir, pc.public.script_uri)
            result.lock_path = lock.path
            self._enter(RunState.LOCK_CHECKED)
            if lock.exists():
                already_ran = True
                Log.ok(self.logger, "Script already ran on this host; nothing to do", lock=str(lock.path))
                self._enter(RunState.SKIPPED_ALREADY_RUN)
                return self._result(lock_path=lock.path)

            self._enter(RunState.PROCEEDING)
            self._provision(pc, lock, result)
        except BaseException as e:
            # Ctrl+C or SystemExit from a script land here too: once the lock
            # marker exists the logs are the only record of the run.
            self._enter(RunState.FAILED)
            Log.fail(self.logger, format_exception_for_cli(e, verbose=1))
            self.logger.debug("Provisioning failure", exc_info=True)
            raise
        finally:
            if not already_ran:
                result.upload = self._upload_logs(pc)

        self._enter(RunState.DONE)
        return self._result(
            lock_path=result.lock_path,
            script_path=result.script_path,
            dependencies=result.dependencies,
            upload=result.upload,
        )
