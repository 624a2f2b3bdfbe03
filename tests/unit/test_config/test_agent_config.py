# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

from pathlib import Path

import pytest

from vmbootstrap.config.agent_config import AgentConfig, build_agent_config, load_yaml_files
from vmbootstrap.core.exceptions import Fatal


@pytest.mark.unit
class TestAgentConfig:
    def test_defaults(self):
        cfg = AgentConfig()
        assert cfg.download_attempts == 30
        assert cfg.retry_delay_s == 15.0
        assert cfg.flush_dns is True
        assert cfg.log_blob_prefix == "assets/logs"
        assert cfg.transcript_path == cfg.work_dir / "vmbootstrap.log"

    def test_paths_are_coerced(self, tmp_path):
        cfg = AgentConfig(work_dir=str(tmp_path))
        assert isinstance(cfg.work_dir, Path)

    @pytest.mark.parametrize("kwargs", [{"download_attempts": 0}, {"retry_delay_s": -1}, {"script_timeout_s": 0}])
    def test_invalid_values(self, kwargs):
        with pytest.raises(Fatal) as ei:
            AgentConfig(**kwargs)
        assert ei.value.code == 2

    def test_from_mapping_accepts_dashes(self, tmp_path):
        cfg = AgentConfig.from_mapping({"work-dir": str(tmp_path), "download-attempts": "3"})
        assert cfg.work_dir == tmp_path
        assert cfg.download_attempts == 3

    def test_unknown_key(self):
        with pytest.raises(Fatal) as ei:
            AgentConfig.from_mapping({"wrok_dir": "/x"})
        assert "wrok_dir" in str(ei.value)

    def test_to_dict_is_plain(self, tmp_path):
        d = AgentConfig(work_dir=tmp_path).to_dict()
        assert d["work_dir"] == str(tmp_path)
        assert d["download_attempts"] == 30


@pytest.mark.unit
class TestYamlLayering:
    def test_later_files_win(self, tmp_path):
        a = tmp_path / "a.yaml"
        b = tmp_path / "b.yaml"
        a.write_text("download_attempts: 5\nretry_delay_s: 1\n", encoding="utf-8")
        b.write_text("download_attempts: 7\n", encoding="utf-8")
        assert load_yaml_files([str(a), str(b)]) == {"download_attempts": 7, "retry_delay_s": 1}

    def test_empty_file_is_empty_mapping(self, tmp_path):
        f = tmp_path / "empty.yaml"
        f.write_text("", encoding="utf-8")
        assert load_yaml_files([str(f)]) == {}

    def test_non_mapping_is_fatal(self, tmp_path):
        f = tmp_path / "list.yaml"
        f.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(Fatal):
            load_yaml_files([str(f)])

    def test_invalid_yaml_is_fatal(self, tmp_path):
        f = tmp_path / "bad.yaml"
        f.write_text("a: [1, 2\n", encoding="utf-8")
        with pytest.raises(Fatal):
            load_yaml_files([str(f)])

    def test_missing_file_is_fatal(self, tmp_path):
        with pytest.raises(Fatal):
            load_yaml_files([str(tmp_path / "missing.yaml")])

    def test_overrides_beat_yaml_and_none_is_ignored(self, tmp_path):
        f = tmp_path / "a.yaml"
        f.write_text(f"download_attempts: 5\nwork_dir: {tmp_path}\n", encoding="utf-8")
        cfg = build_agent_config([str(f)], {"download_attempts": 2, "work_dir": None, "flush_dns": False})
        assert cfg.download_attempts == 2
        assert cfg.work_dir == tmp_path
        assert cfg.flush_dns is False
