"""Tests for config loading precedence and validation."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from stepwise.config import loader
from stepwise.config.loader import load_config
from stepwise.config.models import LogOutputConfig, ServerConfig
from stepwise.core.errors import ConfigError, ErrorCode


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> None:
    """Point the global config at a temp path and clear STEPWISE__ env vars."""
    monkeypatch.setattr(loader, "GLOBAL_CONFIG_PATH", temp_dir / "global" / "config.yaml")
    for key in list(os.environ):
        if key.upper().startswith("STEPWISE__"):
            monkeypatch.delenv(key)


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


class TestLoadConfig:
    def test_defaults(self, temp_dir: Path) -> None:
        config = load_config(temp_dir)

        assert config.server.port == 7655
        assert config.index.batch_size == 5
        assert config.vectors.enabled is True
        assert config.admin.token is None
        assert config.retrieval.max_chars_default == 50_000

    def test_local_yaml(self, temp_dir: Path) -> None:
        _write(temp_dir / "stepwise.yaml", "index:\n  batch_size: 3\nadmin:\n  token: s3cret\n")
        config = load_config(temp_dir)

        assert config.index.batch_size == 3
        assert config.admin.token == "s3cret"

    def test_local_yaml_overrides_global(self, temp_dir: Path) -> None:
        _write(loader.GLOBAL_CONFIG_PATH, "index:\n  batch_size: 2\n  chunk_size: 900\n")
        _write(temp_dir / "stepwise.yaml", "index:\n  batch_size: 4\n")
        config = load_config(temp_dir)

        assert config.index.batch_size == 4
        assert config.index.chunk_size == 900

    def test_env_overrides_yaml(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write(temp_dir / "stepwise.yaml", "server:\n  port: 8000\n")
        monkeypatch.setenv("STEPWISE__SERVER__PORT", "9000")

        assert load_config(temp_dir).server.port == 9000

    def test_kwargs_override_env(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STEPWISE__SERVER__PORT", "9000")

        assert load_config(temp_dir, server={"port": 9100}).server.port == 9100

    def test_source_token_stripped(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STEPWISE__SOURCE__TOKEN", "   ")

        assert load_config(temp_dir).source.token is None

    def test_invalid_value(self, temp_dir: Path) -> None:
        _write(temp_dir / "stepwise.yaml", "index:\n  batch_size: 99\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(temp_dir)

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_VALUE
        assert exc_info.value.details["field"] == "index.batch_size"

    def test_overlap_must_be_below_chunk_size(self, temp_dir: Path) -> None:
        _write(temp_dir / "stepwise.yaml", "index:\n  chunk_size: 400\n  chunk_overlap: 400\n")

        with pytest.raises(ConfigError):
            load_config(temp_dir)

    def test_malformed_yaml(self, temp_dir: Path) -> None:
        _write(temp_dir / "stepwise.yaml", "index: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(temp_dir)

        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_non_mapping_yaml(self, temp_dir: Path) -> None:
        _write(temp_dir / "stepwise.yaml", "- one\n- two\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(temp_dir)


class TestModels:
    def test_port_range(self) -> None:
        with pytest.raises(ValueError, match="Port must be 0-65535"):
            ServerConfig(port=70000)

    def test_log_file_must_be_absolute(self) -> None:
        with pytest.raises(ValueError, match="absolute"):
            LogOutputConfig(destination="logs/out.log")

    def test_database_path_expanded(self, temp_dir: Path) -> None:
        config = load_config(temp_dir, database={"path": "~/idx.db"})

        assert config.database.resolved_path == Path("~/idx.db").expanduser()
