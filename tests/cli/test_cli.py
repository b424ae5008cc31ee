"""Tests for the stepwise CLI commands."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from stepwise.cli.main import cli
from stepwise.cli.utils import parse_workshop_list


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> None:
    monkeypatch.setattr("stepwise.config.loader.GLOBAL_CONFIG_PATH", temp_dir / "missing.yaml")
    for key in list(os.environ):
        if key.startswith("STEPWISE__"):
            monkeypatch.delenv(key)


@pytest.fixture
def config_dir(temp_dir: Path) -> Path:
    directory = temp_dir / "project"
    directory.mkdir()
    (directory / "stepwise.yaml").write_text(
        "logging:\n"
        "  level: WARNING\n"
        "database:\n"
        f"  path: {temp_dir / 'cli.db'}\n"
        "vectors:\n"
        "  enabled: false\n"
    )
    return directory


@pytest.fixture
def source(source_client_factory, demo_files):
    return source_client_factory({"demo": dict(demo_files), "other": dict(demo_files)})


def _invoke(config_dir: Path, *args: str):
    return CliRunner().invoke(cli, ["--config-dir", str(config_dir), *args])


class TestParseWorkshopList:
    def test_none_and_blank(self) -> None:
        assert parse_workshop_list(None) is None
        assert parse_workshop_list(" , \n") is None

    def test_split(self) -> None:
        assert parse_workshop_list("a, b\nc,") == ["a", "b", "c"]


class TestReindexCommand:
    def test_reindex_all(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            result = _invoke(config_dir, "reindex", "--batch-size", "1")

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0] == "Workshop content load complete"
        assert "  Batch size:          1" in lines
        assert "  Requested workshops: all discovered workshop repositories" in lines
        assert "  Workshop count:      2" in lines
        assert "  Section count:       16" in lines
        assert "  Vectors:             disabled" in lines
        assert source.closed

    def test_reindex_selected(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            result = _invoke(config_dir, "reindex", "--workshops", "Other")

        assert result.exit_code == 0, result.output
        assert "  Requested workshops: Other" in result.stdout
        assert "  Workshop count:      1" in result.stdout

    def test_unknown_workshop_fails(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            result = _invoke(config_dir, "reindex", "-w", "missing")

        assert result.exit_code == 1
        assert "Unknown workshop repositories requested: missing" in result.output

    def test_batch_size_range(self, config_dir: Path) -> None:
        result = _invoke(config_dir, "reindex", "--batch-size", "21")

        assert result.exit_code == 2


class TestWorkshopsCommand:
    def test_empty(self, config_dir: Path) -> None:
        result = _invoke(config_dir, "workshops")

        assert result.exit_code == 0
        assert result.stdout.strip() == "No workshops indexed. Run 'stepwise reindex' first."

    def test_json_after_reindex(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            assert _invoke(config_dir, "reindex").exit_code == 0

        result = _invoke(config_dir, "workshops", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [w["workshop"] for w in data["workshops"]] == ["demo", "other"]
        assert data["workshops"][0]["title"] == "Demo Workshop"
        assert data["workshops"][0]["hasDiffs"] is True

    def test_product_filter(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            assert _invoke(config_dir, "reindex").exit_code == 0

        result = _invoke(config_dir, "workshops", "--product", "epicweb.dev", "--json")

        assert json.loads(result.stdout)["workshops"] == []

    def test_table(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            assert _invoke(config_dir, "reindex").exit_code == 0

        result = _invoke(config_dir, "workshops")

        assert result.exit_code == 0
        assert "Indexed workshops" in result.stdout
        assert "demo" in result.stdout


class TestNightlyCommand:
    def test_dry_run_reports_missing(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            result = _invoke(config_dir, "nightly", "--dry-run")

        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines()[0] == "Nightly workshop reindex"
        assert "  - demo (missing-index)" in result.stdout
        assert "  - other (missing-index)" in result.stdout
        assert "Workshop content load complete" not in result.stdout

    def test_no_changes(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            assert _invoke(config_dir, "reindex").exit_code == 0
            result = _invoke(config_dir, "nightly")

        assert result.exit_code == 0, result.output
        assert "No workshop content changes detected." in result.stdout

    def test_changed_workshop_is_indexed(self, config_dir: Path, source) -> None:
        with patch("stepwise.cli.index.GitHubClient", return_value=source):
            assert _invoke(config_dir, "reindex").exit_code == 0
            source.head_shas["other"] = "tree-sha-2"
            source.changed["other"] = True
            result = _invoke(config_dir, "nightly")

        assert result.exit_code == 0, result.output
        assert "  - other (content-changed)" in result.stdout
        assert "  Requested workshops: other" in result.stdout
        assert "  Workshop count:      1" in result.stdout
