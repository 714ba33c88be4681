"""Tests for aumai_ociconform CLI."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest
from click.testing import CliRunner

from aumai_ociconform import cli
from aumai_ociconform.cli import main


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, bool]]:
    """Keep the CLI from reconfiguring global logging during tests."""
    calls: list[tuple[str, bool]] = []
    monkeypatch.setattr(cli, "configure_logging", lambda level, json_output: calls.append((level, json_output)))
    return calls


@pytest.fixture()
def use_fake_registry(monkeypatch: pytest.MonkeyPatch, fake_registry):
    created = []

    def _from_settings(settings):
        created.append(settings)
        return fake_registry

    monkeypatch.setattr(cli.RegistryClient, "from_settings", staticmethod(_from_settings))
    return created


def _run_args(tmp_path: Path, *extra: str) -> list[str]:
    return [
        "run",
        "--host", "http://localhost:5000",
        "--namespace", "conformance/test",
        "--junit", str(tmp_path / "report.xml"),
        "--html", str(tmp_path / "report.html"),
        *extra,
    ]


# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------


class TestVersionFlag:
    def test_version_exits_zero(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


# ---------------------------------------------------------------------------
# list command
# ---------------------------------------------------------------------------


class TestListCommand:
    def test_lists_every_scenario(self) -> None:
        result = CliRunner().invoke(main, ["list"])
        assert result.exit_code == 0, result.output
        assert "manifest-without-media-type" in result.output
        assert "index-nested" in result.output
        assert "requires: index" in result.output
        assert "produces: manifest" in result.output
        assert "rejected with error substring" in result.output


# ---------------------------------------------------------------------------
# run command
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_conformant_registry_exits_zero(
        self, tmp_path: Path, use_fake_registry
    ) -> None:
        result = CliRunner().invoke(main, _run_args(tmp_path))
        assert result.exit_code == 0, result.output
        assert "16 passed, 0 failed, 0 errored" in result.output
        assert "localhost:5000/conformance/test:demo" in result.output

    def test_writes_reports(self, tmp_path: Path, use_fake_registry) -> None:
        CliRunner().invoke(main, _run_args(tmp_path))
        suite = ET.parse(tmp_path / "report.xml").getroot().find("testsuite")
        assert suite.get("tests") == "16"
        assert (tmp_path / "report.html").read_text(encoding="utf-8").startswith("<!DOCTYPE html>")

    def test_failures_exit_non_zero(
        self, tmp_path: Path, use_fake_registry, fake_registry
    ) -> None:
        fake_registry.lenient = True
        result = CliRunner().invoke(main, _run_args(tmp_path))
        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert "13 passed, 3 failed, 0 errored" in result.output

    def test_errors_exit_non_zero(
        self, tmp_path: Path, use_fake_registry, fake_registry
    ) -> None:
        fake_registry.blob_error = "blob store offline"
        result = CliRunner().invoke(main, _run_args(tmp_path))
        assert result.exit_code == 1
        assert "ERRORED" in result.output
        assert "blob store offline" in result.output

    def test_only_runs_selection_with_dependencies(
        self, tmp_path: Path, use_fake_registry
    ) -> None:
        result = CliRunner().invoke(main, _run_args(tmp_path, "--only", "manifest-with-subject"))
        assert result.exit_code == 0, result.output
        assert "2 passed" in result.output
        assert "manifest-default-media-type" in result.output

    def test_unknown_only_is_usage_error(self, tmp_path: Path, use_fake_registry) -> None:
        result = CliRunner().invoke(main, _run_args(tmp_path, "--only", "nope"))
        assert result.exit_code == 2
        assert "unknown scenario" in result.output

    def test_missing_host_is_usage_error(self, use_fake_registry) -> None:
        result = CliRunner().invoke(main, ["run", "--namespace", "ns"])
        assert result.exit_code == 2
        assert "REGISTRY_HOST" in result.output
        assert use_fake_registry == []

    def test_environment_configures_run(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, use_fake_registry
    ) -> None:
        monkeypatch.setenv("REGISTRY_HOST", "https://registry.example.com")
        monkeypatch.setenv("REGISTRY_NAMESPACE", "team/conformance")
        monkeypatch.setenv("REGISTRY_USER", "robot")
        result = CliRunner().invoke(
            main,
            ["run", "--junit", str(tmp_path / "r.xml"), "--html", str(tmp_path / "r.html")],
        )
        assert result.exit_code == 0, result.output
        settings = use_fake_registry[0]
        assert settings.user == "robot"
        assert settings.tls is True
        assert "registry.example.com/team/conformance:demo" in result.output

    def test_debug_enables_debug_logging(
        self, tmp_path: Path, use_fake_registry, logging_calls
    ) -> None:
        CliRunner().invoke(main, _run_args(tmp_path, "--debug", "--json-logs"))
        assert logging_calls == [("DEBUG", True)]
        assert use_fake_registry[0].debug is True

    def test_custom_data_dir(self, tmp_path: Path, data_dir: Path, use_fake_registry, fake_registry) -> None:
        result = CliRunner().invoke(main, _run_args(tmp_path, "--data-dir", str(data_dir)))
        assert result.exit_code == 0, result.output
        assert b"layer content\n" in fake_registry.blobs.values()
