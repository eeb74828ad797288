"""
Tests for the command-line interface.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import API, FakeResponse, FakeSession, release_json
from execman import __version__, main as cli
from execman.core.github_client import GitHubAPIClient
from execman.core.registry import ExecutableRecord, Registry


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda verbose=False, log_file=None: None)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def paths(tmp_path: Path):
    registry = tmp_path / "execman" / "registry.json"
    config = tmp_path / "execman" / "config.ini"
    return ["--registry", str(registry), "--config", str(config)], registry


@pytest.fixture
def seeded(paths):
    args, registry_path = paths
    registry = Registry(registry_path, default_install_dir="/opt/bin")
    registry.upsert("tool", ExecutableRecord(
        source="https://github.com/acme/tool",
        version="v1.0.0",
        installed_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        path="/opt/bin/tool",
        platform="linux/amd64",
    ))
    registry.save()
    return args


@pytest.fixture
def fake_api(monkeypatch):
    session = FakeSession()

    def client(**kwargs):
        return GitHubAPIClient(session=session, **kwargs)

    monkeypatch.setattr("execman.core.installer.GitHubAPIClient", client)
    return session


def test_version(capsys):
    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out == f"execman v{__version__}\n"


class TestList:

    def test_empty(self, paths, capsys):
        args, registry_path = paths
        assert cli.main(args + ["list"]) == 0
        assert "No managed executables." in capsys.readouterr().out
        assert not registry_path.exists()

    def test_text(self, seeded, capsys):
        assert cli.main(seeded + ["list"]) == 0
        out = capsys.readouterr().out
        assert "Managed executables:" in out
        assert "github.com/acme/tool" in out
        assert "installed 2026-03-01" in out
        assert out.rstrip().endswith("1 executable managed")

    def test_json(self, seeded, capsys):
        assert cli.main(seeded + ["list", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["executables"] == [{
            "name": "tool",
            "source": "https://github.com/acme/tool",
            "version": "v1.0.0",
            "path": "/opt/bin/tool",
            "installed_at": "2026-03-01T00:00:00Z",
        }]


class TestCheck:

    def test_json_reports_update(self, seeded, fake_api, capsys):
        fake_api.add(f"{API}/repos/acme/tool/releases",
                     FakeResponse.json_body([release_json("v1.1.0", [])]))

        assert cli.main(seeded + ["check", "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["updates_available"] == 1
        assert data["executables"][0]["latest_version"] == "v1.1.0"
        assert data["executables"][0]["update_available"] is True

    def test_text_summary(self, seeded, fake_api, capsys):
        fake_api.add(f"{API}/repos/acme/tool/releases",
                     FakeResponse.json_body([release_json("v1.0.0", [])]))

        assert cli.main(seeded + ["check"]) == 0

        out = capsys.readouterr().out
        assert "1 up to date, 0 updates available." in out

    def test_failure_sets_exit_status(self, seeded, fake_api, capsys):
        assert cli.main(seeded + ["check", "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["executables"][0]["error"]["code"] == "E404"

    def test_unmanaged_name(self, seeded, capsys):
        assert cli.main(seeded + ["check", "ghost"]) == 1
        assert "not managed" in capsys.readouterr().err


class TestRemove:

    def test_keep_file(self, seeded, paths, capsys):
        _, registry_path = paths
        assert cli.main(seeded + ["remove", "tool", "--keep-file"]) == 0
        assert "Removed tool v1.0.0" in capsys.readouterr().out
        assert Registry.load(registry_path).list() == []

    def test_unmanaged(self, paths, capsys):
        args, _ = paths
        assert cli.main(args + ["remove", "ghost"]) == 1
        assert capsys.readouterr().err.startswith("Error: ")


class TestConfig:

    def test_set_then_get(self, paths, capsys):
        args, _ = paths
        assert cli.main(args + ["config", "max_workers", "3"]) == 0
        assert cli.main(args + ["config", "max_workers"]) == 0
        assert capsys.readouterr().out.strip() == "3"

    def test_invalid_value(self, paths, capsys):
        args, _ = paths
        assert cli.main(args + ["config", "max_workers", "zero"]) == 1
        assert "max_workers" in capsys.readouterr().err

    def test_listing_masks_token(self, paths, capsys):
        args, _ = paths
        cli.main(args + ["config", "github_token", "ghp_secret"])
        capsys.readouterr()

        assert cli.main(args + ["config"]) == 0

        out = capsys.readouterr().out
        assert "github_token = ********" in out
        assert "ghp_secret" not in out


def test_corrupt_registry_is_reported(paths, capsys):
    args, registry_path = paths
    registry_path.parent.mkdir(parents=True)
    registry_path.write_text("[]garbage", encoding="utf-8")

    assert cli.main(args + ["list"]) == 1
    assert "registry" in capsys.readouterr().err.lower()
