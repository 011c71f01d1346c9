"""
Smoke tests for the Typer command-line interface.
"""

import pytest
from rich.console import Console
from typer.testing import CliRunner

from truckersmp_cli import __version__
from truckersmp_cli.__main__ import report_failure
from truckersmp_cli.cli import app as app_module
from truckersmp_cli.core.sync_manager import SyncReport, SyncState
from truckersmp_cli.exceptions import RetryBudgetExhaustedError, SyncIncompleteError
from truckersmp_cli.models.manifest import ManifestEntry
from tests.conftest import BASE_URL, FakeTransport, manifest_doc

runner = CliRunner()

FILES = {"data/core.scs": b"core", "data/ets2/map.scs": b"map"}


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    config_file = tmp_path / "config" / "config.ini"
    monkeypatch.setattr(app_module, "CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def fake_client(monkeypatch):
    transports = []

    class FakeClient:
        def __init__(self, *args, **kwargs):
            self.transport = FakeTransport(
                manifest=manifest_doc(
                    ("system", "data/core.scs", b"core"),
                    ("ets2", "data/ets2/map.scs", b"map"),
                ),
                files=dict(FILES),
            )
            transports.append(self.transport)

        async def __aenter__(self):
            return self.transport

        async def __aexit__(self, *exc):
            return None

    monkeypatch.setattr(app_module, "TruckersMPClient", FakeClient)
    return transports


def test_version_flag():
    result = runner.invoke(app_module.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_writes_config(isolated_config):
    result = runner.invoke(app_module.app, ["init"])

    assert result.exit_code == 0
    assert isolated_config.is_file()
    assert "concurrency_limit = 8" in isolated_config.read_text(encoding="utf-8")


def test_update_downloads_into_content_dir(isolated_config, fake_client, tmp_path):
    content = tmp_path / "content"
    args = ["update", "--content-dir", str(content), "-w", "2"]

    runner.invoke(app_module.app, ["init"])
    isolated_config.write_text(
        isolated_config.read_text(encoding="utf-8").replace(
            "download_url = https://download-new.ets2mp.com/files/",
            f"download_url = {BASE_URL}",
        ),
        encoding="utf-8",
    )
    result = runner.invoke(app_module.app, args)

    assert result.exit_code == 0, result.output
    assert (content / "data/core.scs").read_bytes() == b"core"
    assert (content / "data/ets2/map.scs").read_bytes() == b"map"
    assert "Sync Complete" in result.output


def test_update_failure_exits_non_zero(isolated_config, fake_client, tmp_path):
    runner.invoke(app_module.app, ["init"])
    args = ["update", "--content-dir", str(tmp_path / "content"), "-r", "1"]

    result = runner.invoke(app_module.app, args)

    # Default download URL does not match the fake server, so nothing converges.
    assert result.exit_code != 0
    assert isinstance(result.exception, RetryBudgetExhaustedError)


def test_incomplete_sync_reports_summary_and_residual_paths(capsys):
    residual = _entries_for("data/core.scs")
    report = SyncReport(state=SyncState.FAILED, residual=residual)
    error = SyncIncompleteError(
        "1 file(s) do not match the manifest and retries are disabled.",
        residual=residual,
        report=report,
    )

    code = report_failure(error, Console(width=120))

    out = capsys.readouterr().out
    assert code == 1
    assert "Sync Incomplete" in out
    assert "data/core.scs" in out
    assert "--no-retry" in out


def test_unexpected_errors_exit_with_failure(capsys):
    code = report_failure(RuntimeError("kaput"), Console(width=120))

    assert code == 1
    assert "kaput" in capsys.readouterr().out


def _entries_for(*paths):
    return tuple(
        ManifestEntry(content_hash="0" * 32, category="system", relative_path=p)
        for p in paths
    )
