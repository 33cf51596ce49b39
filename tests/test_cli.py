import pytest
from typer.testing import CliRunner

from manifest_sync import __version__
from manifest_sync.cli import app as cli_app

runner = CliRunner()


@pytest.fixture(autouse=True)
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config" / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_FILE", path)
    return path


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_sync_without_url_fails():
    result = runner.invoke(cli_app.app, ["sync"])
    assert result.exit_code == 1
    assert "No manifest URL" in result.output


def test_sync_rejects_invalid_url():
    result = runner.invoke(cli_app.app, ["sync", "not-a-url"])
    assert result.exit_code == 1


def test_init_then_validate(config_file, tmp_path):
    result = runner.invoke(
        cli_app.app,
        ["init", "https://example.com/index.json", "-o", str(tmp_path / "data")],
    )
    assert result.exit_code == 0
    assert config_file.is_file()
    assert "https://example.com/index.json" in config_file.read_text(encoding="utf-8")

    result = runner.invoke(cli_app.app, ["validate"])
    assert result.exit_code == 0
    assert "Validated Settings" in result.output


def test_init_refuses_overwrite_without_confirmation(config_file):
    assert runner.invoke(cli_app.app, ["init"]).exit_code == 0

    result = runner.invoke(cli_app.app, ["init"], input="n\n")
    assert result.exit_code != 0


def test_show_config_requires_file():
    result = runner.invoke(cli_app.app, ["--show-config"])
    assert result.exit_code == 1


def test_sync_reports_unreachable_manifest(tmp_path):
    result = runner.invoke(
        cli_app.app,
        [
            "sync",
            "http://127.0.0.1:9/index.json",
            "-o",
            str(tmp_path / "out"),
            "-w",
            "2",
        ],
    )
    assert result.exit_code == 1
    assert "Synchronization Failed" in result.output
