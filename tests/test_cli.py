import pytest
from click.testing import CliRunner

from ezserver import cli
from ezserver.config.registry import Registry
from ezserver.config.settings import Settings
from ezserver.constants import MOJANG_MANIFEST_URL
from ezserver.exceptions import ConfigError, ConfigErrorCode, DownloadError, DownloadErrorCode
from ezserver.models import ManagedServer, ServerKind
from ezserver.utils.api import VersionResolver

from .conftest import json_transport


@pytest.fixture
def settings(tmp_path, monkeypatch):
    settings = Settings(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
    settings.set("registry.file", str(tmp_path / "servers.json"))
    monkeypatch.setattr(cli, "Settings", lambda: settings)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    return settings


@pytest.fixture
def runner():
    return CliRunner()


def test_list_without_servers(settings, runner):
    result = runner.invoke(cli.main, ["list"])

    assert result.exit_code == 0
    assert "No servers in the config." in result.output


def test_list_shows_servers(settings, runner, tmp_path):
    Registry(settings.registry_file).add(ManagedServer("lobby", str(tmp_path), "", ServerKind.PAPER))

    result = runner.invoke(cli.main, ["list"])

    assert result.exit_code == 0
    assert "lobby" in result.output
    assert "paper" in result.output


def test_remove_can_be_cancelled(settings, runner, tmp_path):
    (tmp_path / "lobby").mkdir()
    Registry(settings.registry_file).add(ManagedServer("lobby", str(tmp_path / "lobby"), "", ServerKind.PAPER))

    result = runner.invoke(cli.main, ["remove", "lobby"], input="y\nn\n")

    assert result.exit_code == 0
    assert "Deletion cancelled." in result.output
    assert (tmp_path / "lobby").is_dir()
    assert Registry(settings.registry_file).get(name="lobby") is not None


def test_remove_unknown_server(settings, runner):
    result = runner.invoke(cli.main, ["remove", "ghost"])

    assert result.exit_code == 1
    assert "Server not found in config." in result.output


def test_edit_java(settings, runner, tmp_path):
    Registry(settings.registry_file).add(ManagedServer("lobby", str(tmp_path), "", ServerKind.PAPER))

    result = runner.invoke(cli.main, ["edit", "lobby", "java", "/opt/java21"])

    assert result.exit_code == 0
    assert Registry(settings.registry_file).get(name="lobby").java == "/opt/java21"


def test_create_rejects_invalid_version(settings, runner, tmp_path):
    result = runner.invoke(cli.main, ["create", "lobby", "paper", "1.20-pre1", "--dir", str(tmp_path / "lobby")])

    assert result.exit_code == 1
    assert "Invalid version number" in result.output
    assert not (tmp_path / "lobby").exists()


def test_create_rejects_plugins_for_vanilla(settings, runner, tmp_path):
    result = runner.invoke(cli.main, [
        "create", "lobby", "vanilla", "1.20.4", "--dir", str(tmp_path / "lobby"),
        "--plugin", "essentials=spiget:9089",
    ])

    assert result.exit_code == 1
    assert "Plugins are not supported" in result.output


@pytest.mark.parametrize("error,message", [
    (DownloadError("x", DownloadErrorCode.VERSION_NOT_FOUND), "Provided version cannot be found."),
    (DownloadError("x", DownloadErrorCode.DESTINATION_NOT_FOUND), "Destination directory not found."),
    (DownloadError("x", DownloadErrorCode.NO_BUILDS), "No builds found for the version."),
    (DownloadError("x", DownloadErrorCode.UNSUPPORTED_KIND), "Unsupported server type."),
    (ConfigError("Server with the same path already exists", ConfigErrorCode.SERVER_EXISTS),
     "Server with the same path already exists"),
    (ConfigError("x", ConfigErrorCode.SAVE_ERROR), "Error while saving the config."),
])
def test_describe_error(error, message):
    assert cli.describe_error(error) == message


def test_versions_marks_latest_and_reads_java_from_metadata(settings, runner, monkeypatch):
    routes = {
        MOJANG_MANIFEST_URL: {
            "latest": {"release": "1.21.1"},
            "versions": [
                {"id": "1.21.1", "type": "release", "url": "https://meta.test/1.21.1.json"},
                {"id": "1.20.4", "type": "release", "url": "https://meta.test/1.20.4.json"},
            ],
        },
        "https://meta.test/1.21.1.json": {"javaVersion": {"majorVersion": 22}},
        "https://meta.test/1.20.4.json": {"id": "1.20.4"},
    }
    monkeypatch.setattr(
        cli, "VersionResolver", lambda timeout: VersionResolver(timeout, transport=json_transport(routes))
    )

    result = runner.invoke(cli.main, ["versions", "vanilla"])

    assert result.exit_code == 0
    assert "1.21.1 (latest)" in result.output
    assert "Java 22" in result.output
    assert "Java 17" in result.output
