import stat
import subprocess
import sys

import pytest

from ezserver.constants import (
    FORGE_PROMOTIONS_URL, PAPER_API_URL, SPIGET_API_URL, SPIGOT_BUILDTOOLS_URL,
)
from ezserver.exceptions import (
    ConfigError, ConfigErrorCode, DownloadError, DownloadErrorCode,
    ServerInstallationError, ValidationError,
)
from ezserver.models import ManagedServer, PluginSource, ProcessOutcome, ServerKind
from ezserver.process.build import BuildRunner
from ezserver.servers.fabric import FabricServer
from ezserver.servers.forge import ForgeServer, point_run_scripts
from ezserver.servers.paper import PaperServer
from ezserver.servers.spigot import SpigotServer
from ezserver.utils.api import VersionResolver
from ezserver.utils.download import Downloader
from ezserver.utils.properties import read_properties
from ezserver.utils.system import java_executable

from .conftest import json_transport

PAPER_JAR_URL = f"{PAPER_API_URL}/versions/1.20.4/builds/15/downloads/paper-1.20.4-15.jar"


def paper_routes(extra=None):
    routes = {
        f"{PAPER_API_URL}/versions/1.20.4": {"builds": [10, 15]},
        PAPER_JAR_URL: b"paper jar",
    }
    routes.update(extra or {})
    return routes


def clients(routes, calls=None):
    transport = json_transport(routes, calls)
    return {"resolver": VersionResolver(transport=transport), "downloader": Downloader(transport=transport)}


class RecordingBuildRunner(BuildRunner):
    def __init__(self, on_build=None):
        self.calls = []
        self._on_build = on_build

    async def build(self, artifact, work_dir, java_home, args=(), observer=None):
        self.calls.append((artifact, work_dir, java_home, list(args)))
        if self._on_build:
            self._on_build(work_dir)
        return ProcessOutcome.completed(0)


async def test_install_downloads_and_registers(tmp_path, registry):
    server = PaperServer("lobby", "1.20.4", tmp_path / "lobby", port=25570, **clients(paper_routes()))

    result = await server.install(registry, first_boot=False)

    assert (tmp_path / "lobby" / "server.jar").read_bytes() == b"paper jar"
    assert (tmp_path / "lobby" / "eula.txt").read_text() == "eula=true\n"
    assert read_properties(tmp_path / "lobby" / "server.properties") == {"server-port": "25570"}
    assert result.registered
    assert result.first_boot is None
    assert registry.get(name="lobby") == ManagedServer("lobby", str(tmp_path / "lobby"), "", ServerKind.PAPER)


async def test_install_reports_progress(tmp_path):
    server = PaperServer("lobby", "1.20.4", tmp_path / "lobby", **clients(paper_routes()))
    seen = []

    await server.install(progress=lambda d, t: seen.append((d, t)), first_boot=False)

    assert seen[-1] == (9, 9)


async def test_install_rejects_duplicate_name_before_downloading(tmp_path, registry):
    registry.add(ManagedServer("lobby", "/srv/other", "", ServerKind.VANILLA))
    calls = []
    server = PaperServer("lobby", "1.20.4", tmp_path / "lobby", **clients(paper_routes(), calls))

    with pytest.raises(ConfigError) as exc_info:
        await server.install(registry, first_boot=False)

    assert exc_info.value.code is ConfigErrorCode.SERVER_EXISTS
    assert calls == []
    assert not (tmp_path / "lobby").exists()


async def test_failed_first_boot_is_not_registered(tmp_path, registry):
    server = PaperServer("lobby", "1.20.4", tmp_path / "lobby", java_home=tmp_path / "jdk", **clients(paper_routes()))

    async def failing_first_boot():
        return ProcessOutcome.completed(1)

    server.run_first_boot = failing_first_boot

    result = await server.install(registry)

    assert result.first_boot.exit_code == 1
    assert not result.registered
    assert len(registry) == 0


async def test_successful_first_boot_is_registered(tmp_path, registry):
    server = PaperServer("lobby", "1.20.4", tmp_path / "lobby", java_home=tmp_path / "jdk", **clients(paper_routes()))

    async def first_boot():
        return ProcessOutcome.completed(0)

    server.run_first_boot = first_boot

    result = await server.install(registry)

    assert result.registered
    assert registry.get(name="lobby").java == str(tmp_path / "jdk")


async def test_first_boot_is_skipped_without_java(tmp_path, registry):
    server = PaperServer("lobby", "1.20.4", tmp_path / "lobby", **clients(paper_routes()))

    result = await server.install(registry)

    assert result.first_boot is None
    assert result.registered


async def test_unknown_version_propagates(tmp_path):
    server = PaperServer("lobby", "9.9", tmp_path / "lobby", **clients(paper_routes()))

    with pytest.raises(DownloadError) as exc_info:
        await server.install(first_boot=False)

    assert exc_info.value.code is DownloadErrorCode.VERSION_NOT_FOUND


async def test_fabric_is_unsupported(tmp_path):
    server = FabricServer("mods", "1.20.4", tmp_path / "mods", **clients({}))

    with pytest.raises(DownloadError) as exc_info:
        await server.install(first_boot=False)

    assert exc_info.value.code is DownloadErrorCode.UNSUPPORTED_KIND
    assert not (tmp_path / "mods").exists()


async def test_install_with_plugins(tmp_path):
    routes = paper_routes({f"{SPIGET_API_URL}/resources/1234/download": b"plugin jar"})
    server = PaperServer("lobby", "1.20.4", tmp_path / "lobby", **clients(routes))

    await server.install(first_boot=False, plugins=[PluginSource("essentials", spiget_id=1234)])

    assert (tmp_path / "lobby" / "plugins" / "essentials.jar").read_bytes() == b"plugin jar"


def test_blank_version_is_rejected(tmp_path):
    with pytest.raises(ValidationError):
        PaperServer("lobby", "  ", tmp_path / "lobby")


async def test_server_used_as_context_manager_owns_clients(tmp_path):
    server = PaperServer("lobby", "1.20.4", tmp_path / "lobby")

    with pytest.raises(ServerInstallationError):
        server.resolver

    async with server:
        assert isinstance(server.resolver, VersionResolver)
        assert isinstance(server.downloader, Downloader)


async def test_spigot_build_needs_java(tmp_path):
    server = SpigotServer("spigot", "1.20.4", tmp_path / "spigot", use_build=True, **clients({}))

    with pytest.raises(ValidationError):
        await server.install(first_boot=False)


async def test_spigot_build_compiles_and_cleans_up(tmp_path):
    def compile_jar(work_dir):
        (work_dir / "spigot-1.20.4.jar").write_bytes(b"compiled")

    runner = RecordingBuildRunner(on_build=compile_jar)
    server = SpigotServer(
        "spigot", "1.20.4", tmp_path / "spigot", java_home=tmp_path / "jdk",
        build_runner=runner, use_build=True, **clients({SPIGOT_BUILDTOOLS_URL: b"buildtools"}),
    )

    await server.install(first_boot=False)

    assert (tmp_path / "spigot" / "server.jar").read_bytes() == b"compiled"
    assert not server.build_directory.exists()
    artifact, work_dir, java_home, args = runner.calls[0]
    assert work_dir == server.build_directory
    assert args == ["--rev", "1.20.4"]


async def test_spigot_build_without_output_jar(tmp_path):
    server = SpigotServer(
        "spigot", "1.20.4", tmp_path / "spigot", java_home=tmp_path / "jdk",
        build_runner=RecordingBuildRunner(), use_build=True,
        **clients({SPIGOT_BUILDTOOLS_URL: b"buildtools"}),
    )

    with pytest.raises(ServerInstallationError, match="Spigot JAR not found"):
        await server.install(first_boot=False)


async def test_forge_installs_and_patches_run_scripts(tmp_path):
    installer_url = (
        "https://maven.minecraftforge.net/net/minecraftforge/forge/"
        "1.20.1-47.3.0/forge-1.20.1-47.3.0-installer.jar"
    )
    routes = {
        FORGE_PROMOTIONS_URL: {"promos": {"1.20.1-latest": "47.3.0"}},
        installer_url: b"installer",
    }

    def install(work_dir):
        (work_dir / "run.sh").write_text('java @user_jvm_args.txt "$@"\n')

    runner = RecordingBuildRunner(on_build=install)
    server = ForgeServer(
        "modded", "1.20.1", tmp_path / "modded", java_home=tmp_path / "my jdk",
        build_runner=runner, **clients(routes),
    )

    await server.install(first_boot=False)

    assert (tmp_path / "modded" / "forge-1.20.1-47.3.0-installer.jar").read_bytes() == b"installer"
    assert runner.calls[0][3] == ["--installServer"]
    java = java_executable(tmp_path / "my jdk")
    assert (tmp_path / "modded" / "run.sh").read_text() == f'"{java}" @user_jvm_args.txt "$@"\n'


async def test_forge_needs_java_before_touching_the_directory(tmp_path):
    server = ForgeServer("modded", "1.20.1", tmp_path / "modded", **clients({}))

    with pytest.raises(ValidationError):
        await server.install(first_boot=False)

    assert not (tmp_path / "modded").exists()


def test_run_scripts_keep_windows_line_endings(tmp_path):
    run_bat = tmp_path / "run.bat"
    run_bat.write_bytes(b"REM Forge\r\njava @user_jvm_args.txt %*\r\npause\r\n")

    assert point_run_scripts(tmp_path, tmp_path / "jdk") == [run_bat]

    java = str(java_executable(tmp_path / "jdk")).encode()
    assert run_bat.read_bytes() == b'REM Forge\r\n"' + java + b'" @user_jvm_args.txt %*\r\npause\r\n'


@pytest.mark.skipif(sys.platform == "win32", reason="runs the unix run script")
def test_patched_run_script_launches_java_from_a_path_with_spaces(tmp_path):
    java = java_executable(tmp_path / "my jdk")
    java.parent.mkdir(parents=True)
    java.write_text('#!/bin/sh\necho "launched with $1"\n')
    java.chmod(java.stat().st_mode | stat.S_IXUSR)
    run_sh = tmp_path / "run.sh"
    run_sh.write_text('#!/usr/bin/env sh\njava @user_jvm_args.txt "$@"\n')

    point_run_scripts(tmp_path, tmp_path / "my jdk")
    result = subprocess.run(["sh", str(run_sh)], cwd=tmp_path, capture_output=True, text=True)

    assert result.returncode == 0, result.stderr
    assert result.stdout == "launched with @user_jvm_args.txt\n"
