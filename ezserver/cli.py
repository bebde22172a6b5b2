"""
Command Line Interface for ezserver.

This module provides the main CLI interface using Click framework
for creating and managing Minecraft servers.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional, Tuple

import click
from rich.panel import Panel
from rich.progress import (
    BarColumn, DownloadColumn, Progress, SpinnerColumn, TextColumn, TransferSpeedColumn,
)
from rich.table import Table

from . import __version__
from .config.logging_config import console, setup_logging
from .config.registry import Registry
from .config.settings import Settings
from .exceptions import (
    ConfigError, ConfigErrorCode, DownloadError, DownloadErrorCode, EZServerError,
)
from .models import LineEvent, ServerKind
from .servers.fabric import FabricServer
from .servers.forge import ForgeServer
from .servers.manage import delete_server, edit_server, require_server, start_server
from .servers.paper import PaperServer
from .servers.spigot import SpigotServer
from .servers.vanilla import VanillaServer
from .utils.api import VersionResolver
from .utils.download import Downloader
from .utils.plugins import has_plugin_support, parse_plugin_source
from .utils.system import validate_java_home
from .utils.validation import validate_create_input

logger = logging.getLogger(__name__)

# Server type mapping
SERVER_TYPES = {
    ServerKind.VANILLA: VanillaServer,
    ServerKind.PAPER: PaperServer,
    ServerKind.SPIGOT: SpigotServer,
    ServerKind.FORGE: ForgeServer,
    ServerKind.FABRIC: FabricServer,
}

DOWNLOAD_ERROR_MESSAGES = {
    DownloadErrorCode.VERSION_NOT_FOUND: "Provided version cannot be found.",
    DownloadErrorCode.NO_BUILDS: "No builds found for the version.",
    DownloadErrorCode.UNSUPPORTED_KIND: "Unsupported server type.",
    DownloadErrorCode.DESTINATION_NOT_FOUND: "Destination directory not found.",
}

CONFIG_ERROR_MESSAGES = {
    ConfigErrorCode.SERVER_EXISTS: "A server with the same name or path already exists.",
    ConfigErrorCode.SERVER_NOT_FOUND: "Server not found in config.",
    ConfigErrorCode.SAVE_ERROR: "Error while saving the config.",
    ConfigErrorCode.LOAD_ERROR: "Error while loading the config.",
}


def describe_error(error: EZServerError) -> str:
    """Operator-facing message for an error."""
    if isinstance(error, DownloadError):
        return DOWNLOAD_ERROR_MESSAGES.get(error.code, error.message)
    if isinstance(error, ConfigError):
        if error.code is ConfigErrorCode.SERVER_EXISTS:
            return error.message
        return CONFIG_ERROR_MESSAGES.get(error.code, error.message)
    return error.message


def fail(error: Exception) -> NoReturn:
    """Report an error and exit with a non-zero status."""
    message = describe_error(error) if isinstance(error, EZServerError) else str(error)
    logger.debug(f"Command failed: {error!r}")
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def open_registry(settings: Settings) -> Registry:
    try:
        return Registry(settings.registry_file)
    except ConfigError as e:
        fail(e)


def confirm(settings: Settings, question: str, assume_yes: bool = False) -> bool:
    if assume_yes or not settings.get("ui.confirmation_prompts", True):
        return True
    return click.confirm(question)


def download_progress(progress: Progress, description: str):
    """Progress callback that drives one rich progress task."""
    task_id = progress.add_task(description, total=None)

    def callback(downloaded: int, total: int) -> None:
        progress.update(task_id, completed=downloaded, total=total or None)

    return callback


async def _install_server_async(server, **install_options: Any):
    """Async helper function to install server with proper resource management."""
    async with server:
        return await server.install(**install_options)


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--no-color', is_flag=True, help='Disable colored output')
@click.version_option(version=__version__, prog_name="ezserver")
@click.pass_context
def main(ctx: click.Context, debug: bool, no_color: bool) -> None:
    """ezserver - create, run and manage Minecraft servers."""
    settings = Settings()

    # Setup logging
    log_level = "DEBUG" if debug else settings.get("logging.level", "INFO")
    enable_rich = not no_color and settings.get("ui.colored_output", True)
    setup_logging(settings, log_level=log_level, enable_rich_logging=enable_rich)

    ctx.obj = settings


@main.command()
@click.argument('name')
@click.argument('server_type', type=click.Choice([kind.value for kind in ServerKind], case_sensitive=False))
@click.argument('version')
@click.option('--dir', '-d', 'directory', type=click.Path(), help='Server directory (default: ./NAME)')
@click.option('--port', '-p', default=25565, help='Server port (default: 25565)')
@click.option('--java', 'java_home', type=click.Path(), help='Java home used to build and run the server')
@click.option('--use-build', is_flag=True, help='Compile Spigot with BuildTools instead of downloading it')
@click.option('--yes', '-y', 'assume_yes', is_flag=True, help='Do not ask for confirmation')
@click.option('--overwrite', is_flag=True, help='Install into a non-empty directory without asking')
@click.option('--add/--no-add', default=True, help='Add the server to the config (default: add)')
@click.option('--skip-first', is_flag=True, help='Skip the first start of the server')
@click.option('--plugin', 'plugins', multiple=True,
              help='Plugin as NAME=spiget:ID or NAME=github:OWNER/REPO[:PATTERN]')
@click.pass_obj
def create(
    settings: Settings,
    name: str,
    server_type: str,
    version: str,
    directory: Optional[str],
    port: int,
    java_home: Optional[str],
    use_build: bool,
    assume_yes: bool,
    overwrite: bool,
    add: bool,
    skip_first: bool,
    plugins: Tuple[str, ...],
) -> None:
    """Create a server of the given type and version."""
    try:
        validated = validate_create_input(name, server_type, version, port, directory)
        kind = validated['kind']
        plugin_sources = [parse_plugin_source(plugin) for plugin in plugins]
        if plugin_sources and not has_plugin_support(kind):
            console.print(f"[red]Error: Plugins are not supported for a {kind.value} server.[/red]")
            sys.exit(1)
        if java_home:
            validate_java_home(java_home)
        if use_build and kind is not ServerKind.SPIGOT:
            console.print("[yellow]--use-build only applies to spigot servers, ignoring it.[/yellow]")
            use_build = False
    except EZServerError as e:
        fail(e)

    server_dir: Path = validated['directory']
    registry = open_registry(settings) if add else None

    if server_dir.exists() and any(server_dir.iterdir()) and not overwrite:
        if not confirm(settings, f"{server_dir} is not empty. Install into it anyway?", assume_yes):
            sys.exit(0)

    server_class = SERVER_TYPES[kind]
    kwargs: Dict[str, Any] = {
        "java_home": java_home,
        "port": validated['port'],
        "stop_delay": settings.stop_delay,
        "downloader": Downloader(
            timeout=settings.download_timeout,
            chunk_size=settings.chunk_size,
        ),
    }
    if kind is ServerKind.SPIGOT:
        kwargs["use_build"] = use_build
    server = server_class(validated['name'], validated['version'], server_dir, **kwargs)

    # Show installation info
    info_table = Table(title=f"{kind.value.title()} Server")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("Name", server.name)
    info_table.add_row("Minecraft Version", server.version)
    info_table.add_row("Server Port", str(server.port))
    info_table.add_row("Directory", str(server.directory))
    info_table.add_row("Java", java_home or "[yellow]none[/yellow]")
    if plugin_sources:
        info_table.add_row("Plugins", ", ".join(source.name for source in plugin_sources))
    console.print(info_table)

    if not confirm(settings, "Proceed with installation?", assume_yes):
        sys.exit(0)

    first_boot = not skip_first and settings.get("first_boot.enabled", True)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=console,
        ) as progress:
            result = asyncio.run(_install_server_async(
                server,
                registry=registry,
                progress=download_progress(progress, f"Downloading {kind.value} {server.version}"),
                first_boot=first_boot,
                plugins=plugin_sources,
            ))
    except EZServerError as e:
        fail(e)

    if result.first_boot is not None and not result.first_boot.succeeded:
        console.print(f"[red]The first start of the server {result.first_boot.describe()}.[/red]")
        sys.exit(1)

    lines = [f"[green]Created {kind.value} server {server.name}![/green]", "", f"Server directory: {server.directory}"]
    if result.registered:
        lines.append(f"To start the server, run: ezserver start {server.name}")
    console.print(Panel("\n".join(lines), title="Server Created", border_style="green"))


@main.command(name="list")
@click.pass_obj
def list_servers(settings: Settings) -> None:
    """List all servers in the config."""
    registry = open_registry(settings)

    if not len(registry):
        console.print("[yellow]No servers in the config.[/yellow]")
        return

    table = Table(title="Managed Minecraft Servers")
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Path", style="blue")
    table.add_column("Java", style="yellow")

    for server in registry:
        exists = Path(server.path).is_dir()
        table.add_row(
            server.name,
            server.kind.value,
            server.path if exists else f"[red]{server.path} (missing)[/red]",
            server.java or "-",
        )

    console.print(table)


@main.command()
@click.argument('name')
@click.pass_obj
def start(settings: Settings, name: str) -> None:
    """Start a server and attach to its console."""

    def echo(event: LineEvent) -> None:
        console.print(event.line, markup=False, highlight=False)

    try:
        server = require_server(open_registry(settings), name)
        outcome = asyncio.run(start_server(server, on_event=echo))
    except EZServerError as e:
        fail(e)

    if outcome.failed_to_spawn:
        console.print(f"[red]Server {outcome.describe()}.[/red]")
        sys.exit(1)
    console.print(f"Server {name} {outcome.describe()}.")
    sys.exit(outcome.exit_code or 0)


@main.command()
@click.argument('name')
@click.argument('field', type=click.Choice(["name", "path", "java", "type", "port"]))
@click.argument('value')
@click.pass_obj
def edit(settings: Settings, name: str, field: str, value: str) -> None:
    """Change the name, path, java, type or port of a server."""
    try:
        edit_server(open_registry(settings), name, field, value)
    except EZServerError as e:
        fail(e)
    console.print(f"[green]Updated {field} of server {name}.[/green]")


@main.command()
@click.argument('name')
@click.pass_obj
def remove(settings: Settings, name: str) -> None:
    """Delete a server and all of its files."""
    try:
        deleted = delete_server(open_registry(settings), name, click.confirm)
    except (EZServerError, OSError) as e:
        fail(e)

    if deleted:
        console.print(f"[green]Server {name} deleted.[/green]")
    else:
        console.print("[yellow]Deletion cancelled.[/yellow]")


async def _fetch_versions(kind: ServerKind, timeout: float, shown: int = 20):
    """Versions of a kind, the latest release and the Java each shown version needs."""
    async with VersionResolver(timeout) as resolver:
        available = await resolver.available_versions(kind)
        latest = None
        if kind in (ServerKind.VANILLA, ServerKind.PAPER) and available:
            latest = await resolver.latest_version(kind)
        java = await resolver.java_versions(available[-shown:]) if available else {}
    return available, latest, java


@main.command()
@click.argument('server_type', type=click.Choice([kind.value for kind in ServerKind], case_sensitive=False))
@click.pass_obj
def versions(settings: Settings, server_type: str) -> None:
    """List available versions for a server type."""
    kind = ServerKind.parse(server_type)
    if kind is ServerKind.SPIGOT:
        console.print("[yellow]Spigot versions follow the vanilla versions; see 'ezserver versions vanilla'.[/yellow]")
        return

    console.print(f"[bold blue]Fetching available {kind.value.title()} versions...[/bold blue]")
    try:
        available_versions, latest, java = asyncio.run(_fetch_versions(kind, settings.download_timeout))
    except EZServerError as e:
        fail(e)

    if not available_versions:
        console.print(f"[yellow]No versions found for {kind.value}[/yellow]")
        return

    table = Table(title=f"Available {kind.value.title()} Versions")
    table.add_column("Version", style="cyan")
    table.add_column("Java", style="green")

    # Show recent versions (last 20)
    for version in available_versions[-20:]:
        label = f"{version} (latest)" if version == latest else version
        table.add_row(label, f"Java {java[version]}")

    console.print(table)

    if len(available_versions) > 20:
        console.print(f"[dim]Showing recent 20 versions out of {len(available_versions)} total[/dim]")


@main.command(name="config")
@click.option('--reset', is_flag=True, help='Reset configuration to defaults')
@click.pass_obj
def config_cmd(settings: Settings, reset: bool) -> None:
    """Manage configuration settings."""

    if reset:
        if click.confirm("Are you sure you want to reset configuration to defaults?"):
            settings.reset_to_defaults()
            console.print("[green]Configuration reset to defaults.[/green]")
        return

    console.print(f"[blue]Configuration file: {settings.config_file}[/blue]")
    console.print(f"[blue]Server config: {settings.registry_file}[/blue]")
    console.print("Use --reset to reset to defaults or edit the file directly.")


if __name__ == "__main__":
    main()
