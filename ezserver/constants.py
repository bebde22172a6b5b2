"""
Constants used throughout EZServer.

This module contains all hardcoded values used across the application
for easy maintenance and configuration.
"""

from typing import Dict, List, Set, Tuple

# Version resolution
LATEST_VERSION: str = "latest"
SERVER_JAR_NAME: str = "server.jar"
BUILD_DIRECTORY_NAME: str = "buildtools"
BUILDTOOLS_JAR_NAME: str = "BuildTools.jar"
PLUGINS_DIRECTORY_NAME: str = "plugins"

# Ports
MIN_PORT: int = 1
MAX_PORT: int = 65535
DEFAULT_PORT: int = 25565

# Limits
MAX_SERVER_NAME_LENGTH: int = 255

# Network settings
USER_AGENT: str = "ezserver"
DEFAULT_TIMEOUT_SECONDS: float = 30.0
DOWNLOAD_TIMEOUT_SECONDS: float = 300.0
DOWNLOAD_CHUNK_SIZE: int = 8192

# API URLs
MOJANG_MANIFEST_URL: str = "https://launchermeta.mojang.com/mc/game/version_manifest.json"
PAPER_API_URL: str = "https://api.papermc.io/v2/projects/paper"
FORGE_PROMOTIONS_URL: str = "https://files.minecraftforge.net/net/minecraftforge/forge/promotions_slim.json"
FORGE_MAVEN_URL: str = "https://maven.minecraftforge.net/net/minecraftforge/forge"
SPIGOT_MIRROR_URL: str = "https://download.getbukkit.org/spigot/spigot-{version}.jar"
SPIGOT_BUILDTOOLS_URL: str = "https://hub.spigotmc.org/jenkins/job/BuildTools/lastSuccessfulBuild/artifact/target/BuildTools.jar"
SPIGET_API_URL: str = "https://api.spiget.org/v2"
GITHUB_API_URL: str = "https://api.github.com"

# First boot supervision
FIRST_BOOT_STOP_DELAY_SECONDS: float = 5.0
STOP_COMMAND: str = "stop\n"
UNBLOCK_KEYSTROKE: str = "\n"

# stdout patterns
READY_PATTERN: str = r'Done \(\d+[.,]\d+s\)! For help, type "help"'
CHUNK_IO_STALL_PATTERN: str = r"(?i)chunk ?i/?o\b.*\b(?:stall|stalled|blocked|waiting)\b"
THREAD_POOL_STALL_PATTERN: str = r"(?i)thread ?pool\b.*\b(?:stall|stalled|blocked|waiting|exhausted)\b"

# Forge generated launch scripts
FORGE_UNIX_SCRIPT: str = "run.sh"
FORGE_WINDOWS_SCRIPT: str = "run.bat"

# Server kinds that can load Bukkit plugins
PLUGIN_CAPABLE_KINDS: Set[str] = {"spigot", "paper"}

# Java version fallback when Mojang metadata has no javaVersion entry
JAVA_VERSION_THRESHOLDS: List[Tuple[str, int]] = [
    ("1.20.5", 21),
    ("1.18", 17),
    ("1.17", 16),
]
DEFAULT_JAVA_VERSION: int = 8

# Validation
VERSION_SPEC_PATTERN: str = r"^\d+\.\d+(\.\d+)?$"
FORBIDDEN_SYSTEM_PATHS: List[str] = ['/etc', '/usr', '/var', '/boot', '/sys', '/proc', '/dev']

# Reserved names (Windows compatibility)
RESERVED_PATH_NAMES: Set[str] = {
    'CON', 'PRN', 'AUX', 'NUL', 'COM1', 'COM2', 'COM3', 'COM4', 'COM5',
    'COM6', 'COM7', 'COM8', 'COM9', 'LPT1', 'LPT2', 'LPT3', 'LPT4',
    'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9', 'COM0', 'LPT0'
}

# Editable registry fields and the ManagedServer attribute they map to
EDITABLE_FIELDS: Dict[str, str] = {
    "name": "name",
    "path": "path",
    "java": "java",
    "type": "kind",
}
PORT_FIELD: str = "port"
PORT_PROPERTY: str = "server-port"
