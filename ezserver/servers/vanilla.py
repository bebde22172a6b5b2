"""
Vanilla Minecraft server implementation.

This module provides the VanillaServer class for installing vanilla
Minecraft servers from the Mojang version manifest.
"""

from ..models import ServerKind
from .base import BaseServer


class VanillaServer(BaseServer):
    """Vanilla Minecraft server implementation."""

    @property
    def kind(self) -> ServerKind:
        return ServerKind.VANILLA
