"""Fabric Minecraft server placeholder; no upstream adapter resolves Fabric yet."""

from ..models import ServerKind
from .base import BaseServer


class FabricServer(BaseServer):
    """Fabric server. Provisioning fails with UNSUPPORTED_KIND."""

    @property
    def kind(self) -> ServerKind:
        return ServerKind.FABRIC
