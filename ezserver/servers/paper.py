"""
Paper Minecraft server implementation.

Paper jars are taken from the last build the Paper API lists for the
selected version.
"""

from ..models import ServerKind
from .base import BaseServer


class PaperServer(BaseServer):
    """Paper Minecraft server implementation."""

    @property
    def kind(self) -> ServerKind:
        return ServerKind.PAPER
