"""
EZServer - Provision and supervise local Minecraft servers from your terminal.

This package resolves Vanilla, Spigot, Paper and Forge versions to
downloadable artifacts, fetches or builds them, runs a first-boot check
of the new server and keeps a registry of the servers it manages.
"""

__version__ = "2.2.1"
__author__ = "Mime"
