"""
Operations on servers that are already registered.

Deleting a server removes its whole directory, so it only happens after
two separate confirmations: one for the intent and one naming the path.
"""

import dataclasses
import logging
import shutil
from pathlib import Path
from typing import Any, Callable, Optional

from ..config.registry import Registry
from ..constants import EDITABLE_FIELDS, PORT_FIELD, PORT_PROPERTY
from ..exceptions import ConfigError, ConfigErrorCode, ValidationError
from ..models import LineEvent, ManagedServer, ProcessOutcome, ServerKind
from ..process.supervisor import ProcessSupervisor
from ..utils.properties import set_property
from ..utils.system import validate_java_home
from ..utils.validation import ServerValidator
from .forge import point_run_scripts

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


def require_server(registry: Registry, name: str) -> ManagedServer:
    server = registry.get(name=name)
    if server is None:
        raise ConfigError(f"Server '{name}' not found", ConfigErrorCode.SERVER_NOT_FOUND)
    return server


def delete_server(registry: Registry, name: str, confirm: Confirm) -> bool:
    """
    Delete a server's directory and its registry record.

    Args:
        registry: Registry holding the server
        name: Server name
        confirm: Asks the operator a yes/no question

    Returns:
        True if the server was deleted, False if either confirmation was declined
    """
    server = require_server(registry, name)

    if not confirm(f"Do you really want to delete the server {server.name}?"):
        logger.info("Deletion cancelled.")
        return False
    if not confirm(f"All files in {server.path} will be deleted. Are you sure?"):
        logger.info("Deletion cancelled.")
        return False

    path = Path(server.path)
    if path.exists():
        shutil.rmtree(path)
        logger.info(f"Deleted {path}")
    else:
        logger.warning(f"Server directory {path} does not exist anymore")

    registry.remove(server.name)
    logger.info(f"Server {server.name} removed from config.")
    return True


def edit_server(registry: Registry, name: str, field: str, value: str) -> ManagedServer:
    """
    Replace a single field of a registered server.

    ``name``, ``path``, ``java`` and ``type`` edit the registry record;
    ``port`` rewrites ``server-port`` in the server's server.properties.
    A Forge server launches through its run scripts, so a ``java`` edit
    rewrites those too.
    """
    server = require_server(registry, name)

    if field == PORT_FIELD:
        port = ServerValidator.validate_port(value)
        set_property(Path(server.path) / "server.properties", PORT_PROPERTY, str(port))
        logger.info(f"Server {server.name} now listens on port {port}")
        return server

    attribute = EDITABLE_FIELDS.get(field)
    if attribute is None:
        raise ValidationError(
            f"Unknown field '{field}'. Choose one of: {', '.join([*EDITABLE_FIELDS, PORT_FIELD])}"
        )

    new_value: Any = value
    if attribute == "kind":
        new_value = ServerKind.parse(value)
    elif attribute == "name":
        new_value = ServerValidator.validate_name(value)

    updated = dataclasses.replace(server, **{attribute: new_value})
    registry.edit(server, updated)
    if attribute == "java" and updated.kind is ServerKind.FORGE:
        point_run_scripts(updated.path, updated.java, previous_java_home=server.java)
    logger.info(f"Updated {field} of server {server.name}")
    return updated


async def start_server(
    server: ManagedServer,
    on_event: Optional[Callable[[LineEvent], None]] = None,
    **supervisor_options: Any,
) -> ProcessOutcome:
    """Run a registered server in the foreground until it exits."""
    validate_java_home(server.java)
    supervisor = ProcessSupervisor.for_server(
        server.kind, server.path, server.java, first_boot=False, **supervisor_options
    )
    logger.info(f"Starting server {server.name}...")
    async for event in supervisor.events():
        if on_event:
            on_event(event)
    return supervisor.outcome
