"""
Host identity.

Snapshots are bound to the host they were taken on through an
environment tag: a short hash of hostname, operating system and machine
id. Restoring a snapshot onto a host with a different tag is refused.
"""

import hashlib
import logging
import platform
import socket
from pathlib import Path
from typing import Optional

from .adapters.base import ConfigStore
from .protocol.errors import AdapterError

logger = logging.getLogger(__name__)

MACHINE_GUID_PATH = r"HKEY_LOCAL_MACHINE\SOFTWARE\Microsoft\Cryptography"
MACHINE_GUID_NAME = "MachineGuid"

MACHINE_ID_FILES = (
    Path("/etc/machine-id"),
    Path("/var/lib/dbus/machine-id"),
)

TAG_LENGTH = 16


def read_machine_id(config_store: Optional[ConfigStore] = None) -> str:
    """
    Machine id: Windows MachineGuid through the config store, else the
    systemd/dbus machine-id file. Empty when neither is available.
    """
    if config_store is not None:
        try:
            value = config_store.get(MACHINE_GUID_PATH, MACHINE_GUID_NAME)
        except AdapterError as e:
            logger.debug("Cannot read MachineGuid: %s", e)
            value = None
        if isinstance(value, str) and value.strip():
            return value.strip().lower()

    for path in MACHINE_ID_FILES:
        try:
            text = path.read_text().strip()
        except OSError:
            continue
        if text:
            return text.lower()

    logger.debug("No machine id available; tag uses hostname and OS only")
    return ""


def compute_environment_tag(
    config_store: Optional[ConfigStore] = None,
    override: str = "",
) -> str:
    """
    Stable identifier of the current host.

    Args:
        config_store: Store to read the Windows MachineGuid from
        override: Tag from configuration; returned as-is when set

    Returns:
        16 hex characters of SHA-256(hostname, OS, machine id)
    """
    if override:
        return override

    parts = [
        socket.gethostname().lower(),
        platform.system().lower(),
        read_machine_id(config_store),
    ]
    digest = hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()
    return digest[:TAG_LENGTH]
