"""
Snapshot capture - reads the pre-batch state of keys and services.
"""

import logging
from typing import Iterable, List

from .models import CapturedKey, CapturedService, Snapshot
from ..adapters.base import ConfigStore, ServiceController
from ..catalog.models import KeyRef
from ..protocol.errors import AdapterError, ServiceNotFoundError, SnapshotError

logger = logging.getLogger(__name__)


class SnapshotCapture:
    """Captures the current value of every key and service a batch touches."""

    def __init__(self, config_store: ConfigStore, services: ServiceController):
        """
        Initialize snapshot capture.

        Args:
            config_store: Store the keys are read from
            services: Controller the startup modes are read from
        """
        self.config_store = config_store
        self.services = services

    def capture(
        self,
        keys: Iterable[KeyRef],
        services: Iterable[str],
        environment_tag: str,
        categories: Iterable[str] = (),
    ) -> Snapshot:
        """
        Capture configuration state.

        Reads are sequential. Absent keys are recorded with ``previous=None``
        so restore can delete them again. Services that are not installed are
        left out; there is nothing to restore for them.

        Args:
            keys: Keys to read
            services: Service names to read
            environment_tag: Tag of the host being captured
            categories: Categories of the batch, for listing

        Returns:
            Snapshot with captured state (not yet persisted)

        Raises:
            SnapshotError: if any read fails
        """
        return Snapshot.create(
            environment_tag=environment_tag,
            captured_keys=self._capture_keys(keys),
            captured_services=self._capture_services(services),
            categories=tuple(categories),
        )

    def _capture_keys(self, keys: Iterable[KeyRef]) -> List[CapturedKey]:
        captured = []
        for key in keys:
            try:
                previous = self.config_store.get(key.path, key.name)
            except AdapterError as e:
                raise SnapshotError(f"Cannot read {key}: {e}") from e
            captured.append(CapturedKey(key.path, key.name, previous))
        return captured

    def _capture_services(self, services: Iterable[str]) -> List[CapturedService]:
        captured = []
        for name in services:
            try:
                mode = self.services.get_startup_mode(name)
            except ServiceNotFoundError:
                logger.debug("Service %s not installed, not captured", name)
                continue
            except AdapterError as e:
                raise SnapshotError(f"Cannot read startup mode of {name}: {e}") from e
            captured.append(CapturedService(name, mode))
        return captured
