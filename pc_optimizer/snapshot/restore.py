"""
Snapshot restore - writes captured state back to the host.
"""

import logging

from .models import RestoreReport, Snapshot
from ..adapters.base import ConfigStore, ServiceController
from ..protocol.errors import AdapterError

logger = logging.getLogger(__name__)


class SnapshotRestore:
    """Restores keys and service startup modes to snapshot state."""

    def __init__(self, config_store: ConfigStore, services: ServiceController):
        self.config_store = config_store
        self.services = services

    def restore(self, snapshot: Snapshot) -> RestoreReport:
        """
        Restore host state from a snapshot.

        Strategy:
        1. Keys with a previous value get it written back
        2. Keys that were absent are deleted
        3. Services get their previous startup mode; run status is left alone

        Every item is attempted. Failures are collected in the report
        rather than raised, so one locked key does not block the rest.

        Args:
            snapshot: The snapshot to restore to

        Returns:
            RestoreReport with per-item outcome
        """
        report = RestoreReport(snapshot_id=snapshot.id)

        for key in snapshot.captured_keys:
            try:
                if key.previous is None:
                    self.config_store.delete(key.path, key.name)
                else:
                    self.config_store.set(key.path, key.name, key.previous)
                report.restored_keys += 1
            except AdapterError as e:
                logger.warning("Restore of %s failed: %s", key.label, e)
                report.failed_keys.append(key.label)
                report.errors.append(f"{key.label}: {e}")

        for service in snapshot.captured_services:
            try:
                self.services.set_startup_mode(service.name, service.previous_startup_mode)
                report.restored_services += 1
            except AdapterError as e:
                logger.warning("Restore of service %s failed: %s", service.name, e)
                report.failed_services.append(service.name)
                report.errors.append(f"{service.name}: {e}")

        return report
