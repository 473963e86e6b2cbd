"""Sync Enrolled Devices Use Case.

Mirrors the monitoring agent's enrollment export into enrolled_devices.
Rows reference no catalog, so records go straight to the reconciler.
"""

from ..domain.entities import EntityKind
from .sync_entity import SyncEntityUseCase


class SyncEnrolledDevicesUseCase(SyncEntityUseCase):
    kind = EntityKind.ENROLLED
