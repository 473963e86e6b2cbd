"""Use cases layer - reconciliation and the per-kind sync orchestrators."""

from .reconcile import BulkReconciler
from .resolvers import DistributorResolver, PhoneModelResolver
from .sync_enrolled import SyncEnrolledDevicesUseCase
from .sync_entity import SyncEntityUseCase
from .sync_sims import SyncSimsUseCase
from .sync_stock import SyncStockUseCase
from .sync_tickets import SyncTicketsUseCase

__all__ = [
    "BulkReconciler",
    "DistributorResolver",
    "PhoneModelResolver",
    "SyncEnrolledDevicesUseCase",
    "SyncEntityUseCase",
    "SyncSimsUseCase",
    "SyncStockUseCase",
    "SyncTicketsUseCase",
]
