"""Sync SIMs Use Case.

SIM rows carry their distributor inside the "Empresa" composite; every
distributor name is resolved (and created when new) before the upsert.
"""

from typing import Optional

from ..domain.entities import EntityKind, SheetRecord, SyncResult
from ..domain.ports import IDistributorRepository, IRecordParser, ISnapshotProvider
from .reconcile import BulkReconciler
from .resolvers import DistributorResolver
from .sync_entity import SyncEntityUseCase


class SyncSimsUseCase(SyncEntityUseCase):
    """Reconciles the sims table against the SIM sheet."""

    kind = EntityKind.SIM

    def __init__(
        self,
        reconciler: BulkReconciler,
        parser: IRecordParser,
        distributor_repo: IDistributorRepository,
        snapshot_provider: Optional[ISnapshotProvider] = None,
    ):
        super().__init__(reconciler, parser, snapshot_provider)
        self.distributor_repo = distributor_repo

    async def prepare(self, records: list[SheetRecord], result: SyncResult) -> None:
        distributors = DistributorResolver(self.distributor_repo)
        await distributors.seed()
        for record in records:
            record.distributor_id = await distributors.resolve(record.distributor_name)
        result.created_distributors = distributors.created
