"""Sync Stock Use Case.

Stock rows become rows of the devices table. The free-text model and
distributor cells are resolved to catalog ids, creating catalog rows for
names seen for the first time.
"""

from typing import Optional

from ..domain.entities import EntityKind, SheetRecord, SyncResult
from ..domain.ports import (
    IDistributorRepository,
    IPhoneModelRepository,
    IRecordParser,
    ISnapshotProvider,
)
from .reconcile import BulkReconciler
from .resolvers import DistributorResolver, PhoneModelResolver
from .sync_entity import SyncEntityUseCase


class SyncStockUseCase(SyncEntityUseCase):
    """Reconciles the devices table against the stock sheet."""

    kind = EntityKind.STOCK

    def __init__(
        self,
        reconciler: BulkReconciler,
        parser: IRecordParser,
        distributor_repo: IDistributorRepository,
        model_repo: IPhoneModelRepository,
        snapshot_provider: Optional[ISnapshotProvider] = None,
    ):
        super().__init__(reconciler, parser, snapshot_provider)
        self.distributor_repo = distributor_repo
        self.model_repo = model_repo

    async def prepare(self, records: list[SheetRecord], result: SyncResult) -> None:
        distributors = DistributorResolver(self.distributor_repo)
        models = PhoneModelResolver(self.model_repo)
        await distributors.seed()
        await models.seed()

        for record in records:
            record.model_id = await models.resolve(record.brand, record.model)
            record.distributor_id = await distributors.resolve(record.distributor_name)

        result.created_distributors = distributors.created
        result.created_models = models.created
