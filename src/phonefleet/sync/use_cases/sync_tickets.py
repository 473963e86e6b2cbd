"""Sync Tickets Use Case.

Mirrors the support ticket export into tickets. Classification
(assignment vs replacement, R-/P- markers) happens in the parser.
"""

from ..domain.entities import EntityKind
from .sync_entity import SyncEntityUseCase


class SyncTicketsUseCase(SyncEntityUseCase):
    kind = EntityKind.TICKET
