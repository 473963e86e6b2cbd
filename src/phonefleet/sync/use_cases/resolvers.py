"""Catalog resolvers used by the sync orchestrators.

A resolver turns a free-text name from the sheet into a stable catalog id,
creating the catalog row on a miss. Each resolver instance belongs to one
sync run: it is seeded once with the whole catalog, and its cache and
`created` counter die with the run.
"""

import logging
from typing import Optional

from ..domain.ports import IDistributorRepository, IPhoneModelRepository

logger = logging.getLogger(__name__)


def normalize_distributor_name(name: Optional[str]) -> Optional[str]:
    r"""Trim a distributor name; UNC-like paths resolve to their first segment.

    "\\EDEA\Compartido" resolves to "EDEA".
    """
    if name is None:
        return None
    name = name.strip()
    if name.startswith("\\\\"):
        segment = name[2:].split("\\")[0].strip()
        name = segment or name
    return name or None


class _SeededCache:
    """Case-insensitive name -> id cache filled once per run."""

    def __init__(self):
        self._ids: dict[str, str] = {}
        self._seeded = False
        self.created = 0

    @staticmethod
    def _key(*parts: str) -> str:
        return "|".join(p.strip().lower() for p in parts)

    def __len__(self) -> int:
        return len(self._ids)


class DistributorResolver(_SeededCache):
    """Resolves distributor names to ids for one sync run.

    Example:
        resolver = DistributorResolver(PostgresDistributorRepository(pool))
        await resolver.seed()
        distributor_id = await resolver.resolve("ACME Norte")
    """

    def __init__(self, repo: IDistributorRepository):
        super().__init__()
        self.repo = repo

    async def seed(self) -> None:
        """Load every existing distributor into the cache."""
        if self._seeded:
            return
        for distributor_id, name in await self.repo.list_all():
            self._ids.setdefault(self._key(name), str(distributor_id))
        self._seeded = True
        logger.debug(f"Distributor cache seeded with {len(self._ids)} entries")

    async def resolve(self, name: Optional[str]) -> Optional[str]:
        """Return the id for name, creating the distributor on a miss.

        Blank names resolve to None.
        """
        if not self._seeded:
            await self.seed()

        normalized = normalize_distributor_name(name)
        if normalized is None:
            return None

        key = self._key(normalized)
        distributor_id = self._ids.get(key)
        if distributor_id is None:
            distributor_id = str(await self.repo.create(normalized))
            self._ids[key] = distributor_id
            self.created += 1
            logger.info(f"Created distributor '{normalized}'")
        return distributor_id


class PhoneModelResolver(_SeededCache):
    """Resolves (brand, model) pairs to phone model ids for one sync run."""

    def __init__(self, repo: IPhoneModelRepository):
        super().__init__()
        self.repo = repo

    async def seed(self) -> None:
        if self._seeded:
            return
        for model_id, brand, model in await self.repo.list_all():
            self._ids.setdefault(self._key(brand, model), str(model_id))
        self._seeded = True

    async def resolve(self, brand: str, model: str) -> str:
        if not self._seeded:
            await self.seed()

        brand = brand.strip() or "Unknown"
        model = model.strip() or "Unknown"
        key = self._key(brand, model)
        model_id = self._ids.get(key)
        if model_id is None:
            model_id = str(await self.repo.create(brand, model))
            self._ids[key] = model_id
            self.created += 1
            logger.info(f"Created phone model '{brand} {model}'")
        return model_id
