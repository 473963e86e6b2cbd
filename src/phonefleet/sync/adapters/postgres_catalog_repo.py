"""PostgreSQL adapters for the distributor and phone model catalogs.

Both catalogs are unique case-insensitively (expression indexes on
lower(...)), so create() is an upsert that hands back the existing id when
another writer got there first.
"""

from typing import TYPE_CHECKING

from ...api.database import database_connection
from ..domain.ports import IDistributorRepository, IPhoneModelRepository

if TYPE_CHECKING:
    import asyncpg


class PostgresDistributorRepository(IDistributorRepository):
    """PostgreSQL implementation of IDistributorRepository."""

    def __init__(self, pool: "asyncpg.Pool"):
        self.pool = pool

    async def list_all(self) -> list[tuple[str, str]]:
        async with database_connection(self.pool) as conn:
            rows = await conn.fetch("SELECT id::text, name FROM distributors")
        return [(row["id"], row["name"]) for row in rows]

    async def create(self, name: str) -> str:
        async with database_connection(self.pool) as conn:
            return await conn.fetchval(
                """
                INSERT INTO distributors (name) VALUES ($1)
                ON CONFLICT ((lower(name))) DO UPDATE SET name = distributors.name
                RETURNING id::text
                """,
                name,
            )


class PostgresPhoneModelRepository(IPhoneModelRepository):
    """PostgreSQL implementation of IPhoneModelRepository."""

    def __init__(self, pool: "asyncpg.Pool"):
        self.pool = pool

    async def list_all(self) -> list[tuple[str, str, str]]:
        async with database_connection(self.pool) as conn:
            rows = await conn.fetch("SELECT id::text, brand, model FROM phone_models")
        return [(row["id"], row["brand"], row["model"]) for row in rows]

    async def create(self, brand: str, model: str) -> str:
        async with database_connection(self.pool) as conn:
            return await conn.fetchval(
                """
                INSERT INTO phone_models (brand, model) VALUES ($1, $2)
                ON CONFLICT ((lower(brand)), (lower(model)))
                DO UPDATE SET brand = phone_models.brand
                RETURNING id::text
                """,
                brand,
                model,
            )
