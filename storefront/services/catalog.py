"""
Catalog gateway consumed by the order workflow.

The order engine only needs a product's current price and availability, so it
depends on this narrow interface instead of the full product service.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.db import models


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    price: Decimal
    available: bool


class CatalogGateway(Protocol):
    async def get_product(self, product_id: int) -> Optional[ProductSnapshot]:
        ...


class SqlCatalogGateway:
    """Reads products through the caller's session, inside its transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_product(self, product_id: int) -> Optional[ProductSnapshot]:
        result = await self.db.execute(
            select(models.Product.id, models.Product.name, models.Product.price, models.Product.available)
            .where(models.Product.id == product_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return ProductSnapshot(id=row.id, name=row.name, price=Decimal(row.price), available=bool(row.available))
