"""
Product service layer for catalog management.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import exists, select, update
from sqlalchemy.orm import selectinload
from typing import List, Sequence
from storefront.core.logging import get_logger, log_business_event
from storefront.db import models
from storefront.db.database import transaction
from storefront.schemas.product import ProductCreate, ProductUpdate
from storefront.utils.exceptions import BadRequestError, ConflictError, NotFoundError
from storefront.utils.image_utils import StoredImage

logger = get_logger(__name__)


class AsyncProductService:
    """Service class for product-related business logic."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_product(self, product_data: ProductCreate, staff_id: int) -> models.Product:
        """Create a new product, recording which staff member added it."""
        async with transaction(self.db):
            db_product = models.Product(**product_data.model_dump(), created_by=staff_id)
            self.db.add(db_product)

        log_business_event("product_created", staff_id, product_id=db_product.id, price=str(db_product.price))
        return await self.get_product(db_product.id)

    async def get_product(self, product_id: int) -> models.Product:
        """Get product by ID with its images and creator, or raise NotFoundError."""
        result = await self.db.execute(
            select(models.Product)
            .options(selectinload(models.Product.images), selectinload(models.Product.creator))
            .where(models.Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    async def list_catalog(self) -> List[models.Product]:
        """Public catalog: available products only, newest first."""
        result = await self.db.execute(
            select(models.Product)
            .where(models.Product.available.is_(True))
            .order_by(models.Product.id.desc())
        )
        return result.scalars().all()

    async def list_all_products(self) -> List[models.Product]:
        """Every product, available or not, with its creator (staff view)."""
        result = await self.db.execute(
            select(models.Product)
            .options(selectinload(models.Product.creator))
            .order_by(models.Product.id.desc())
        )
        return result.scalars().all()

    async def update_product(self, product_id: int, update_data: ProductUpdate, staff_id: int = None) -> models.Product:
        """Apply a partial update built from the explicitly provided fields only."""
        fields = update_data.model_dump(exclude_unset=True)
        if not fields:
            raise BadRequestError("No fields provided for update")
        if fields.get("name", "") is None or fields.get("price", 0) is None or fields.get("available", True) is None:
            raise BadRequestError("name, price and available cannot be null")

        async with transaction(self.db):
            result = await self.db.execute(
                update(models.Product)
                .where(models.Product.id == product_id)
                .values(**fields)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("Product", product_id)

        log_business_event("product_updated", staff_id, product_id=product_id, fields=sorted(fields))
        return await self.get_product(product_id)

    async def delete_product(self, product_id: int, staff_id: int = None) -> List[str]:
        """
        Delete a product and its image rows.

        Returns the storage ids of the removed images so the caller can clean
        up remote files after the commit.
        """
        product = await self.get_product(product_id)
        public_ids = [image.public_id for image in product.images if image.public_id]

        referenced = await self.db.scalar(
            select(exists().where(models.OrderItem.product_id == product_id))
        )
        if referenced:
            raise ConflictError("Product is referenced by existing orders; mark it unavailable instead")

        try:
            async with transaction(self.db):
                await self.db.delete(product)
        except IntegrityError:
            logger.warning("Product delete blocked by foreign key", product_id=product_id)
            raise ConflictError("Product is referenced by existing orders; mark it unavailable instead")

        log_business_event("product_deleted", staff_id, product_id=product_id)
        return public_ids

    async def add_images(self, product_id: int, images: Sequence[StoredImage]) -> models.Product:
        """Attach stored images; the first becomes the main image if none is set."""
        product = await self.get_product(product_id)
        has_main = any(image.is_main for image in product.images)

        async with transaction(self.db):
            for index, stored in enumerate(images):
                self.db.add(models.ProductImage(
                    product_id=product_id,
                    url=stored.url,
                    public_id=stored.public_id,
                    is_main=not has_main and index == 0,
                ))

        logger.info("Product images stored", product_id=product_id, count=len(images))
        return await self.get_product(product_id)
