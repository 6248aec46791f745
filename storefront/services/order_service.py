"""
Order service layer: order creation, buyer and staff reads, deletion.
"""
from dataclasses import dataclass
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import List, Optional, Sequence
from storefront.core import permissions
from storefront.core.logging import get_logger, log_business_event
from storefront.db import models
from storefront.db.database import transaction
from storefront.schemas.order import OrderItemCreate
from storefront.services.catalog import CatalogGateway, ProductSnapshot, SqlCatalogGateway
from storefront.utils.exceptions import (
    APIException, BadRequestError, ConflictError, InternalServerError, NotFoundError,
)

logger = get_logger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CreatedOrder:
    order_id: int
    total: Decimal
    status: models.OrderStatus


class AsyncOrderService:
    """Service class for order-related business logic."""

    def __init__(self, db: AsyncSession, catalog: Optional[CatalogGateway] = None):
        self.db = db
        self.catalog = catalog or SqlCatalogGateway(db)

    # --- VALIDATION ---

    @staticmethod
    def _validate_request(delivery_address: str, items: Sequence[OrderItemCreate]) -> str:
        if not isinstance(delivery_address, str) or not delivery_address.strip():
            raise BadRequestError("Delivery address is required")
        if not items:
            raise BadRequestError("Order must contain at least one item")
        for item in items:
            quantity = item.quantity
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise BadRequestError(f"Invalid quantity for product {item.product_id}")
        return delivery_address.strip()

    # --- CREATION ---

    async def create_order(
        self,
        buyer_id: int,
        delivery_address: str,
        items: Sequence[OrderItemCreate],
    ) -> CreatedOrder:
        """
        Validate the cart against live catalog state and persist the order
        header plus its line items as one unit.

        Unit prices are snapshotted from the catalog inside the transaction;
        the order either exists with every line item or not at all.
        """
        address = self._validate_request(delivery_address, items)
        logger.info("Creating new order", buyer_id=buyer_id, items_count=len(items))

        try:
            async with transaction(self.db):
                snapshots = []
                for item in items:
                    product = await self.catalog.get_product(item.product_id)
                    if product is None or not product.available:
                        logger.warning("Product missing or unavailable during order creation",
                                       product_id=item.product_id, buyer_id=buyer_id)
                        raise NotFoundError("Product", item.product_id)
                    snapshots.append((product, item.quantity))

                total = sum(
                    (product.price * quantity for product, quantity in snapshots),
                    Decimal("0"),
                ).quantize(CENTS)

                order = models.Order(
                    buyer_id=buyer_id,
                    status=models.OrderStatus.new,
                    total=total,
                    delivery_address=address,
                )
                self.db.add(order)
                await self.db.flush()  # Get the order ID without committing

                for product, quantity in snapshots:
                    self._add_line_item(order.id, product, quantity)
                await self.db.flush()
        except APIException:
            raise
        except IntegrityError as exc:
            logger.warning("Constraint violated during order creation", buyer_id=buyer_id, error=str(exc.orig))
            raise ConflictError("Order conflicts with existing data")
        except Exception as exc:
            logger.error("Order creation failed; transaction rolled back", buyer_id=buyer_id, exc_info=True)
            raise InternalServerError("Could not create order") from exc

        log_business_event("order_created", buyer_id,
                           order_id=order.id, total=str(total), items_count=len(snapshots))
        return CreatedOrder(order_id=order.id, total=total, status=order.status)

    def _add_line_item(self, order_id: int, product: ProductSnapshot, quantity: int) -> models.OrderItem:
        line_item = models.OrderItem(
            order_id=order_id,
            product_id=product.id,
            quantity=quantity,
            unit_price=product.price,
        )
        self.db.add(line_item)
        return line_item

    # --- BUYER READS ---

    async def list_orders_for_buyer(self, buyer_id: int) -> List[models.Order]:
        """Get the buyer's own orders, newest first."""
        result = await self.db.execute(
            select(models.Order)
            .where(models.Order.buyer_id == buyer_id)
            .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        )
        return result.scalars().all()

    async def get_order_detail(self, order_id: int, buyer_id: int) -> models.Order:
        """
        Get one of the buyer's orders with its line items.

        Orders belonging to someone else are reported as missing, not forbidden.
        """
        result = await self.db.execute(
            select(models.Order)
            .options(selectinload(models.Order.items).selectinload(models.OrderItem.product))
            .where(models.Order.id == order_id, models.Order.buyer_id == buyer_id)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    # --- STAFF OPERATIONS ---

    async def list_all_orders(self, status_filter: Optional[str] = None) -> List[models.Order]:
        """Get all orders with their buyer, optionally filtered by status."""
        stmt = (
            select(models.Order)
            .options(selectinload(models.Order.buyer))
            .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        )

        if status_filter:
            try:
                status_enum = models.OrderStatus(status_filter)
            except ValueError:
                raise BadRequestError(f"Invalid status: {status_filter}")
            stmt = stmt.where(models.Order.status == status_enum)

        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def delete_order(self, order_id: int, actor_role: models.StaffRole, actor_id: int = None) -> None:
        """Hard-delete an order and its line items."""
        permissions.ensure_minimum_role(actor_role, models.StaffRole.manager)

        async with transaction(self.db):
            order = await self.db.get(models.Order, order_id)
            if not order:
                raise NotFoundError("Order", order_id)
            await self.db.delete(order)

        log_business_event("order_deleted", actor_id, order_id=order_id)
