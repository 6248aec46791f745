# storefront/routers/orders.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from storefront.core.logging import get_logger
from storefront.core.security import TokenClaims
from storefront.db import database
from storefront.db.models import StaffRole
from storefront.schemas import order as order_schema
from storefront.services.order_service import AsyncOrderService
from storefront.services.order_status import transition_order_status
from storefront.utils.dependencies import require_buyer, require_staff_role

router = APIRouter(prefix="/orders", tags=["orders"])
logger = get_logger(__name__)


@router.post("", response_model=order_schema.OrderCreated, status_code=status.HTTP_201_CREATED)
async def create_order(
    order: order_schema.OrderCreate,
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_buyer),
):
    """Place an order; prices and the total are taken from the catalog."""
    created = await AsyncOrderService(db).create_order(claims.principal_id, order.delivery_address, order.items)
    return {"order_id": created.order_id, "total": created.total, "status": created.status}


@router.get("/mine", response_model=List[order_schema.OrderSummary])
async def get_my_orders(
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_buyer),
):
    """Get current buyer's orders, newest first"""
    return await AsyncOrderService(db).list_orders_for_buyer(claims.principal_id)


@router.get("/mine/{order_id}", response_model=order_schema.OrderDetail)
async def get_my_order(
    order_id: int,
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_buyer),
):
    return await AsyncOrderService(db).get_order_detail(order_id, claims.principal_id)


@router.get("", response_model=List[order_schema.StaffOrderSummary])
async def get_all_orders(
    status_filter: Optional[str] = Query(None, description="Filter orders by status"),
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.employee)),
):
    """Get all orders (staff only) with optional status filtering"""
    return await AsyncOrderService(db).list_all_orders(status_filter)


@router.put("/{order_id}/status", response_model=order_schema.OrderStatusOut)
async def update_status(
    order_id: int,
    payload: order_schema.OrderStatusUpdate,
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.employee)),
):
    change = await transition_order_status(db, order_id, payload.status, claims.role, actor_id=claims.principal_id)
    return {"order_id": change.order_id, "status": change.status}


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.manager)),
):
    await AsyncOrderService(db).delete_order(order_id, claims.role, actor_id=claims.principal_id)
    return {"detail": "Order deleted"}
