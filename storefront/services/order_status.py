"""
Order status state machine.

    new -> accepted -> preparing -> out_for_delivery -> delivered

Cancellation is allowed until the order leaves for delivery. delivered and
canceled are terminal. Forward skips (e.g. new -> delivered) are rejected.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Union
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.core import permissions
from storefront.core.logging import get_logger, log_business_event
from storefront.db import models
from storefront.db.database import transaction
from storefront.utils.exceptions import (
    BadRequestError, InvalidOrderStatusError, NotFoundError, OrderDispatchedError,
)

logger = get_logger(__name__)

OrderStatus = models.OrderStatus

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.new: frozenset({OrderStatus.accepted, OrderStatus.canceled}),
    OrderStatus.accepted: frozenset({OrderStatus.preparing, OrderStatus.canceled}),
    OrderStatus.preparing: frozenset({OrderStatus.out_for_delivery, OrderStatus.canceled}),
    OrderStatus.out_for_delivery: frozenset({OrderStatus.delivered}),
    OrderStatus.delivered: frozenset(),
    OrderStatus.canceled: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)
DISPATCHED_STATUSES = frozenset({OrderStatus.out_for_delivery, OrderStatus.delivered})


@dataclass(frozen=True)
class StatusChange:
    order_id: int
    status: OrderStatus


def parse_requested_status(requested: Union[str, OrderStatus]) -> OrderStatus:
    """Only statuses reachable by a transition are accepted; `new` is creation-only."""
    try:
        status = OrderStatus(requested)
    except ValueError:
        status = None
    if status is None or status == OrderStatus.new:
        valid = ", ".join(s.value for s in OrderStatus if s != OrderStatus.new)
        raise BadRequestError(f"Invalid status. Use: {valid}")
    return status


def validate_transition(current: OrderStatus, requested: OrderStatus) -> None:
    if requested == OrderStatus.canceled and current in DISPATCHED_STATUSES:
        raise OrderDispatchedError(current.value)
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidOrderStatusError(current.value, requested.value)


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


async def transition_order_status(
    db: AsyncSession,
    order_id: int,
    requested_status: Union[str, OrderStatus],
    staff_role: models.StaffRole,
    actor_id: int = None,
) -> StatusChange:
    """Apply a staff-driven status change under a row lock."""
    new_status = parse_requested_status(requested_status)
    permissions.ensure_minimum_role(staff_role, models.StaffRole.employee)

    async with transaction(db):
        result = await db.execute(
            select(models.Order).where(models.Order.id == order_id).with_for_update()
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order", order_id)

        previous = order.status
        try:
            validate_transition(previous, new_status)
        except InvalidOrderStatusError:
            logger.info("Rejected order status transition", order_id=order_id,
                        current=previous.value, requested=new_status.value)
            raise

        order.status = new_status
        order.updated_at = models.utcnow()

    log_business_event("order_status_changed", actor_id, order_id=order_id,
                       previous=previous.value, status=new_status.value)
    return StatusChange(order_id=order_id, status=new_status)
