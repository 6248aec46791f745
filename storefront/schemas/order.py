from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, StrictInt
from typing import List, Optional
from storefront.db.models import OrderStatus

class OrderItemCreate(BaseModel):
    # Any client-supplied price is ignored; unit prices come from the catalog
    product_id: int
    # Strict so JSON true or 2.0 is refused instead of coerced to an integer
    quantity: StrictInt

class OrderCreate(BaseModel):
    delivery_address: str
    items: List[OrderItemCreate]

class OrderCreated(BaseModel):
    order_id: int
    total: Decimal
    status: OrderStatus

class OrderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    total: Decimal
    status: OrderStatus
    delivery_address: str
    created_at: datetime

class StaffOrderSummary(OrderSummary):
    buyer_id: int
    buyer_name: Optional[str] = None
    updated_at: datetime

class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal

class OrderDetail(OrderSummary):
    updated_at: datetime
    items: List[OrderItemOut]

class OrderStatusUpdate(BaseModel):
    # Plain string so unknown values reach the state machine and get a 400
    status: str

class OrderStatusOut(BaseModel):
    order_id: int
    status: OrderStatus
