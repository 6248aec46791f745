"""
Service layer package initialization.
"""
from .principal_service import AsyncPrincipalService
from .product_service import AsyncProductService
from .order_service import AsyncOrderService
from .staff_service import AsyncStaffService

__all__ = ["AsyncPrincipalService", "AsyncProductService", "AsyncOrderService", "AsyncStaffService"]
