"""
Staff account management under role-aware restrictions.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
from storefront.core import permissions
from storefront.core.logging import get_logger, log_business_event, log_security_event
from storefront.db import models
from storefront.db.database import transaction
from storefront.services.principal_service import AsyncPrincipalService
from storefront.utils.exceptions import ForbiddenError, NotFoundError, PermissionDeniedError

logger = get_logger(__name__)

StaffRole = models.StaffRole


class AsyncStaffService:
    """Creates and removes staff accounts; a member can never act above their own tier."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.principals = AsyncPrincipalService(db)

    async def create_staff(
        self,
        actor_role: StaffRole,
        name: str,
        email: str,
        password: str,
        requested_role: StaffRole,
        actor_id: int = None,
    ) -> models.Staff:
        permissions.ensure_minimum_role(actor_role, StaffRole.manager)
        requested_role = StaffRole(requested_role)
        actor_role = StaffRole(actor_role)

        if requested_role == StaffRole.owner and actor_role != StaffRole.owner:
            log_security_event("staff_elevation_denied", actor_id=actor_id, requested_role=requested_role.value)
            raise ForbiddenError("Only an owner can create another owner")
        if actor_role == StaffRole.manager and requested_role != StaffRole.employee:
            log_security_event("staff_elevation_denied", actor_id=actor_id, requested_role=requested_role.value)
            raise ForbiddenError("Managers can only create employee accounts")

        staff = await self.principals.create_staff_account(name, email, password, requested_role)
        log_business_event("staff_created", actor_id, staff_id=staff.id, role=requested_role.value)
        return staff

    async def delete_staff(self, actor_role: StaffRole, actor_id: int, target_id: int) -> None:
        if not permissions.has_minimum_role(actor_role, StaffRole.owner):
            raise ForbiddenError("Only an owner can delete staff accounts")
        if target_id == actor_id:
            raise ForbiddenError("You cannot delete your own account")

        async with transaction(self.db):
            target = await self.db.get(models.Staff, target_id)
            if not target:
                raise NotFoundError("Staff member", target_id)
            if target.role == StaffRole.owner:
                log_security_event("owner_deletion_denied", actor_id=actor_id, target_id=target_id)
                raise PermissionDeniedError("delete", "owner account")
            await self.db.delete(target)

        log_business_event("staff_deleted", actor_id, staff_id=target_id)

    async def list_staff(self) -> List[models.Staff]:
        result = await self.db.execute(select(models.Staff).order_by(models.Staff.id))
        return result.scalars().all()

    async def ensure_initial_owner(self, name: str, email: Optional[str], password: Optional[str]) -> Optional[models.Staff]:
        """Seed the first owner account when none exists yet."""
        if not email or not password:
            return None
        result = await self.db.execute(
            select(models.Staff).where(models.Staff.role == StaffRole.owner).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            return None
        if await self.principals.get_by_email(models.PrincipalKind.staff, email):
            logger.warning("Initial owner email already used by a non-owner account", email=email)
            return None

        owner = await self.principals.create_staff_account(name, email, password, StaffRole.owner)
        logger.info("Initial owner account created", staff_id=owner.id, email=owner.email)
        return owner
