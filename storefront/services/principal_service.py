"""
Credential store for buyer and staff principals.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from typing import Optional, Union
from storefront.core import security
from storefront.core.logging import get_logger
from storefront.db import models
from storefront.db.database import transaction
from storefront.utils.exceptions import ConflictError, NotFoundError

logger = get_logger(__name__)

Principal = Union[models.Buyer, models.Staff]

PRINCIPAL_MODELS = {
    models.PrincipalKind.buyer: models.Buyer,
    models.PrincipalKind.staff: models.Staff,
}


class AsyncPrincipalService:
    """Persists hashed credentials; plaintext secrets never leave this class."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, kind: models.PrincipalKind, email: str) -> Optional[Principal]:
        model = PRINCIPAL_MODELS[models.PrincipalKind(kind)]
        result = await self.db.execute(select(model).where(model.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_buyer(self, buyer_id: int) -> models.Buyer:
        buyer = await self.db.get(models.Buyer, buyer_id)
        if not buyer:
            raise NotFoundError("Buyer", buyer_id)
        return buyer

    async def get_staff(self, staff_id: int) -> models.Staff:
        staff = await self.db.get(models.Staff, staff_id)
        if not staff:
            raise NotFoundError("Staff member", staff_id)
        return staff

    async def create_buyer(self, name: str, email: str, password: str) -> models.Buyer:
        buyer = models.Buyer(name=name, email=email.lower(), hashed_password=security.hash_password(password))
        return await self._insert(models.PrincipalKind.buyer, buyer)

    async def create_staff_account(
        self,
        name: str,
        email: str,
        password: str,
        role: models.StaffRole,
    ) -> models.Staff:
        staff = models.Staff(
            name=name,
            email=email.lower(),
            hashed_password=security.hash_password(password),
            role=models.StaffRole(role),
        )
        return await self._insert(models.PrincipalKind.staff, staff)

    async def authenticate(self, kind: models.PrincipalKind, email: str, password: str) -> Optional[Principal]:
        """Return the principal when the password matches, otherwise None."""
        principal = await self.get_by_email(kind, email)
        if principal is None or not security.verify_password(password, principal.hashed_password):
            return None
        return principal

    async def _insert(self, kind: models.PrincipalKind, principal: Principal) -> Principal:
        if await self.get_by_email(kind, principal.email):
            logger.info("Duplicate email on registration", kind=kind.value)
            raise ConflictError("Email already registered")
        try:
            async with transaction(self.db):
                self.db.add(principal)
        except IntegrityError:
            # Lost a race against a concurrent registration with the same email
            logger.warning("Email uniqueness violated on insert", kind=kind.value)
            raise ConflictError("Email already registered")
        return principal
