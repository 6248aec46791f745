# storefront/routers/staff.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from storefront.core.security import TokenClaims
from storefront.db import database
from storefront.db.models import StaffRole
from storefront.schemas.principal import StaffCreate, StaffOut
from storefront.services.principal_service import AsyncPrincipalService
from storefront.services.staff_service import AsyncStaffService
from storefront.utils.dependencies import require_staff_role

router = APIRouter(prefix="/staff", tags=["staff"])


@router.post("", response_model=StaffOut, status_code=status.HTTP_201_CREATED)
async def create_staff(
    payload: StaffCreate,
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.manager)),
):
    return await AsyncStaffService(db).create_staff(
        claims.role,
        payload.name,
        payload.email,
        payload.password,
        payload.role,
        actor_id=claims.principal_id,
    )


@router.get("", response_model=List[StaffOut])
async def list_staff(
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.manager)),
):
    return await AsyncStaffService(db).list_staff()


@router.get("/me", response_model=StaffOut)
async def get_me(
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.employee)),
):
    return await AsyncPrincipalService(db).get_staff(claims.principal_id)


@router.delete("/{staff_id}")
async def delete_staff(
    staff_id: int,
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.owner)),
):
    """Remove a staff account (owner only). Owners themselves cannot be removed."""
    await AsyncStaffService(db).delete_staff(claims.role, claims.principal_id, staff_id)
    return {"detail": "Staff member deleted"}
