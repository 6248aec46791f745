# storefront/routers/sessions.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.core import security
from storefront.core.logging import log_auth_event
from storefront.db import database
from storefront.db.models import PrincipalKind
from storefront.schemas.principal import BuyerSession, LoginRequest, StaffSession
from storefront.services.principal_service import AsyncPrincipalService
from storefront.utils.exceptions import UnauthorizedError
from storefront.utils.rate_limit import login_rate_limit

router = APIRouter(prefix="/sessions", tags=["sessions"])


async def _login(kind: PrincipalKind, credentials: LoginRequest, db: AsyncSession):
    principal = await AsyncPrincipalService(db).authenticate(kind, credentials.email, credentials.password)
    if principal is None:
        # Unknown email and wrong password are indistinguishable to the caller
        log_auth_event("login", kind.value, credentials.email, success=False)
        raise UnauthorizedError("Invalid credentials")
    log_auth_event("login", kind.value, principal.email, success=True, principal_id=principal.id)
    return {
        "access_token": security.create_access_token(principal),
        "token_type": "bearer",
        "principal": principal,
    }


@router.post("/buyer", response_model=BuyerSession, dependencies=[Depends(login_rate_limit)])
async def buyer_login(credentials: LoginRequest, db: AsyncSession = Depends(database.get_db)):
    return await _login(PrincipalKind.buyer, credentials, db)


@router.post("/staff", response_model=StaffSession, dependencies=[Depends(login_rate_limit)])
async def staff_login(credentials: LoginRequest, db: AsyncSession = Depends(database.get_db)):
    return await _login(PrincipalKind.staff, credentials, db)
