# storefront/routers/buyers.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.core import security
from storefront.core.logging import log_auth_event
from storefront.core.security import TokenClaims
from storefront.db import database
from storefront.db.models import PrincipalKind
from storefront.schemas.principal import BuyerCreate, BuyerOut, BuyerSession
from storefront.services.principal_service import AsyncPrincipalService
from storefront.utils.dependencies import require_buyer
from storefront.utils.rate_limit import login_rate_limit

router = APIRouter(prefix="/buyers", tags=["buyers"])


@router.post(
    "",
    response_model=BuyerSession,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(login_rate_limit)],
)
async def register_buyer(payload: BuyerCreate, db: AsyncSession = Depends(database.get_db)):
    """Sign up and receive a session token straight away."""
    buyer = await AsyncPrincipalService(db).create_buyer(payload.name, payload.email, payload.password)
    log_auth_event("register", PrincipalKind.buyer.value, buyer.email, success=True, principal_id=buyer.id)
    return {
        "access_token": security.create_access_token(buyer),
        "token_type": "bearer",
        "principal": buyer,
    }


@router.get("/me", response_model=BuyerOut)
async def get_me(
    claims: TokenClaims = Depends(require_buyer),
    db: AsyncSession = Depends(database.get_db),
):
    return await AsyncPrincipalService(db).get_buyer(claims.principal_id)
