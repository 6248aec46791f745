# storefront/utils/dependencies.py
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from storefront.core import permissions, security
from storefront.core.security import TokenClaims
from storefront.db.models import PrincipalKind, StaffRole
from storefront.utils.exceptions import ForbiddenError, UnauthorizedError

# auto_error=False so a missing header yields the same 401 as a bad token
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> TokenClaims:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return security.decode_access_token(credentials.credentials)


def require_buyer(claims: TokenClaims = Depends(get_current_principal)) -> TokenClaims:
    if claims.kind != PrincipalKind.buyer:
        raise ForbiddenError("This route is only available to buyers")
    return claims


def require_staff_role(min_role: StaffRole):
    def role_checker(claims: TokenClaims = Depends(get_current_principal)) -> TokenClaims:
        return permissions.require_role(claims, min_role)
    return role_checker
