# storefront/core/security.py
from passlib.context import CryptContext
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Optional
from pydantic import BaseModel, ValidationError, model_validator
from storefront.core.config import settings
from storefront.db.models import PrincipalKind, StaffRole
from storefront.utils.exceptions import UnauthorizedError
import hashlib
import secrets

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    # In testing use a salted sha256 digest in a bcrypt-like envelope so the
    # suite does not pay for real bcrypt rounds.
    if settings.ENVIRONMENT == "testing":
        salt = secrets.token_hex(8)
        digest = hashlib.sha256(salt.encode("utf-8") + password.encode("utf-8")).hexdigest()
        return f"$2b${salt}${digest}"

    # Production: use bcrypt. Truncate to bcrypt's 72-byte limit.
    pw_bytes = password.encode("utf-8")
    if len(pw_bytes) > 72:
        pw_bytes = pw_bytes[:72]
    return pwd_context.hash(pw_bytes)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if settings.ENVIRONMENT == "testing" and isinstance(hashed_password, str) and hashed_password.startswith("$2b$"):
        # Testing hashes use format: $2b$<salt>$<sha256_hex(salt+password)>
        parts = hashed_password.split("$")
        if len(parts) == 4:
            _, _tag, salt, digest = parts
            expected = hashlib.sha256(salt.encode("utf-8") + plain_password.encode("utf-8")).hexdigest()
            return secrets.compare_digest(digest, expected)

    pw_bytes = plain_password.encode("utf-8")
    if len(pw_bytes) > 72:
        pw_bytes = pw_bytes[:72]
    try:
        return pwd_context.verify(pw_bytes, hashed_password)
    except ValueError:
        # Unrecognised hash format
        return False


class TokenClaims(BaseModel):
    """Decoded, validated contents of a session token."""
    principal_id: int
    email: str
    kind: PrincipalKind
    role: Optional[StaffRole] = None
    issued_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def role_matches_kind(self):
        if self.kind == PrincipalKind.staff and self.role is None:
            raise ValueError("staff token without role")
        if self.kind == PrincipalKind.buyer and self.role is not None:
            raise ValueError("buyer token carrying a staff role")
        return self

    @property
    def is_staff(self) -> bool:
        return self.kind == PrincipalKind.staff


def token_lifetime(kind: PrincipalKind) -> timedelta:
    if kind == PrincipalKind.staff:
        return timedelta(minutes=settings.STAFF_TOKEN_EXPIRE_MINUTES)
    return timedelta(minutes=settings.BUYER_TOKEN_EXPIRE_MINUTES)


def create_access_token(principal, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed token for a buyer or staff principal.

    Staff tokens embed the role; buyer tokens carry only the kind marker.
    """
    kind = PrincipalKind(principal.kind)
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + (expires_delta if expires_delta is not None else token_lifetime(kind))
    to_encode = {
        "sub": str(principal.id),
        "email": principal.email,
        "kind": kind.value,
        "iat": issued_at,
        "exp": expire,
    }
    if kind == PrincipalKind.staff:
        to_encode["role"] = StaffRole(principal.role).value
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    """
    Verify signature and expiry, then validate the claim set.

    Tampering, expiry, malformed input and unknown claim values all raise the
    same UnauthorizedError.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return TokenClaims(
            principal_id=int(payload["sub"]),
            email=payload["email"],
            kind=payload["kind"],
            role=payload.get("role"),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (JWTError, ValidationError, KeyError, TypeError, ValueError):
        raise UnauthorizedError()
