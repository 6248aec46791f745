from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from typing import Callable
import hashlib
import json

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from storefront.core import security
from storefront.core.logging import get_logger
from storefront.db import models
from storefront.utils.exceptions import UnauthorizedError

logger = get_logger(__name__)

IDEMPOTENT_PATHS = {"/orders", "/orders/"}


def idempotency_key_hash(key: str, claims: security.TokenClaims) -> str:
    # Scoped to the principal so two callers reusing a key never share a response
    return hashlib.sha256(f"{claims.kind.value}:{claims.principal_id}\n{key}".encode()).hexdigest()


def _bearer_claims(request):
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    try:
        return security.decode_access_token(token.strip())
    except UnauthorizedError:
        return None


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Replays the first successful response to POST /orders for a given Idempotency-Key.

    Only 2xx responses are cached, so a failed submission can be retried with
    the same key.
    """

    async def dispatch(self, request, call_next: Callable):
        if request.method.upper() != "POST" or request.url.path not in IDEMPOTENT_PATHS:
            return await call_next(request)

        key = request.headers.get("Idempotency-Key")
        if not key:
            return await call_next(request)

        # Unauthenticated requests never see the cache; the route answers them with 401
        claims = _bearer_claims(request)
        if claims is None:
            return await call_next(request)

        key_hash = idempotency_key_hash(key, claims)
        sessionmaker = request.app.state.sessionmaker

        async with sessionmaker() as db:
            result = await db.execute(
                select(models.IdempotencyKey).where(models.IdempotencyKey.key_hash == key_hash)
            )
            existing = result.scalar_one_or_none()

        if existing:
            payload = json.loads(existing.response_payload)
            logger.info("Replaying idempotent response", path=request.url.path, status_code=payload["status_code"])
            return Response(
                content=payload["body"],
                status_code=payload["status_code"],
                media_type="application/json",
                headers={"Idempotent-Replayed": "true"},
            )

        response = await call_next(request)

        chunks = []
        async for chunk in response.body_iterator:
            chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode())
        body = b"".join(chunks)

        if 200 <= response.status_code < 300:
            record = models.IdempotencyKey(
                key_hash=key_hash,
                response_payload=json.dumps({"status_code": response.status_code, "body": body.decode()}),
            )
            async with sessionmaker() as db:
                db.add(record)
                try:
                    await db.commit()
                except IntegrityError:
                    # A concurrent request with the same key stored its response first
                    await db.rollback()
                    logger.warning("Idempotency key already recorded", path=request.url.path)

        return Response(
            content=body,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )
