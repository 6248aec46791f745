from contextlib import asynccontextmanager
from fastapi import FastAPI
from storefront.core.config import settings
from storefront.core.logging import LoggingMiddleware, get_logger, setup_logging
from storefront.db import database
from storefront.middleware.idempotency import IdempotencyMiddleware
from storefront.routers import buyers, orders, products, sessions, staff
from storefront.services.staff_service import AsyncStaffService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    engine = database.build_engine()
    app.state.engine = engine
    app.state.sessionmaker = database.build_sessionmaker(engine)

    await database.create_tables(engine)
    async with app.state.sessionmaker() as db:
        await AsyncStaffService(db).ensure_initial_owner(
            settings.INITIAL_OWNER_NAME,
            settings.INITIAL_OWNER_EMAIL,
            settings.INITIAL_OWNER_PASSWORD,
        )
    logger.info("Storefront API started", environment=settings.ENVIRONMENT)

    yield

    await engine.dispose()
    logger.info("Storefront API stopped")


# Create app
app = FastAPI(title="Storefront API", version="1.0.0", lifespan=lifespan)

# Outermost last: request logging wraps idempotent replays too
app.add_middleware(IdempotencyMiddleware)
app.add_middleware(LoggingMiddleware)


@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {"status": "healthy", "message": "Storefront API is running"}


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Welcome to Storefront API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }

# Include routers
app.include_router(sessions.router)
app.include_router(buyers.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(staff.router)
