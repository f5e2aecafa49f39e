"""
Seat Claims API - Main Application Entry Point

Claims seats from a shared pool under concurrent load, with two
concurrency-control strategies:
- Optimistic: version-stamped conditional UPDATE, bounded retry on conflict
- Pessimistic: exclusive row lock held for the claim transaction
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI

from seat_claims.core.config import get_settings
from seat_claims.core.logging import setup_logging, get_logger
from seat_claims.core.metrics import metrics_endpoint
from seat_claims.api.router import api_router
from seat_claims.api.middleware import RequestContextMiddleware
from seat_claims.db.session import Database
from seat_claims.stores.sqlalchemy_store import SqlAlchemySeatStore

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database handle on startup, close it on shutdown."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    database = Database.from_settings(settings)
    app.state.seat_store = SqlAlchemySeatStore(database)
    logger.info("seat_store_ready", dialect=database.dialect_name)

    try:
        yield
    finally:
        await app.state.seat_store.close()
        logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Concurrency-safe seat claims with optimistic and pessimistic strategies",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(RequestContextMiddleware)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
