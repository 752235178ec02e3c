"""
Wholesale Hub API - Main Application Entry Point.

B2B storefront backend mirroring the catalog, pricing and customers of
Zoho Inventory and Zoho Books.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from wholesale.core.config import settings
from wholesale.core.database import close_db, get_db_context, init_db
from wholesale.core.logging import configure_logging, get_logger
from wholesale.middleware import ErrorHandlerMiddleware, LoggerContextMiddleware
from wholesale.routers import admin_router, health_router, products_router, webhooks_router
from wholesale.services.registry import ServiceRegistry

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Builds the service registry at startup and closes it at shutdown.
    """
    logger.info(
        "Starting application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    await init_db()

    # Initialize Sentry if configured
    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
        )
        logger.info("Sentry initialized")

    app.state.registry = ServiceRegistry.create(settings, get_db_context)
    if not settings.zoho_configured:
        logger.warning("Zoho credentials missing, sync and Books calls are disabled")

    yield

    logger.info("Shutting down application")
    await app.state.registry.aclose()
    await close_db()


def create_app() -> FastAPI:
    """
    Application factory function.
    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Wholesale storefront API with Zoho Inventory and Books sync",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - last added = outermost)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggerContextMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Admin-Key",
            "X-Request-ID",
        ],
    )

    # Register routers
    app.include_router(health_router)
    app.include_router(products_router, prefix="/api")
    app.include_router(webhooks_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    # Cached Zoho product images
    Path(settings.image_cache_dir).mkdir(parents=True, exist_ok=True)
    app.mount(
        "/product-images",
        StaticFiles(directory=settings.image_cache_dir, check_dir=False),
        name="product-images",
    )

    logger.info(
        "Application created",
        routes=len(app.routes),
        cors_origins=len(settings.allowed_origins),
    )

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "wholesale.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
