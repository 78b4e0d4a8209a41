"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import StorageGateway
from app.routes.databases import router as databases_router
from app.routes.files import router as files_router

logger = logging.getLogger(__name__)


def create_app(gateway: StorageGateway | None = None) -> FastAPI:
    """Build the app. Pass a gateway to override the one built from settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the region gateway on startup, close all pools on shutdown."""
        app.state.gateway = gateway or StorageGateway.from_settings(settings)
        registry = app.state.gateway.registry
        for region in registry.names:
            endpoint = registry.endpoint(region)
            if endpoint:
                logger.info("Region %s -> %s", region, endpoint)
            else:
                logger.warning("No database host configured for region %s", region)

        yield

        await app.state.gateway.dispose()

    app = FastAPI(
        title="Regional Uploads API",
        version="1.0.0",
        description="Upload files to regional Postgres stores and compare upload latency.",
        lifespan=lifespan,
    )

    # CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        """Process liveness plus the configured regions (no database calls)."""
        return {"status": "ok", "regions": list(app.state.gateway.registry.names)}

    app.include_router(files_router)
    app.include_router(databases_router)
    return app


app = create_app()
