"""
# ACE Mentorship API

FastAPI application factory for the mentorship admin backend.

## Startup

The `lifespan()` context manager:

1. starts the `ServiceContainer` (document store connection, relational engine),
2. creates the document store indexes (failures are logged, startup continues),
3. on shutdown, closes the HTTP clients and both stores.

## Layers

- **CORS** from `CORS_ORIGINS`, credentials allowed so the session cookie travels.
- **Routers**: `/auth`, `/admin`, and the public leaderboard/content/submission routes.
- **Metrics**: Prometheus at `/metrics` via `prometheus-fastapi-instrumentator`.
- **Health**: `/health` pings both stores.

Run with `uvicorn ace_mentorship.main:app`.
"""

from contextlib import asynccontextmanager
import time
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.cors import CORSMiddleware
import uvicorn

from ace_mentorship.config import Settings, settings as default_settings
from ace_mentorship.container import ServiceContainer
from ace_mentorship.database.indexes import create_document_indexes
from ace_mentorship.managers.logging_manager import get_logger, setup_logging
from ace_mentorship.routes.admin.routes import router as admin_router
from ace_mentorship.routes.auth.routes import router as auth_router
from ace_mentorship.routes.public.routes import router as public_router

logger = get_logger(prefix="[Main]")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the service container before serving and stop it on shutdown."""
    container: ServiceContainer = app.state.container
    startup_start_time = time.time()
    logger.info("Starting ACE Mentorship API...")

    await container.start()

    indexes_start = time.time()
    try:
        created = await create_document_indexes(container.db_manager)
        logger.info(f"Document indexes ready ({created} created/verified in {time.time() - indexes_start:.3f}s)")
    except Exception as e:
        logger.error(f"Failed to create document indexes: {e}", exc_info=True)

    logger.info(f"Startup completed in {time.time() - startup_start_time:.3f}s")
    try:
        yield
    finally:
        logger.info("Shutting down ACE Mentorship API...")
        await container.stop()
        logger.info("Shutdown complete")


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(
        title="ACE Mentorship API",
        version="1.0.0",
        description="Administration backend for the ACE mentorship program",
        lifespan=lifespan,
    )
    app.state.container = container or ServiceContainer(settings)

    cors_origins = settings.cors_origins_list
    logger.info(f"Configuring CORS with origins: {cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        max_age=3600,
    )

    routers_config = [
        ("auth", auth_router, "Session, sign-up and profile endpoints"),
        ("admin", admin_router, "Admin console endpoints"),
        ("public", public_router, "Leaderboards, published content and submissions"),
    ]
    for router_name, router, description in routers_config:
        app.include_router(router)
        logger.info(f"Included {router_name} router: {description}")

    @app.get("/health", tags=["System"])
    async def health():
        active = app.state.container
        document_ok = await active.db_manager.health_check()
        relational_ok = await active.relational.health_check()
        healthy = document_ok and relational_ok
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "document_store": "ok" if document_ok else "unavailable",
                "relational_store": "ok" if relational_ok else "unavailable",
            },
        )

    if settings.METRICS_ENABLED:
        logger.info("Setting up Prometheus metrics instrumentation...")
        try:
            instrumentator = Instrumentator(
                should_group_status_codes=True,
                should_ignore_untemplated=True,
                should_respect_env_var=False,
                should_instrument_requests_inprogress=True,
            )
            instrumentator.instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")
            logger.info("Prometheus metrics instrumentation configured successfully")
        except Exception as e:
            logger.error(f"Failed to configure Prometheus metrics: {e}")

    return app


setup_logging(default_settings.LOG_LEVEL, json_output=default_settings.is_production)
app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "ace_mentorship.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level="info",
    )
