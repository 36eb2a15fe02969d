# =============================================================================
# app/main.py - FastAPI Application Factory
# =============================================================================
# Builds the Forecast API: log router, middleware, routers, lifespan.
#
# Usage:
#   uvicorn app.main:create_app --factory --reload
#
# or the early-initialization entry point (see app/server.py):
#   forecast-api
# =============================================================================

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import __version__
from app.config import Settings, get_settings
from app.middleware import FaultTranslatorMiddleware
from app.routers import health, weather
from core.models.log_event import Severity, SinkConfiguration, SinkKind
from core.services.enrichment import context_enricher, process_enricher
from core.services.log_router import LogRouter


def build_log_router(settings: Settings) -> LogRouter:
    """
    Create the process-wide log router from settings.

    Every event is enriched with the request context, the process and
    thread, and the application name and environment. With DEBUG set, a
    Trace-level debug sink is added unless one is already configured.

    Raises:
        ConfigurationError: If a sink cannot be opened
    """
    sinks = list(settings.LOGGING.sinks)
    if settings.DEBUG and not any(sink.kind == SinkKind.DEBUG for sink in sinks):
        sinks.append(SinkConfiguration(name="debug", kind=SinkKind.DEBUG, minimum_level=Severity.TRACE))

    config = settings.LOGGING.model_copy(update={
        "sinks": sinks,
        "properties": {
            "application": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
            **settings.LOGGING.properties,
        },
    })
    return LogRouter.from_configuration(config, enrichers=[context_enricher, process_enricher])


def create_app(settings: Settings | None = None, router: LogRouter | None = None) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings to use (default: get_settings())
        router: An already configured log router (default: built from settings)

    Returns:
        The configured FastAPI application. The log router is available as
        app.state.log_router. On shutdown it is flushed, and also closed
        when it was built here.
    """
    settings = settings or get_settings()
    owns_router = router is None
    if owns_router:
        router = build_log_router(settings)
    log = router.get_logger("app.main")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        - Startup: Announce environment and configured sinks
        - Shutdown: Flush every sink; close them too if this app built
          the router (a router passed in belongs to the caller)
        """
        log.info(
            "Starting {app_name} in {environment} mode",
            app_name=settings.APP_NAME,
            environment=settings.ENVIRONMENT,
            sinks=[sink.name for sink in router.sinks],
        )

        yield

        log.info("Shutting down {app_name}", app_name=settings.APP_NAME)
        if owns_router:
            router.flush_and_close()
        else:
            router.flush(router.close_timeout)

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
## Weather Forecast API

Returns five days of random weather. Every request is logged through the
structured log router (console, daily rolling file and debug stream sinks)
and any unhandled fault is answered with a uniform JSON error:

```json
{"message": "..."}
```

### Quick Start

```bash
curl http://localhost:8000/weatherforecast
```
""",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Weather",
                "description": "Random weather forecasts",
            },
            {
                "name": "Health",
                "description": "API health checks",
            },
        ],
    )

    app.state.settings = settings
    app.state.log_router = router

    # =========================================================================
    # Middleware
    # =========================================================================
    # Added last = outermost. CORS wraps the fault translator so error
    # responses carry CORS headers too.

    app.add_middleware(FaultTranslatorMiddleware, router=router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # =========================================================================
    # Routers
    # =========================================================================

    app.include_router(weather.router, tags=["Weather"])
    app.include_router(health.router, tags=["Health"])

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint - returns API info.
        """
        return {
            "name": settings.APP_NAME,
            "version": __version__,
            "docs": "/docs",
            "forecast": "/weatherforecast",
            "health": "/health",
        }

    return app
