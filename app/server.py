# =============================================================================
# app/server.py - Early-Initialization Entry Point
# =============================================================================
# Configures logging before anything else, so even a fault while building
# the application or starting the server is logged and flushed.
#
# Usage:
#   forecast-api            (installed script)
#   python -m app.server
#
# Exit codes:
#   0 - normal shutdown
#   1 - configuration error, or a fault while starting or running the host
#       (including uvicorn giving up on a taken port or a failed lifespan)
# =============================================================================

import sys

import uvicorn
from pydantic import ValidationError

from app.config import get_settings
from app.main import build_log_router, create_app
from core.errors import ConfigurationError
from core.services.structured import install_stdlib_bridge, remove_stdlib_bridge


class HostStartupError(RuntimeError):
    """Raised when uvicorn returns without ever serving requests."""


def main() -> int:
    """
    Run the API server.

    Returns:
        Process exit code
    """
    try:
        settings = get_settings()
        router = build_log_router(settings)
    except (ValidationError, ConfigurationError, OSError, ValueError) as e:
        # No sinks exist yet; stderr is the only place left to report
        print(f"Startup failed: {e}", file=sys.stderr)
        return 1

    # uvicorn, FastAPI and library loggers go through the same sinks
    bridge = install_stdlib_bridge(router)
    log = router.get_logger("app.server")

    try:
        log.info("Starting web host on {host}:{port}", host=settings.API_HOST, port=settings.API_PORT)
        app = create_app(settings, router=router)
        server = uvicorn.Server(uvicorn.Config(
            app,
            host=settings.API_HOST,
            port=settings.API_PORT,
            lifespan="on",
            log_config=None,
        ))
        server.run()
        if not server.started:
            raise HostStartupError(
                f"Web host on {settings.API_HOST}:{settings.API_PORT} stopped before it started"
            )
        return 0
    except (Exception, SystemExit):
        # uvicorn reports a port it cannot bind with sys.exit()
        log.critical("Host terminated unexpectedly", exc_info=True)
        return 1
    finally:
        remove_stdlib_bridge(bridge)
        router.flush_and_close()


if __name__ == "__main__":
    sys.exit(main())
