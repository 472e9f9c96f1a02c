"""Admission Gate — FastAPI application entry point.

A small service fronted by per-client fixed-window admission control.
Run with: uvicorn admission_gate.main:app
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from admission_gate.config.options import RateLimitOptions
from admission_gate.config.settings import Settings, get_settings
from admission_gate.logging.audit import get_audit_logger, setup_logging
from admission_gate.middleware.access_log import AccessLogMiddleware
from admission_gate.middleware.ratelimit import RateLimitMiddleware
from admission_gate.security.keys import make_key_generator, path_skipper

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging()
    get_audit_logger().info("Admission gate started")
    yield
    get_audit_logger().info("Admission gate stopped")


def create_app(settings: Settings | None = None, **option_overrides) -> FastAPI:
    """Build the app. Invalid rate limit settings fail here, not per request."""
    settings = settings or get_settings()
    option_overrides.setdefault("key_generator", make_key_generator(settings.key_headers_list))
    option_overrides.setdefault("skip", path_skipper(settings.skip_paths_list))
    options = RateLimitOptions.from_settings(settings, **option_overrides)

    app = FastAPI(
        title="Admission Gate",
        description="Per-client fixed-window rate limiting",
        version=VERSION,
        lifespan=lifespan,
    )
    # Last added runs first: access log wraps the limiter so 429s are logged too
    app.add_middleware(RateLimitMiddleware, options=options)
    app.add_middleware(AccessLogMiddleware)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": VERSION}

    @app.get("/")
    async def index():
        return {"message": "hello from admission gate"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("admission_gate.main:app", host="0.0.0.0", port=8000)
