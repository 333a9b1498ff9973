"""Main application entry point."""

import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from cryptodash.api.dependencies import Services, build_services
from cryptodash.api.error_handlers import register_error_handlers
from cryptodash.api.routes import router
from cryptodash.utils.config import Config, config
from cryptodash.utils.logger import StructuredLogger
from cryptodash.utils.trace_context import TRACE_HEADER, adopt_trace, clear_trace

logger = StructuredLogger("App")


def create_app(cfg: Config = config, services: Services | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        cfg: Application configuration
        services: Pre-built services (tests); built from ``cfg`` at startup otherwise
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        # Startup
        try:
            cfg.validate()
        except ValueError as e:
            logger.critical("Configuration error", exception=e)
            raise
        app.state.services = services or build_services(cfg)
        app.state.services.queue.start()
        app.state.services.scheduler.start()
        logger.info(
            "Crypto backend started",
            context={"port": cfg.server.port, "environment": cfg.server.environment},
        )
        yield
        # Shutdown
        app.state.services.scheduler.stop()
        await app.state.services.queue.stop()
        logger.info("Crypto backend stopped")

    app = FastAPI(
        title="Crypto Dashboard Backend",
        description="Rate-limited CoinGecko aggregation with stale-while-revalidate caching",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Permissive CORS is a development convenience for a UI served from another port
    if not cfg.server.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        trace_id = adopt_trace(request.headers.get(TRACE_HEADER))
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_trace()
        response.headers[TRACE_HEADER] = trace_id
        response.headers["X-Process-Time"] = f"{(time.perf_counter() - start) * 1000:.1f}ms"
        return response

    register_error_handlers(app)

    app.include_router(router, prefix="/api", tags=["market"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    # Serve the pre-built frontend when it is present
    if cfg.server.static_dir and Path(cfg.server.static_dir).is_dir():
        app.mount("/", StaticFiles(directory=cfg.server.static_dir, html=True), name="static")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.server.host, port=config.server.port)
