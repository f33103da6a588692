"""
MODULE OVERVIEW:
The FastAPI application factory.

WHAT IS HAPPENING HERE:
`create_app()` builds one set of components (event store, metrics aggregator, waiter
registry, push hub, dispatch engine) and hangs them on `app.state`. Routes reach them
through `server/dependencies.py`, never through module globals.

The `lifespan` context manager starts the dispatch engine's generator task on startup.
On shutdown it stops the generator, releases every parked long-poll request with an
empty answer and closes the push hub. Nothing is left hanging.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from realtime_comparison.server.dispatch import DispatchEngine
from realtime_comparison.server.event_store import InMemoryEventStore
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.server.middleware import TimingMiddleware
from realtime_comparison.server.push_hub import PushHub
from realtime_comparison.server.routes import (
    dashboard,
    long_polling,
    metrics,
    push,
    short_polling,
    sse,
    websocket,
)
from realtime_comparison.server.waiter_registry import WaiterRegistry
from realtime_comparison.shared.config import Settings, settings
from realtime_comparison.shared.errors import AppError, InvalidInputError


@asynccontextmanager
async def lifespan(app: FastAPI):
    # STARTUP
    logger.info("Realtime comparison server starting up...")
    if app.state.settings.GENERATION_ENABLED:
        app.state.engine.start()

    yield

    # SHUTDOWN
    logger.info("Server shutting down. Stopping generator and releasing waiters...")
    await app.state.engine.stop()
    released = app.state.waiters.force_timeout_all()
    await app.state.push_hub.close()
    logger.info(f"Shutdown complete. released_waiters={released}")


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(
        f"{request.method} {request.url.path} error={exc.kind} status={exc.status_code} detail='{exc.detail}'"
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "detail": exc.detail})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed query params and bodies share the 400 shape of InvalidInputError.
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    logger.warning(f"{request.method} {request.url.path} error={InvalidInputError.kind} status=400 detail='{detail}'")
    return JSONResponse(
        status_code=InvalidInputError.status_code,
        content={"error": InvalidInputError.kind, "detail": detail},
    )


def create_app(app_settings: Settings | None = None) -> FastAPI:
    cfg = app_settings or settings

    app = FastAPI(
        title="Realtime Comparison",
        description="Short polling vs long polling vs push, measured against one event source",
        version="1.0.0",
        lifespan=lifespan,
    )

    store = InMemoryEventStore()
    waiters = WaiterRegistry()
    push_hub = PushHub(queue_size=cfg.PUSH_QUEUE_SIZE)
    metrics_aggregator = MetricsAggregator()

    app.state.settings = cfg
    app.state.store = store
    app.state.waiters = waiters
    app.state.push_hub = push_hub
    app.state.metrics = metrics_aggregator
    app.state.engine = DispatchEngine(
        store, waiters, push_hub, metrics_aggregator, interval_s=cfg.GENERATION_INTERVAL_S
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Add Middlewares
    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Route registrations
    app.include_router(short_polling.router, tags=["Short Polling"])
    app.include_router(long_polling.router, tags=["Long Polling"])
    app.include_router(push.router, tags=["Push"])
    app.include_router(sse.router, tags=["Push"])
    app.include_router(websocket.router, tags=["Push"])
    app.include_router(metrics.router, tags=["Metrics"])
    app.include_router(dashboard.router, tags=["Dashboard"])

    @app.get("/healthz", tags=["Ops"])
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
