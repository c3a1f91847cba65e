import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pushrelay.api.router import api_router
from pushrelay.config import Settings, get_settings
from pushrelay.notifications.push import PushDispatcher
from pushrelay.notifications.vapid import resolve_vapid_keys
from pushrelay.subscriptions.service import SubscriptionService
from pushrelay.subscriptions.store import SubscriptionStore

logger = structlog.get_logger()

load_dotenv()


class _SampleHealthAccess(logging.Filter):
    """Show only 1-in-N access log lines for health probes."""

    def __init__(self, every: int = 60) -> None:
        super().__init__()
        self.every = every
        self._count = 0

    def filter(self, record: logging.LogRecord) -> bool:
        args = getattr(record, "args", None)
        if isinstance(args, tuple) and len(args) >= 3:
            path = args[2]
            if isinstance(path, str) and path.startswith("/health"):
                self._count += 1
                return (self._count % self.every) == 0
        return True


def _install_access_log_filter() -> None:
    uv_logger = logging.getLogger("uvicorn.access")
    uv_logger.addFilter(_SampleHealthAccess(every=30))


def build_store(settings: Settings) -> SubscriptionStore:
    """Redis store configured from settings (not yet connected)."""
    return SubscriptionStore.from_url(
        settings.redis_url,
        ttl=settings.subscription_horizon,
        max_attempts=settings.redis_max_attempts,
        max_elapsed_s=settings.redis_max_elapsed_s,
        backoff_step_s=settings.redis_backoff_step_ms / 1000,
        backoff_cap_s=settings.redis_backoff_cap_ms / 1000,
        reconnect_interval_s=settings.redis_reconnect_interval_s,
    )


@asynccontextmanager
async def lifespan(
    app: FastAPI,
) -> AsyncGenerator[None]:
    settings = get_settings()
    _install_access_log_filter()
    logger.info("starting_up", version=settings.app_version)

    # Requests fail fast with 500 until Redis answers
    store = build_store(settings)
    store.start()
    subscriptions = SubscriptionService(store, horizon=settings.subscription_horizon)

    vapid_public_key, vapid_private_key = resolve_vapid_keys(settings)
    app.state.vapid_public_key = vapid_public_key
    app.state.subscriptions = subscriptions
    app.state.dispatcher = PushDispatcher(
        subscriptions,
        vapid_private_key=vapid_private_key,
        vapid_claims={"sub": settings.vapid_subject},
        ttl=settings.push_ttl_s,
    )

    yield

    await subscriptions.drain()
    await store.close()
    logger.info("shutting_down")


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": "Invalid request body"})


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(RequestValidationError, _invalid_request)
    application.add_exception_handler(Exception, _unhandled)
    application.include_router(api_router)
    return application


app = create_app()


def run() -> None:
    """Console entry point."""
    settings = get_settings()
    uvicorn.run(
        "pushrelay.main:app",
        host=settings.host,
        port=settings.port,
    )
