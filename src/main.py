"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import Settings, settings
from src.bi_common.database import create_engine, create_session_factory
from src.bi_common.errors import AppError, InvalidPayloadError
from src.bi_common.redis_client import close_redis, create_redis
from src.bi_common.resilience import ResilienceRegistry
from src.bi_common.response import error_response
from src.bi_gateway.middleware.request_log import RequestLogMiddleware
from src.bi_integration.api.router import router as bank_router
from src.bi_integration.application.service import BankIntegrationService
from src.bi_integration.infrastructure.cache import create_cache
from src.bi_integration.infrastructure.persistence import BankIntegrationRepository

logger = logging.getLogger("bi.app")

VERSION = "0.1.0"


@dataclass
class AppComponents:
    """Everything the routers need, built once per process."""

    service: BankIntegrationService
    resilience: ResilienceRegistry
    location_base_url: str
    engine: AsyncEngine | None = None
    redis: aioredis.Redis | None = None

    async def aclose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        if self.redis is not None:
            await close_redis(self.redis)


def build_components(cfg: Settings) -> AppComponents:
    engine = create_engine(cfg)
    redis_client = create_redis(cfg) if cfg.CACHE_BACKEND == "redis" else None
    resilience = ResilienceRegistry.from_settings(cfg)
    service = BankIntegrationService(
        repo=BankIntegrationRepository(),
        cache=create_cache(cfg, redis_client),
        session_factory=create_session_factory(engine),
        resilience=resilience,
        write_through=cfg.CACHE_WRITE_THROUGH,
    )
    return AppComponents(
        service=service,
        resilience=resilience,
        location_base_url=cfg.LOCATION_BASE_URL,
        engine=engine,
        redis=redis_client,
    )


async def _check_dependencies(components: AppComponents) -> None:
    """Probe DB + Redis once. A dead dependency is logged, not fatal:
    requests are served from fallbacks until it comes back."""
    if components.engine is not None:
        try:
            async with components.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning("Database unreachable at startup: %s", exc)
    if components.redis is not None:
        try:
            await components.redis.ping()
        except Exception as exc:
            logger.warning("Redis unreachable at startup: %s", exc)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app(
    cfg: Settings | None = None,
    components: AppComponents | None = None,
) -> FastAPI:
    """Build the application.

    When `components` is given (tests) it is installed immediately and the
    lifespan neither builds nor disposes anything.
    """
    cfg = cfg or settings
    configure_logging(cfg.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if components is not None:
            yield
            return
        # Startup
        owned = build_components(cfg)
        app.state.components = owned
        await _check_dependencies(owned)
        yield
        # Shutdown
        await owned.aclose()

    app = FastAPI(
        title=cfg.APP_NAME,
        version=VERSION,
        lifespan=lifespan,
    )
    if components is not None:
        app.state.components = components

    app.add_middleware(RequestLogMiddleware)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        resp = error_response(exc.code, exc.message, getattr(request.state, "request_id", None))
        return JSONResponse(
            status_code=exc.http_status,
            content=resp.model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return await app_error_handler(request, InvalidPayloadError(detail))

    app.include_router(bank_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, object]:
        state = getattr(request.app.state, "components", None)
        circuits = state.resilience.snapshot() if state is not None else {}
        return {"status": "ok", "version": VERSION, "circuits": circuits}

    return app


app = create_app()
