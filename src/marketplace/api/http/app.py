"""HTTP application: middleware, error rendering, routers and lifecycle."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.responses import JSONResponse

from src.marketplace.api.http.app_data import ApplicationDependencies, build_dependencies
from src.marketplace.api.http.routers import (
    admin,
    auth,
    changes,
    health,
    listings,
    notifications,
    profile,
    subscription,
    verification,
)
from src.marketplace.api.utils.app_startup import configure_logging
from src.marketplace.core.errors import MarketplaceError
from src.marketplace.runtime.context import get_config
from src.marketplace.runtime.init_db import init_db


def create_app(dependencies: ApplicationDependencies | None = None) -> FastAPI:
    """Build the application.

    ``dependencies`` lets tests inject pre-wired services; otherwise they are
    built from configuration at startup.
    """
    config = get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await _startup(app, dependencies)
        try:
            yield
        finally:
            await _shutdown(app, owned=dependencies is None)

    app = FastAPI(
        title="Marketplace",
        lifespan=lifespan,
        docs_url=None if config.app.environment == "production" else "/docs",
        redoc_url=None if config.app.environment == "production" else "/redoc",
    )

    # A wildcard origin cannot be combined with credentialed requests
    if config.app.environment == "production" and "*" in config.app.cors.origins:
        raise RuntimeError("cors.origins must list explicit origins in production")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.app.cors.origins,
        allow_credentials=config.app.cors.allow_credentials,
        allow_methods=config.app.cors.allow_methods,
        allow_headers=config.app.cors.allow_headers,
    )

    app.middleware("http")(log_requests)
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)

    for module in (
        health,
        auth,
        profile,
        verification,
        subscription,
        listings,
        notifications,
        admin,
        changes,
    ):
        app.include_router(module.router)

    return app


def _client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return request.client.host if request.client else "-"


async def log_requests(request: Request, call_next):
    """Tag every log line of a request with its id and time the response.

    An incoming ``X-Request-ID`` is reused, otherwise one is minted, and it is
    echoed on the response.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    started = time.perf_counter()

    def elapsed_ms() -> float:
        return round((time.perf_counter() - started) * 1000, 1)

    with logger.contextualize(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        client=_client_address(request),
    ):
        logger.info("request.start")
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.opt(exception=exc).error(
                "request.error", status_code=500, duration_ms=elapsed_ms()
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "internal_error",
                    "detail": "Internal Server Error",
                    "retryable": False,
                    "request_id": request_id,
                },
                headers={"X-Request-ID": request_id},
            )
        logger.info(
            "request.end", status_code=response.status_code, duration_ms=elapsed_ms()
        )
    response.headers.setdefault("X-Request-ID", request_id)
    return response


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Render a typed failure with its status code and retry hint."""
    request_id = getattr(request.state, "request_id", None)
    log = logger.bind(
        status_code=exc.status_code, error_type=type(exc).__name__, request_id=request_id
    )
    if exc.status_code >= 500:
        log.error("request.failed: {}", exc.message)
    else:
        log.warning("request.rejected: {}", exc.message)

    body = exc.to_dict()
    body["request_id"] = request_id
    headers = {"X-Request-ID": request_id} if request_id else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def _startup(app: FastAPI, dependencies: ApplicationDependencies | None) -> None:
    config = get_config()
    logger.info("Marketplace starting", environment=config.app.environment)
    if dependencies is None:
        dependencies = await build_dependencies(config)
        init_db(dependencies.database_service)

    await dependencies.change_feed.start()
    dependencies.profile_cache.attach()
    app.state.app_dependencies = dependencies


async def _shutdown(app: FastAPI, owned: bool) -> None:
    dependencies: ApplicationDependencies = app.state.app_dependencies
    dependencies.profile_cache.detach()
    await dependencies.change_feed.close()
    if owned:
        await dependencies.redis_service.close()
        dependencies.database_service.dispose()
    logger.info("Marketplace stopped")


def get_app() -> FastAPI:
    """Factory used by ``marketplace serve``."""
    configure_logging()
    return create_app()
