"""Liveness and readiness checks."""

from typing import Any

from anyio import to_thread
from fastapi import APIRouter, Request
from loguru import logger
from starlette.responses import JSONResponse

from src.marketplace.api.http.app_data import ApplicationDependencies
from src.marketplace.runtime.config.config_data import ConfigData
from src.marketplace.runtime.context import get_config

router = APIRouter(prefix="/health", tags=["health"])


def _status(ok: bool, failed: str = "unhealthy") -> str:
    return "healthy" if ok else failed


async def _database_check(deps: ApplicationDependencies, config: ConfigData) -> tuple[bool, dict]:
    ok = await to_thread.run_sync(deps.database_service.health_check)
    return ok, {
        "status": _status(ok),
        "dialect": deps.database_service.engine.dialect.name,
        "sqlite": config.database.is_sqlite,
    }


async def _change_feed_check(deps: ApplicationDependencies) -> tuple[bool, dict]:
    ok = await deps.change_feed.health_check()
    return ok, {
        "status": _status(ok),
        "backend": type(deps.change_feed).__name__,
        "subscribers": deps.change_feed.subscriber_count,
        "delivered": deps.change_feed.delivered_count,
    }


async def _redis_check(deps: ApplicationDependencies, config: ConfigData) -> dict:
    # Informational only: sessions fall back to memory without Redis
    if not config.redis.enabled:
        return {"status": "disabled"}
    ok = await deps.redis_service.health_check()
    check: dict[str, Any] = {"status": _status(ok, "degraded")}
    if ok:
        check["server"] = await deps.redis_service.server_info()
    return check


@router.get("")
async def health() -> dict[str, str]:
    """Liveness: the process is up. Dependencies are not consulted."""
    return {"status": "healthy", "service": "marketplace"}


@router.get("/ready", response_model=None)
async def readiness(request: Request) -> dict[str, Any] | JSONResponse:
    """Readiness: 503 unless the database and the change feed both answer."""
    deps: ApplicationDependencies = request.app.state.app_dependencies
    config = get_config()

    db_ok, database = await _database_check(deps, config)
    feed_ok, change_feed = await _change_feed_check(deps)
    body = {
        "status": "ready" if db_ok and feed_ok else "not_ready",
        "environment": config.app.environment,
        "checks": {
            "database": database,
            "change_feed": change_feed,
            "redis": await _redis_check(deps, config),
        },
    }
    if not (db_ok and feed_ok):
        logger.warning("Readiness check failed", checks=body["checks"])
        return JSONResponse(status_code=503, content=body)
    return body
