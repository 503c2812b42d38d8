"""SQLModel engine and transactional session scopes."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext

from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from src.marketplace.runtime.config.config_data import ConfigData
from src.marketplace.runtime.context import get_config

IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def _connect_args(config: ConfigData) -> dict:
    db = config.database
    if db.is_sqlite:
        if config.app.environment == "production":
            logger.warning("Running on SQLite in production; use PostgreSQL for concurrent writers")
        # Wait on the file lock before reporting a transient failure
        return {"check_same_thread": False, "timeout": 20}
    if db.url.startswith("postgresql"):
        return {"application_name": "marketplace", "connect_timeout": 30}
    return {}


def build_engine(config: ConfigData) -> Engine:
    """Create the engine described by ``config.database``."""
    db = config.database
    kwargs: dict = {
        "echo": db.echo,
        "pool_pre_ping": True,
        "connect_args": _connect_args(config),
    }
    if db.url in IN_MEMORY_SQLITE_URLS:
        kwargs["poolclass"] = StaticPool
    elif not db.is_sqlite:
        kwargs.update(
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
        )
    logger.info("Database engine for {} ({})", db.url.split(":", 1)[0], config.app.environment)
    return create_engine(db.connection_string, **kwargs)


class DbSessionService:
    """Hands out sessions bound to one shared engine.

    Pass ``engine`` to bypass configuration, as the tests do with an
    in-memory SQLite engine. Sessions are opened from worker threads; when the
    engine hands every thread the same connection (``StaticPool``) they take
    turns, since they would otherwise share one transaction.
    """

    def __init__(self, engine: Engine | None = None):
        self._engine = engine if engine is not None else build_engine(get_config())
        self._turns = threading.RLock() if self.shares_connection else None

    @property
    def shares_connection(self) -> bool:
        return isinstance(self._engine.pool, StaticPool)

    def _turn(self):
        return self._turns if self._turns is not None else nullcontext()

    @property
    def engine(self) -> Engine:
        return self._engine

    def get_session(self) -> Session:
        return Session(self._engine, expire_on_commit=False)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """One transaction: commit when the block exits cleanly, otherwise roll back."""
        with self._turn():
            session = self.get_session()
            try:
                yield session
                session.commit()
            except Exception as e:
                session.rollback()
                logger.debug(
                    "Transaction rolled back",
                    extra={"error_type": type(e).__name__},
                )
                raise
            finally:
                session.close()

    def health_check(self) -> bool:
        try:
            with self._turn(), self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(
                "Database health check failed",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
            )
            return False
        return True

    def dispose(self) -> None:
        self._engine.dispose()
