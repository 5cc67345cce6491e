# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""SQLAlchemy engine factory and startup connectivity check."""
import time
from typing import Callable, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from pr_reviewer.core.config import settings
from pr_reviewer.core.logging import get_logger

logger = get_logger(__name__)


def build_engine(url: Optional[str] = None) -> Engine:
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        # one shared connection for in-memory databases
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else None,
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )


def wait_for_database(
    check: Callable[[], None],
    retries: int = settings.DB_CONNECT_RETRIES,
    delay: float = settings.DB_CONNECT_RETRY_DELAY,
) -> None:
    """Call ``check`` until it succeeds; re-raise after the last attempt."""
    for attempt in range(1, retries + 1):
        try:
            check()
            logger.info("Database connection verified (attempt %d)", attempt)
            return
        except SQLAlchemyError as exc:
            if attempt == retries:
                logger.error("Database unreachable after %d attempts: %s", retries, exc)
                raise
            logger.warning("Database not ready (attempt %d/%d): %s", attempt, retries, exc)
            time.sleep(delay)
