"""Database engine and session factory.

The engine (and its connection pool) is created once in the application
lifespan and kept on ``app.state``; request handlers receive the session
factory through :func:`get_session_factory` instead of a module global.
"""

import logging

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.ext.asyncio import (
    create_async_engine as sqlalchemy_create_async_engine,
)

from fraud_screening.core.config import DatabaseConfig

logger = logging.getLogger(__name__)


def create_async_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create async database engine."""
    engine = sqlalchemy_create_async_engine(
        config.async_url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=True,
        connect_args={
            "server_settings": {"timezone": "UTC"},
            "timeout": 30,
        },
    )
    logger.info(
        "Database engine created",
        extra={
            "host": config.host,
            "port": config.port,
            "database": config.name,
        },
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency returning the session factory built at startup."""
    return request.app.state.session_factory
