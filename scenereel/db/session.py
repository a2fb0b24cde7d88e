from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel

from scenereel.config import Settings, get_settings
from scenereel.models import project  # noqa: F401


def build_engine(settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    url = settings.database_url
    engine_kwargs: dict[str, Any] = {"echo": settings.db_echo}

    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 60}
        # 内存库必须共享同一个连接，否则每个会话都是一个空库
        if ":memory:" in url:
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10, pool_timeout=30)

    engine = create_async_engine(url, **engine_kwargs)

    if url.startswith("sqlite") and ":memory:" not in url:
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """创建快照表"""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
