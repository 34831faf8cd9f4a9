# serialstock/db/session.py
# 异步会话工厂 + FastAPI 依赖（get_session）
from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from serialstock.core.config import get_settings
from serialstock.db.engine import create_async_engine_safe

log = logging.getLogger(__name__)

_settings = get_settings()

ASYNC_URL = _settings.DATABASE_URL

async_engine: AsyncEngine = create_async_engine_safe(
    ASYNC_URL,
    echo=_settings.SQL_ECHO,
    isolation_level=_settings.TX_ISOLATION_LEVEL,
)

AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---- FastAPI 依赖 ----
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


async def create_all() -> None:
    """开发 / 测试用：按 ORM 元数据建表（生产走 alembic）。"""
    from serialstock.db.base import Base, init_models

    init_models()
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("tables ensured on %s", async_engine.url.render_as_string(hide_password=True))


# ---- 关闭引擎（测试/生命周期） ----
async def close_engines() -> None:
    await async_engine.dispose()
