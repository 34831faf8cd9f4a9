# tests/conftest.py
from __future__ import annotations

import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# 在 import serialstock.main 之前固定环境，避免 lifespan / 默认库指向开发库
os.environ.setdefault("SERIALSTOCK_ENV", "test")
os.environ.setdefault("SERIALSTOCK_DATABASE_URL", "sqlite+aiosqlite://")

from serialstock.api.deps import get_session  # noqa: E402
from serialstock.core.config import normalize_async_dsn  # noqa: E402
from serialstock.db.base import Base, init_models  # noqa: E402
from serialstock.db.engine import create_async_engine_safe  # noqa: E402
from serialstock.main import app  # noqa: E402

# ==========================
# 数据库 DSN：显式 PG 或内存 SQLite（StaticPool，同进程共享一个库）
# ==========================
DATABASE_URL = normalize_async_dsn(
    os.getenv("SERIALSTOCK_TEST_DATABASE_URL") or "sqlite+aiosqlite://"
)


# =========================================
# 每用例独立 Engine + 按 ORM 元数据建表 / 删表
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = create_async_engine_safe(DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    服务层用 Session：
      事务由 TxManager 在每次调用里自行 begin / commit，
      用例里不要直接在这个 session 上执行 SQL（会开隐式事务）。
    """
    async with async_session_maker() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


# =========================================
# FastAPI / httpx AsyncClient（请求级 Session 指向测试库）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(async_session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with async_session_maker() as sess:
            yield sess

    app.dependency_overrides[get_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
        ) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_session, None)
