# serialstock/api/deps.py
from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.db.session import get_session as _get_session


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    路由统一依赖：每请求一个 AsyncSession。
    事务由服务层 TxManager 自行开启 / 提交，路由不再 commit。
    """
    async for session in _get_session():
        yield session
