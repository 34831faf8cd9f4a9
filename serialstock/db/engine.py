# serialstock/db/engine.py
# 统一引擎工厂：PG 下设置隔离级别；SQLite 只带 check_same_thread
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

__all__ = ["create_async_engine_safe"]


def _connect_args_for(url_str: str) -> dict[str, Any]:
    backend = make_url(url_str).get_backend_name()
    if backend.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def create_async_engine_safe(
    url_str: str,
    *,
    echo: bool = False,
    isolation_level: str | None = None,
) -> AsyncEngine:
    """
    Async 引擎（'postgresql+psycopg' 或 'sqlite+aiosqlite'）。

    - PG：pool_pre_ping + 指定隔离级别（默认 SERIALIZABLE，由 settings 传入）
    - SQLite 内存库：StaticPool，保证同一进程内所有会话看到同一个库
    """
    u = make_url(url_str)
    backend = u.get_backend_name()

    kwargs: dict[str, Any] = {"echo": echo}
    connect_args = _connect_args_for(url_str)
    if connect_args:
        kwargs["connect_args"] = connect_args

    if backend.startswith("postgresql"):
        kwargs["pool_pre_ping"] = True
        if isolation_level:
            kwargs["isolation_level"] = isolation_level
    elif backend.startswith("sqlite") and u.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool

    return create_async_engine(url_str, **kwargs)
