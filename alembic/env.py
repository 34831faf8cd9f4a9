# alembic/env.py
# 同步引擎跑迁移；DSN 与应用共用 SERIALSTOCK_ 配置

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection
from sqlalchemy.pool import NullPool

# Alembic 基本配置
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# 延迟加载模型（避免导入时机引发的问题）
from serialstock.core.config import normalize_async_dsn  # noqa: E402
from serialstock.db.base import Base, init_models  # noqa: E402


def to_sync_url(url: str) -> str:
    """
    迁移用同步驱动：
      - sqlite+aiosqlite:// → sqlite://
      - postgresql+psycopg:// 原样（psycopg3 同步 / 异步通吃）
    """
    url = normalize_async_dsn(url)
    if url.startswith("sqlite+aiosqlite://"):
        return "sqlite://" + url[len("sqlite+aiosqlite://") :]
    return url


def get_url() -> str:
    """
    优先级：
      1. SERIALSTOCK_TEST_DATABASE_URL
      2. SERIALSTOCK_DATABASE_URL
      3. alembic.ini 里的 sqlalchemy.url
    """
    url = (
        os.getenv("SERIALSTOCK_TEST_DATABASE_URL")
        or os.getenv("SERIALSTOCK_DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        raise RuntimeError(
            "Alembic 无法确定数据库 URL：\n"
            "请设置 SERIALSTOCK_DATABASE_URL，或在 alembic.ini 里配置 sqlalchemy.url"
        )
    return to_sync_url(url)


def run_migrations_offline() -> None:
    """
    Offline 模式：不真实连库，只生成 SQL。
    """
    init_models()
    context.configure(
        url=get_url(),
        target_metadata=Base.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=False,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Online 模式：真实连库执行迁移。
    """
    init_models()
    url = get_url()
    engine = create_engine(url, poolclass=NullPool, future=True)

    with engine.connect() as connection:  # type: Connection
        context.configure(
            connection=connection,
            target_metadata=Base.metadata,
            compare_type=True,
            compare_server_default=False,
            # SQLite 的 ALTER 能力有限，走 batch 模式
            render_as_batch=url.startswith("sqlite"),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
