# serialstock/core/config.py
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_async_dsn(url: str) -> str:
    """
    把各种写法的 DSN 归一到异步驱动：
      - postgres:// / postgresql:// / postgresql+asyncpg:// → postgresql+psycopg://
      - sqlite:///  → sqlite+aiosqlite:///
    """
    url = (url or "").strip()
    # 有些环境会把值写成 '"postgresql://..."'，统一剥掉两侧引号
    if len(url) >= 2 and url[0] == url[-1] and url[0] in ("'", '"'):
        url = url[1:-1].strip()

    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///") :]
    for prefix in ("postgresql+asyncpg://", "postgres+asyncpg://", "postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix) :]
    return url


class AppSettings(BaseSettings):
    """
    全局应用配置（环境变量前缀 SERIALSTOCK_，支持 .env）
    """

    ENV: str = Field(default="dev")

    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./serialstock.db",
        description="数据库连接串，例如：postgresql+psycopg://ss:ss@127.0.0.1:5432/serialstock",
    )
    SQL_ECHO: bool = Field(default=False)

    LOG_LEVEL: str = Field(default="INFO")

    # 事务：PG 下使用的隔离级别；SQLite 自身串行化写入，不设置
    TX_ISOLATION_LEVEL: str = Field(default="SERIALIZABLE")
    # 并发冲突（serialization failure / deadlock）的有界重试
    TX_MAX_RETRIES: int = Field(default=3, ge=0)
    TX_RETRY_BACKOFF_MS: int = Field(default=20, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="SERIALSTOCK_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def _normalize_dsn(cls, v: str) -> str:
        return normalize_async_dsn(v)

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> AppSettings:
    """全局单例设置入口。"""
    return AppSettings()
