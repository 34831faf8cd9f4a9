# serialstock/core/tx.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.core.config import get_settings
from serialstock.metrics import TX_CONFLICTS
from serialstock.services.errors import TransactionConflictError

log = logging.getLogger(__name__)

T = TypeVar("T")

# PG: serialization_failure / deadlock_detected
_CONFLICT_SQLSTATES = {"40001", "40P01"}


def _sqlstate_of(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    for attr in ("sqlstate", "pgcode"):
        v = getattr(orig, attr, None)
        if v:
            return str(v)
    return None


def is_conflict_error(exc: BaseException) -> bool:
    """是否为“可重试”的并发冲突（PG 串行化失败 / 死锁；SQLite 库锁）。"""
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    if _sqlstate_of(exc) in _CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(getattr(exc, "orig", exc)).lower()


def is_unique_violation(exc: BaseException, column: str) -> bool:
    """唯一约束冲突且命中指定列（PG 报约束名，SQLite 报 table.column）。"""
    if not isinstance(exc, IntegrityError):
        return False
    msg = str(getattr(exc, "orig", exc))
    return column in msg and ("unique" in msg.lower() or "duplicate" in msg.lower())


class TxManager:
    """
    统一的事务执行器：

        result = await TxManager().run(session, fn=handler, **kwargs)

    - 每次尝试都是一个独立的 session.begin()：fn 正常返回即提交，抛错即回滚
    - 并发冲突按 TX_MAX_RETRIES 有界重试（线性退避），耗尽后抛 TransactionConflictError
    - Handler 内部不得控事务；调用前 session 不得处于事务中（先 commit 掉隐式事务）
    """

    def __init__(self, *, max_retries: int | None = None, backoff_ms: int | None = None) -> None:
        s = get_settings()
        self.max_retries = s.TX_MAX_RETRIES if max_retries is None else int(max_retries)
        self.backoff_ms = s.TX_RETRY_BACKOFF_MS if backoff_ms is None else int(backoff_ms)

    async def run(
        self,
        session: AsyncSession,
        *,
        fn: Callable[..., Awaitable[T]],
        **kwargs: Any,
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                async with session.begin():
                    return await fn(session=session, **kwargs)
            except TransactionConflictError:
                if attempt > self.max_retries:
                    TX_CONFLICTS.labels(outcome="exhausted").inc()
                    raise
                self._log_retry(fn, attempt, "conflict raised by handler")
            except DBAPIError as e:
                if not is_conflict_error(e):
                    raise
                if attempt > self.max_retries:
                    TX_CONFLICTS.labels(outcome="exhausted").inc()
                    raise TransactionConflictError(
                        "concurrent update conflict, retries exhausted",
                        attempts=attempt,
                    ) from e
                self._log_retry(fn, attempt, str(getattr(e, "orig", e)))

            if self.backoff_ms:
                await asyncio.sleep(self.backoff_ms * attempt / 1000.0)

    def _log_retry(self, fn: Callable[..., Any], attempt: int, why: str) -> None:
        TX_CONFLICTS.labels(outcome="retried").inc()
        log.warning(
            "tx conflict in %s (attempt %d/%d), retrying: %s",
            getattr(fn, "__qualname__", fn),
            attempt,
            self.max_retries + 1,
            why,
        )
