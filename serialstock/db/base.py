# serialstock/db/base.py
from __future__ import annotations

import importlib
import logging

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("serialstock.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False  # 防重复初始化

# 显式导入顺序：被外键引用的表在前
MODEL_MODULES = (
    "serialstock.models.batch",
    "serialstock.models.item",
    "serialstock.models.serial_ledger",
    "serialstock.models.bulk_operation",
    "serialstock.models.delivery",
    "serialstock.models.return_record",
)


def init_models(*, force: bool = False) -> None:
    """
    集中导入模型 + 固化映射，保证 Base.metadata 完整（create_all / alembic 共用）。
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized (%d modules)", len(MODEL_MODULES))
