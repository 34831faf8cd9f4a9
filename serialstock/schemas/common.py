from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _Base(BaseModel):
    """
    通用基类：
    - from_attributes: 支持 SQLAlchemy ORM 自动序列化；
    - extra = ignore: 忽略多余字段；
    - populate_by_name: 支持 alias。
    """

    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        populate_by_name=True,
    )
