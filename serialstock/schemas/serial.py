# serialstock/schemas/serial.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from serialstock.schemas.batch import BatchOut, ItemOut
from serialstock.schemas.common import _Base


class SerialAssignIn(_Base):
    serial_number: str = Field(min_length=1, max_length=128)
    actor: str = Field(min_length=1, max_length=64)
    notes: Optional[str] = None


class LedgerEventOut(_Base):
    id: int
    serial_number: str
    item_id: int
    action: str
    action_date: datetime
    action_by: str
    details: Optional[str] = None
    reference_id: Optional[str] = None


class SerialValidation(_Base):
    """
    序列号查询结果（纯读）：
    - exists=False 时其余字段为空，return_history 为空列表
    - return_history 取台账中该序列号的 returned 事件
    """

    exists: bool
    item: Optional[ItemOut] = None
    batch: Optional[BatchOut] = None
    product_name: Optional[str] = None
    sku: Optional[str] = None
    current_status: Optional[str] = None
    last_delivery_date: Optional[datetime] = None
    return_history: List[LedgerEventOut] = Field(default_factory=list)
