# serialstock/schemas/bulk.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from serialstock.schemas.common import _Base


class SerialAssignment(_Base):
    item_id: int
    serial_number: str = Field(max_length=128)


class BulkAssignIn(_Base):
    assignments: List[SerialAssignment]
    actor: str = Field(min_length=1, max_length=64)
    notes: Optional[str] = None


class BulkResult(_Base):
    """
    批量结果：successful == 0 时调用方应视为整体失败并展示 errors。
    """

    operation_id: int
    successful: int
    failed: int
    errors: List[str] = Field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return self.successful == 0


class BulkOperationOut(_Base):
    id: int
    type: str
    batch_id: Optional[int] = None
    item_ids: List[int]
    status: str
    created_by: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    successful: Optional[int] = None
    failed: Optional[int] = None
    errors: Optional[List[str]] = None
