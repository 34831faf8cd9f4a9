# serialstock/schemas/returns.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field

from serialstock.schemas.common import _Base


class ReturnIn(_Base):
    serial_number: str = Field(min_length=1, max_length=128)
    actor: str = Field(min_length=1, max_length=64)
    lpn_number: Optional[str] = Field(default=None, max_length=64)
    tracking_number: Optional[str] = Field(default=None, max_length=128)
    condition: Optional[str] = Field(default=None, max_length=16)
    reason: Optional[str] = None
    notes: Optional[str] = None
    restock: bool = False


class ReturnResult(_Base):
    return_id: int
    item_id: int
    restock_batch_id: Optional[int] = None
    restock_item_ids: List[int] = Field(default_factory=list)


class ReturnDecisionIn(_Base):
    decision: Literal["move_to_inventory", "keep_in_returns"]
    actor: str = Field(min_length=1, max_length=64)
    notes: Optional[str] = None


class ReturnOut(_Base):
    id: int
    serial_number: str
    item_id: int
    delivery_id: Optional[int] = None
    lpn_number: Optional[str] = None
    tracking_number: Optional[str] = None
    condition: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    received_by: str
    received_date: datetime
    restock_batch_id: Optional[int] = None
    decision: str
    decision_date: Optional[datetime] = None
    decision_by: Optional[str] = None
    decision_notes: Optional[str] = None


class ReturnStats(_Base):
    """退货统计：按决定分桶；by_condition 里未填写成色的记为 "unknown"。"""

    total: int = 0
    pending: int = 0
    moved_to_inventory: int = 0
    kept_in_returns: int = 0
    restocked: int = 0
    by_condition: Dict[str, int] = Field(default_factory=dict)
