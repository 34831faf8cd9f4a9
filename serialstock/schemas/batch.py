# serialstock/schemas/batch.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from serialstock.schemas.common import _Base
from serialstock.schemas.source import BatchSource


class BatchCreateIn(_Base):
    source: BatchSource
    quantity: int = Field(ge=1, description="本次收货件数")
    actor: str = Field(min_length=1, max_length=64)
    pre_assigned_serials: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class BatchCreated(_Base):
    batch_id: int
    item_ids: List[int]


class BatchOut(_Base):
    id: int
    sku: str
    product_name: str
    total_quantity: int
    available_quantity: int
    reserved_quantity: int
    delivered_quantity: int
    returned_quantity: int
    source: str
    source_reference: str
    received_date: datetime
    received_by: str
    serial_numbers_assigned: int
    serial_numbers_unassigned: int
    batch_notes: Optional[str] = None


class ItemOut(_Base):
    id: int
    batch_id: int
    serial_number: Optional[str] = None
    status: str
    assigned_date: Optional[datetime] = None
    assigned_by: Optional[str] = None
    delivery_id: Optional[int] = None
    return_id: Optional[int] = None
    created_at: datetime
    notes: Optional[str] = None


class ItemReserveIn(_Base):
    actor: str = Field(min_length=1, max_length=64)
