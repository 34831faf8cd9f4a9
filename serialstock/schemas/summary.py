# serialstock/schemas/summary.py
from __future__ import annotations

from typing import List

from pydantic import Field

from serialstock.schemas.batch import BatchOut
from serialstock.schemas.common import _Base


class SourceBuckets(_Base):
    new_arrivals: int = 0
    from_returns: int = 0


class SkuSummary(_Base):
    sku: str
    product_name: str
    total_available: int
    total_items: int
    items_with_serial: int
    items_without_serial: int
    sources: SourceBuckets = Field(default_factory=SourceBuckets)
    batches: List[BatchOut] = Field(default_factory=list)


class InventoryStats(_Base):
    total_batches: int = 0
    total_items: int = 0
    total_available_items: int = 0
    total_reserved_items: int = 0
    total_delivered_items: int = 0
    total_returned_items: int = 0
    new_arrivals: int = 0
    from_returns: int = 0
    unique_skus: int = 0
    items_with_serial_numbers: int = 0
    items_without_serial_numbers: int = 0
    serial_number_assignment_rate: float = 0.0
