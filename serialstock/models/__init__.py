"""
统一导出 ORM 模型。
"""

from serialstock.models.batch import Batch
from serialstock.models.bulk_operation import BulkOperation
from serialstock.models.delivery import Delivery
from serialstock.models.enums import (
    BulkOperationStatus,
    BulkOperationType,
    DeliveryStatus,
    InventorySource,
    ItemStatus,
    LedgerAction,
)
from serialstock.models.item import Item
from serialstock.models.return_record import ReturnRecord
from serialstock.models.serial_ledger import SerialLedger

__all__ = [
    "Batch",
    "BulkOperation",
    "BulkOperationStatus",
    "BulkOperationType",
    "Delivery",
    "DeliveryStatus",
    "InventorySource",
    "Item",
    "ItemStatus",
    "LedgerAction",
    "ReturnRecord",
    "SerialLedger",
]
