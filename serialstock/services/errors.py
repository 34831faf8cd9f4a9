# serialstock/services/errors.py
from __future__ import annotations

from typing import Any


class InventoryError(Exception):
    """
    引擎业务异常基类：

    - code         稳定的错误码（HTTP 层原样透出为 error_code）
    - http_status  HTTP 层映射用
    - context      可选的定位信息（item_id / serial_number / sku ...）
    """

    code = "INVENTORY_ERROR"
    http_status = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}


class ValidationError(InventoryError):
    code = "VALIDATION_ERROR"
    http_status = 422


class NotFoundError(InventoryError):
    code = "NOT_FOUND"
    http_status = 404


class DuplicateSerialNumberError(InventoryError):
    code = "DUPLICATE_SERIAL_NUMBER"
    http_status = 409

    def __init__(self, serial_number: str, **context: Any) -> None:
        super().__init__(
            f"serial number {serial_number!r} already exists",
            serial_number=serial_number,
            **context,
        )
        self.serial_number = serial_number


class AlreadyAssignedError(InventoryError):
    code = "ALREADY_ASSIGNED"
    http_status = 409


class InsufficientStockError(InventoryError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409


class InvalidStateError(InventoryError):
    """非法状态迁移（例如对 DELIVERED 件再次预留）。"""

    code = "INVALID_STATE"
    http_status = 409


class TransactionConflictError(InventoryError):
    """存储检测到的并发写冲突；已按有界次数重试仍失败时抛给调用方。"""

    code = "TRANSACTION_CONFLICT"
    http_status = 503
