# serialstock/models/enums.py
from __future__ import annotations

from enum import StrEnum


class InventorySource(StrEnum):
    """
    批次来源（决定 Batch.source / source_reference 以及新建 Item 的初始状态）：

    - NEW_ARRIVAL   到货包裹收货 → Item 初始 AVAILABLE
    - FROM_RETURN   客户退货入库 → Item 初始 RETURNED
    """

    NEW_ARRIVAL = "NEW_ARRIVAL"
    FROM_RETURN = "FROM_RETURN"


class ItemStatus(StrEnum):
    """
    单件状态机：

        AVAILABLE → RESERVED → DELIVERED
        AVAILABLE → DELIVERED
        DELIVERED → RETURNED
        RETURNED  → AVAILABLE   仅限 FROM_RETURN 批次里的再入库件（退货决定 move_to_inventory）

    原件退回后即为终态；退货再入库生成新的 Item，不复活旧 Item。
    """

    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"


# 允许的状态迁移（from → {to}）
ITEM_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.AVAILABLE: frozenset({ItemStatus.RESERVED, ItemStatus.DELIVERED}),
    ItemStatus.RESERVED: frozenset({ItemStatus.DELIVERED}),
    ItemStatus.DELIVERED: frozenset({ItemStatus.RETURNED}),
    ItemStatus.RETURNED: frozenset({ItemStatus.AVAILABLE}),
}

# 每个状态对应的 Batch 计数列
STATUS_COUNTER: dict[ItemStatus, str] = {
    ItemStatus.AVAILABLE: "available_quantity",
    ItemStatus.RESERVED: "reserved_quantity",
    ItemStatus.DELIVERED: "delivered_quantity",
    ItemStatus.RETURNED: "returned_quantity",
}


class LedgerAction(StrEnum):
    ASSIGNED = "assigned"
    DELIVERED = "delivered"
    RETURNED = "returned"
    MOVED_TO_INVENTORY = "moved_to_inventory"
    KEPT_IN_RETURNS = "kept_in_returns"


class BulkOperationType(StrEnum):
    SERIAL_NUMBER_ASSIGNMENT = "serial_number_assignment"


class BulkOperationStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ReturnDecision(StrEnum):
    PENDING = "pending"
    MOVE_TO_INVENTORY = "move_to_inventory"
    KEEP_IN_RETURNS = "keep_in_returns"


class DeliveryStatus(StrEnum):
    DELIVERED = "delivered"
