# serialstock/services/batch_counters.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.models.batch import Batch
from serialstock.models.enums import ITEM_TRANSITIONS, STATUS_COUNTER, InventorySource, ItemStatus
from serialstock.models.item import Item
from serialstock.services.errors import InvalidStateError, NotFoundError


async def lock_batch(session: AsyncSession, batch_id: int) -> Batch:
    """
    行锁读取批次（PG: SELECT ... FOR UPDATE；SQLite 忽略 FOR UPDATE，由库级写锁串行化）。
    计数读改写必须在此之后、同一事务内完成。
    """
    batch = await session.get(Batch, batch_id, with_for_update=True, populate_existing=True)
    if batch is None:
        raise NotFoundError(f"batch {batch_id} not found", batch_id=batch_id)
    return batch


async def lock_item(session: AsyncSession, item_id: int) -> Item:
    item = await session.get(Item, item_id, with_for_update=True, populate_existing=True)
    if item is None:
        raise NotFoundError(f"item {item_id} not found", item_id=item_id)
    return item


def move_item_status(batch: Batch, item: Item, to: ItemStatus) -> None:
    """
    单件状态迁移 + 对应批次计数搬移（from 计数 -1，to 计数 +1），总数不变。
    """
    if item.batch_id != batch.id:
        raise InvalidStateError(
            f"item {item.id} does not belong to batch {batch.id}",
            item_id=item.id,
            batch_id=batch.id,
        )

    frm = ItemStatus(item.status)
    if to not in ITEM_TRANSITIONS[frm]:
        raise InvalidStateError(
            f"item {item.id} cannot move from {frm} to {to}",
            item_id=item.id,
            status=str(frm),
        )
    if frm is ItemStatus.RETURNED and (
        batch.source != InventorySource.FROM_RETURN.value or item.delivery_id is not None
    ):
        # 只有退货批次里从未出库的再入库件可以放回可售；被退回的原件不复活
        raise InvalidStateError(
            f"item {item.id} is a returned original and cannot re-enter stock",
            item_id=item.id,
            batch_id=batch.id,
        )

    dec_col = STATUS_COUNTER[frm]
    inc_col = STATUS_COUNTER[to]
    current = int(getattr(batch, dec_col))
    if current <= 0:
        # 计数与单件不一致：拒绝写入，而不是写出负数
        raise InvalidStateError(
            f"batch {batch.id} {dec_col} is {current}, cannot decrement",
            batch_id=batch.id,
        )

    setattr(batch, dec_col, current - 1)
    setattr(batch, inc_col, int(getattr(batch, inc_col)) + 1)
    item.status = to.value


def count_serial_bound(batch: Batch) -> None:
    if int(batch.serial_numbers_unassigned) <= 0:
        raise InvalidStateError(
            f"batch {batch.id} has no unassigned serial slots",
            batch_id=batch.id,
        )
    batch.serial_numbers_assigned = int(batch.serial_numbers_assigned) + 1
    batch.serial_numbers_unassigned = int(batch.serial_numbers_unassigned) - 1
