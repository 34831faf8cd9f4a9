# serialstock/services/inventory_query_service.py
from __future__ import annotations

from collections import OrderedDict
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.core.tx import TxManager
from serialstock.models.batch import Batch
from serialstock.models.enums import InventorySource, ItemStatus
from serialstock.models.item import Item
from serialstock.schemas.batch import BatchOut
from serialstock.schemas.summary import InventoryStats, SkuSummary, SourceBuckets
from serialstock.services.errors import NotFoundError


class InventoryQueryService:
    """
    只读查询 / 汇总层：

    - get_batch / list_batch_items / get_item：单对象读取，不存在抛 NotFoundError
    - summary_by_sku：按 SKU 聚合批次计数（数量、序列号、来源分桶）
    - stats：全局统计；Item 按 status 分区，序列号绑定率保留两位小数

    不修改任何状态；允许读到略旧的快照。
    """

    def __init__(self, tx: Optional[TxManager] = None) -> None:
        self.tx = tx or TxManager()

    # ------------------------------------------------------------------
    # 单对象
    # ------------------------------------------------------------------
    async def get_batch(self, session: AsyncSession, *, batch_id: int) -> Batch:
        return await self.tx.run(session, fn=self._get_batch_tx, batch_id=int(batch_id))

    async def _get_batch_tx(self, session: AsyncSession, *, batch_id: int) -> Batch:
        batch = await session.get(Batch, batch_id)
        if batch is None:
            raise NotFoundError(f"batch {batch_id} not found", batch_id=batch_id)
        return batch

    async def list_batch_items(self, session: AsyncSession, *, batch_id: int) -> list[Item]:
        return await self.tx.run(session, fn=self._list_items_tx, batch_id=int(batch_id))

    async def _list_items_tx(self, session: AsyncSession, *, batch_id: int) -> list[Item]:
        await self._get_batch_tx(session, batch_id=batch_id)
        rows = (
            await session.execute(
                select(Item)
                .where(Item.batch_id == batch_id)
                .order_by(Item.created_at.asc(), Item.id.asc())
            )
        ).scalars().all()
        return list(rows)

    async def get_item(self, session: AsyncSession, *, item_id: int) -> Item:
        return await self.tx.run(session, fn=self._get_item_tx, item_id=int(item_id))

    async def _get_item_tx(self, session: AsyncSession, *, item_id: int) -> Item:
        item = await session.get(Item, item_id)
        if item is None:
            raise NotFoundError(f"item {item_id} not found", item_id=item_id)
        return item

    # ------------------------------------------------------------------
    # 汇总
    # ------------------------------------------------------------------
    async def summary_by_sku(self, session: AsyncSession) -> list[SkuSummary]:
        return await self.tx.run(session, fn=self._summary_tx)

    async def _summary_tx(self, session: AsyncSession) -> list[SkuSummary]:
        batches = (
            await session.execute(
                select(Batch).order_by(Batch.sku.asc(), Batch.received_date.asc(), Batch.id.asc())
            )
        ).scalars().all()

        grouped: "OrderedDict[str, SkuSummary]" = OrderedDict()
        for b in batches:
            s = grouped.get(b.sku)
            if s is None:
                s = SkuSummary(
                    sku=b.sku,
                    product_name=b.product_name,
                    total_available=0,
                    total_items=0,
                    items_with_serial=0,
                    items_without_serial=0,
                    sources=SourceBuckets(),
                )
                grouped[b.sku] = s

            s.total_available += b.available_quantity
            s.total_items += b.total_quantity
            s.items_with_serial += b.serial_numbers_assigned
            s.items_without_serial += b.serial_numbers_unassigned
            if b.source == InventorySource.FROM_RETURN.value:
                s.sources.from_returns += 1
            else:
                s.sources.new_arrivals += 1
            s.batches.append(BatchOut.model_validate(b))

        return list(grouped.values())

    async def stats(self, session: AsyncSession) -> InventoryStats:
        return await self.tx.run(session, fn=self._stats_tx)

    async def _stats_tx(self, session: AsyncSession) -> InventoryStats:
        by_status = dict(
            (
                await session.execute(
                    select(Item.status, func.count(Item.id)).group_by(Item.status)
                )
            ).all()
        )
        total_items = sum(by_status.values())

        with_serial = (
            await session.execute(
                select(func.count(Item.id)).where(Item.serial_number.is_not(None))
            )
        ).scalar_one()

        by_source = dict(
            (
                await session.execute(
                    select(Batch.source, func.count(Batch.id)).group_by(Batch.source)
                )
            ).all()
        )
        unique_skus = (
            await session.execute(select(func.count(func.distinct(Batch.sku))))
        ).scalar_one()

        rate = round(with_serial / total_items * 100, 2) if total_items else 0.0

        return InventoryStats(
            total_batches=sum(by_source.values()),
            total_items=total_items,
            total_available_items=by_status.get(ItemStatus.AVAILABLE.value, 0),
            total_reserved_items=by_status.get(ItemStatus.RESERVED.value, 0),
            total_delivered_items=by_status.get(ItemStatus.DELIVERED.value, 0),
            total_returned_items=by_status.get(ItemStatus.RETURNED.value, 0),
            new_arrivals=by_source.get(InventorySource.NEW_ARRIVAL.value, 0),
            from_returns=by_source.get(InventorySource.FROM_RETURN.value, 0),
            unique_skus=unique_skus,
            items_with_serial_numbers=with_serial,
            items_without_serial_numbers=total_items - with_serial,
            serial_number_assignment_rate=rate,
        )
