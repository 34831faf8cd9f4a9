# serialstock/services/delivery_service.py
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.core.tx import TxManager
from serialstock.metrics import DELIVERIES
from serialstock.models.batch import Batch
from serialstock.models.delivery import Delivery
from serialstock.models.enums import DeliveryStatus, ItemStatus, LedgerAction
from serialstock.models.item import Item
from serialstock.schemas.delivery import DeliveryRequest, DeliveryResult
from serialstock.services.batch_counters import lock_batch, lock_item, move_item_status
from serialstock.services.errors import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from serialstock.services.ledger_writer import write_serial_event
from serialstock.services.serial_assign_service import SerialAssignService

log = logging.getLogger(__name__)

_DELIVERABLE = (ItemStatus.AVAILABLE.value, ItemStatus.RESERVED.value)


class DeliveryService:
    """
    出库分配器（单件、单事务）：

      1. 定位目标件：指定 selected_item_id 直接取；否则按 SKU / 批次 FIFO 取最早的 AVAILABLE
      2. 目标件无序列号且请求带了序列号 → 当场绑定（唯一性复检）
      3. 仍无序列号 → ValidationError（出库必须有序列号）
      4. Item → DELIVERED，回填 delivery_id
      5. 生成 Delivery 记录
      6. 批次计数：available(或 reserved) -1，delivered +1（与 1~5 同事务读改写）
      7. 台账 delivered 事件

    任一步失败整体回滚，无部分生效。
    """

    def __init__(
        self,
        assigner: Optional[SerialAssignService] = None,
        tx: Optional[TxManager] = None,
    ) -> None:
        self.tx = tx or TxManager()
        self.assigner = assigner or SerialAssignService(tx=self.tx)

    # ------------------------------------------------------------------
    # 读：可出库件（FIFO）
    # ------------------------------------------------------------------
    @staticmethod
    def _fifo_stmt(*, sku: Optional[str] = None, batch_id: Optional[int] = None):
        stmt = (
            select(Item)
            .join(Batch, Batch.id == Item.batch_id)
            .where(Item.status == ItemStatus.AVAILABLE.value)
        )
        if sku:
            stmt = stmt.where(Batch.sku == sku)
        if batch_id is not None:
            stmt = stmt.where(Item.batch_id == int(batch_id))
        return stmt.order_by(Item.created_at.asc(), Item.id.asc())

    async def get_available_items(self, session: AsyncSession, *, sku: str) -> list[Item]:
        sku = (sku or "").strip()
        if not sku:
            raise ValidationError("sku is required")
        return await self.tx.run(session, fn=self._available_tx, sku=sku)

    async def _available_tx(self, session: AsyncSession, *, sku: str) -> list[Item]:
        rows = (await session.execute(self._fifo_stmt(sku=sku))).scalars().all()
        return list(rows)

    # ------------------------------------------------------------------
    # 写：预留
    # ------------------------------------------------------------------
    async def reserve_item(self, session: AsyncSession, *, item_id: int, actor: str) -> Item:
        if not (actor or "").strip():
            raise ValidationError("actor is required")
        item = await self.tx.run(session, fn=self._reserve_tx, item_id=int(item_id))
        log.info("item %s reserved by %s", item.id, actor)
        return item

    async def _reserve_tx(self, session: AsyncSession, *, item_id: int) -> Item:
        item = await lock_item(session, item_id)
        batch = await lock_batch(session, item.batch_id)
        move_item_status(batch, item, ItemStatus.RESERVED)
        await session.flush()
        return item

    # ------------------------------------------------------------------
    # 写：出库
    # ------------------------------------------------------------------
    async def deliver(
        self,
        session: AsyncSession,
        *,
        request: DeliveryRequest,
        actor: str,
    ) -> DeliveryResult:
        if not (actor or "").strip():
            raise ValidationError("actor is required")
        if request.quantity != 1:
            raise ValidationError(
                f"a delivery allocates exactly one item, got quantity {request.quantity}"
            )
        if request.selected_item_id is None and request.batch_id is None and not request.sku:
            raise ValidationError("one of selected_item_id, batch_id or sku is required")

        result = await self.tx.run(session, fn=self._deliver_tx, request=request, actor=actor)
        mode = "selected" if request.selected_item_id is not None else "fifo"
        DELIVERIES.labels(mode=mode).inc()
        log.info(
            "delivery %s: item %s sn=%s batch=%s sku=%s by %s",
            result.delivery_id,
            result.item_id,
            result.serial_number,
            result.batch_id,
            result.sku,
            actor,
        )
        return result

    async def _resolve_item(self, session: AsyncSession, request: DeliveryRequest) -> Item:
        if request.selected_item_id is not None:
            item = await lock_item(session, int(request.selected_item_id))
            if item.status not in _DELIVERABLE:
                raise InvalidStateError(
                    f"item {item.id} is {item.status} and cannot be delivered",
                    item_id=item.id,
                    status=item.status,
                )
            if request.batch_id is not None and item.batch_id != int(request.batch_id):
                raise ValidationError(
                    f"item {item.id} does not belong to batch {request.batch_id}",
                    item_id=item.id,
                    batch_id=request.batch_id,
                )
            return item

        # 并发出库互不等待：PG 下跳过已被其他事务锁住的件
        stmt = (
            self._fifo_stmt(sku=request.sku, batch_id=request.batch_id)
            .limit(1)
            .with_for_update(skip_locked=True, of=Item)
        )
        item = (await session.execute(stmt)).scalar_one_or_none()
        if item is None:
            raise InsufficientStockError(
                "no available item for delivery",
                sku=request.sku,
                batch_id=request.batch_id,
            )
        return item

    async def _deliver_tx(
        self,
        session: AsyncSession,
        *,
        request: DeliveryRequest,
        actor: str,
    ) -> DeliveryResult:
        item = await self._resolve_item(session, request)
        batch = await lock_batch(session, item.batch_id)
        if request.sku and batch.sku != request.sku:
            raise ValidationError(
                f"item {item.id} belongs to sku {batch.sku}, not {request.sku}",
                item_id=item.id,
                sku=request.sku,
            )

        requested_sn = (request.serial_number or "").strip() or None
        if not item.serial_number and requested_sn:
            await self.assigner.ensure_serial_free(session, requested_sn)
            await self.assigner.bind_in_tx(
                session,
                item=item,
                serial_number=requested_sn,
                actor=actor,
                batch=batch,
                details="serial number assigned at delivery",
            )
        elif item.serial_number and requested_sn and requested_sn != item.serial_number:
            raise ValidationError(
                f"item {item.id} carries serial {item.serial_number!r}, not {requested_sn!r}",
                item_id=item.id,
            )

        if not item.serial_number:
            raise ValidationError(
                f"item {item.id} has no serial number; delivery requires one",
                item_id=item.id,
            )

        now = datetime.now(UTC)
        delivery = Delivery(
            item_id=item.id,
            batch_id=batch.id,
            serial_number=item.serial_number,
            sku=batch.sku,
            product_name=batch.product_name,
            customer_info=request.customer_info.model_dump(exclude_none=True),
            shipping_label=(
                request.shipping_label.model_dump(exclude_none=True)
                if request.shipping_label is not None
                else None
            ),
            tracking_number=request.tracking_number,
            notes=request.notes,
            delivered_by=actor,
            status=DeliveryStatus.DELIVERED.value,
            created_at=now,
        )
        session.add(delivery)
        await session.flush()

        move_item_status(batch, item, ItemStatus.DELIVERED)
        item.delivery_id = delivery.id
        await session.flush()

        await write_serial_event(
            session,
            serial_number=item.serial_number,
            item_id=item.id,
            action=LedgerAction.DELIVERED,
            action_by=actor,
            details=f"delivered from batch {batch.id}",
            reference_id=delivery.id,
            action_date=now,
        )

        return DeliveryResult(
            delivery_id=delivery.id,
            item_id=item.id,
            serial_number=item.serial_number,
            batch_id=batch.id,
            product_name=batch.product_name,
            sku=batch.sku,
            delivered_by=actor,
            delivery_date=now,
        )

    # ------------------------------------------------------------------
    # 读：交付历史
    # ------------------------------------------------------------------
    async def delivery_history_for_item(
        self, session: AsyncSession, *, item_id: int
    ) -> list[Delivery]:
        return await self.tx.run(session, fn=self._history_tx, item_id=int(item_id))

    async def _history_tx(self, session: AsyncSession, *, item_id: int) -> list[Delivery]:
        if await session.get(Item, item_id) is None:
            raise NotFoundError(f"item {item_id} not found", item_id=item_id)
        rows = (
            await session.execute(
                select(Delivery)
                .where(Delivery.item_id == item_id)
                .order_by(Delivery.created_at.desc(), Delivery.id.desc())
            )
        ).scalars().all()
        return list(rows)
