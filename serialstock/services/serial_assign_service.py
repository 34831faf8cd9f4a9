# serialstock/services/serial_assign_service.py
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.core.tx import TxManager, is_unique_violation
from serialstock.metrics import SERIALS
from serialstock.models.batch import Batch
from serialstock.models.delivery import Delivery
from serialstock.models.enums import LedgerAction
from serialstock.models.item import Item
from serialstock.models.serial_ledger import SerialLedger
from serialstock.schemas.batch import BatchOut, ItemOut
from serialstock.schemas.serial import LedgerEventOut, SerialValidation
from serialstock.services.batch_counters import count_serial_bound, lock_batch, lock_item
from serialstock.services.errors import (
    AlreadyAssignedError,
    DuplicateSerialNumberError,
    ValidationError,
)
from serialstock.services.ledger_writer import write_serial_event

log = logging.getLogger(__name__)


def normalize_serial_number(value: Optional[str]) -> str:
    """去两侧空白；空串视为非法输入。"""
    sn = (value or "").strip()
    if not sn:
        raise ValidationError("serial number must not be empty")
    return sn


class SerialAssignService:
    """
    序列号绑定服务

    assign(...)：
      单事务内完成
        - 唯一性校验（查询 + items.serial_number 唯一约束在 flush 时兜底）
        - Item.serial_number / assigned_date / assigned_by
        - Batch.serial_numbers_assigned +1 / unassigned -1
        - 台账 assigned 事件
      任一失败整体回滚。

    bind_in_tx(...)：不控事务，供出库 / 收货等已在事务内的流程复用。
    """

    def __init__(self, tx: Optional[TxManager] = None) -> None:
        self.tx = tx or TxManager()

    # ------------------------------------------------------------------
    # 写：单件绑定
    # ------------------------------------------------------------------
    async def assign(
        self,
        session: AsyncSession,
        *,
        item_id: int,
        serial_number: str,
        actor: str,
        notes: Optional[str] = None,
        expected_batch_id: Optional[int] = None,
    ) -> Item:
        sn = normalize_serial_number(serial_number)
        if not (actor or "").strip():
            raise ValidationError("actor is required")

        item = await self.tx.run(
            session,
            fn=self._assign_tx,
            item_id=int(item_id),
            serial_number=sn,
            actor=actor,
            notes=notes,
            expected_batch_id=expected_batch_id,
        )
        SERIALS.labels(path="assign").inc()
        log.info("serial %s assigned to item %s by %s", sn, item.id, actor)
        return item

    async def _assign_tx(
        self,
        session: AsyncSession,
        *,
        item_id: int,
        serial_number: str,
        actor: str,
        notes: Optional[str],
        expected_batch_id: Optional[int],
    ) -> Item:
        # 先查重：同一序列号重复提交一律报 Duplicate（与目标件是否已绑定无关）
        await self.ensure_serial_free(session, serial_number)

        item = await lock_item(session, item_id)
        if expected_batch_id is not None and item.batch_id != int(expected_batch_id):
            raise ValidationError(
                f"item {item.id} does not belong to batch {expected_batch_id}",
                item_id=item.id,
                batch_id=expected_batch_id,
            )

        await self.bind_in_tx(
            session,
            item=item,
            serial_number=serial_number,
            actor=actor,
            notes=notes,
        )
        return item

    async def ensure_serial_free(self, session: AsyncSession, serial_number: str) -> None:
        owner_id = (
            await session.execute(
                select(Item.id).where(Item.serial_number == serial_number).limit(1)
            )
        ).scalar_one_or_none()
        if owner_id is not None:
            raise DuplicateSerialNumberError(serial_number, item_id=owner_id)

    async def bind_in_tx(
        self,
        session: AsyncSession,
        *,
        item: Item,
        serial_number: str,
        actor: str,
        notes: Optional[str] = None,
        batch: Optional[Batch] = None,
        details: Optional[str] = None,
        reference_id: Optional[str | int] = None,
    ) -> None:
        """
        在调用方事务内把 serial_number 绑定到 item（调用方负责已 lock_item）。
        batch 若已由调用方加锁读出则直接复用，避免重复 SELECT 覆盖未 flush 的计数。
        """
        if item.serial_number:
            raise AlreadyAssignedError(
                f"item {item.id} already has serial number {item.serial_number!r}",
                item_id=item.id,
                serial_number=item.serial_number,
            )

        if batch is None:
            batch = await lock_batch(session, item.batch_id)

        # flush 失败会回滚并 expire 全部 ORM 对象，之后不能再读属性
        item_id = item.id
        batch_id = batch.id

        now = datetime.now(UTC)
        item.serial_number = serial_number
        item.assigned_date = now
        item.assigned_by = actor
        if notes:
            item.notes = notes
        count_serial_bound(batch)

        try:
            await session.flush()
        except IntegrityError as e:
            # 并发下另一事务抢先提交了同一序列号：唯一约束在此兜底
            if is_unique_violation(e, "serial_number"):
                raise DuplicateSerialNumberError(serial_number, item_id=item_id) from e
            raise

        await write_serial_event(
            session,
            serial_number=serial_number,
            item_id=item_id,
            action=LedgerAction.ASSIGNED,
            action_by=actor,
            details=details or notes or f"serial number assigned (batch {batch_id})",
            reference_id=reference_id,
            action_date=now,
        )

    # ------------------------------------------------------------------
    # 读：序列号查询（无副作用）
    # ------------------------------------------------------------------
    async def validate(self, session: AsyncSession, serial_number: str) -> SerialValidation:
        sn = (serial_number or "").strip()
        if not sn:
            return SerialValidation(exists=False)
        return await self.tx.run(session, fn=self._validate_tx, serial_number=sn)

    async def _validate_tx(self, session: AsyncSession, *, serial_number: str) -> SerialValidation:
        item = (
            await session.execute(select(Item).where(Item.serial_number == serial_number))
        ).scalar_one_or_none()
        if item is None:
            return SerialValidation(exists=False)

        batch = await session.get(Batch, item.batch_id)

        returns = (
            await session.execute(
                select(SerialLedger)
                .where(SerialLedger.serial_number == serial_number)
                .where(SerialLedger.action == LedgerAction.RETURNED.value)
                .order_by(SerialLedger.action_date.asc(), SerialLedger.id.asc())
            )
        ).scalars().all()

        last_delivery_date = (
            await session.execute(
                select(Delivery.created_at)
                .where(Delivery.item_id == item.id)
                .order_by(Delivery.created_at.desc(), Delivery.id.desc())
                .limit(1)
            )
        ).scalar_one_or_none()

        return SerialValidation(
            exists=True,
            item=ItemOut.model_validate(item),
            batch=BatchOut.model_validate(batch) if batch is not None else None,
            product_name=batch.product_name if batch is not None else None,
            sku=batch.sku if batch is not None else None,
            current_status=item.status,
            last_delivery_date=last_delivery_date,
            return_history=[LedgerEventOut.model_validate(r) for r in returns],
        )

    async def history(self, session: AsyncSession, serial_number: str) -> list[SerialLedger]:
        """序列号完整台账时间线（action_date 升序）。"""
        sn = normalize_serial_number(serial_number)
        return await self.tx.run(session, fn=self._history_tx, serial_number=sn)

    async def _history_tx(self, session: AsyncSession, *, serial_number: str) -> list[SerialLedger]:
        rows = (
            await session.execute(
                select(SerialLedger)
                .where(SerialLedger.serial_number == serial_number)
                .order_by(SerialLedger.action_date.asc(), SerialLedger.id.asc())
            )
        ).scalars().all()
        return list(rows)
