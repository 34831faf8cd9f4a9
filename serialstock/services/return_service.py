# serialstock/services/return_service.py
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.core.tx import TxManager
from serialstock.metrics import BATCHES, RETURN_DECISIONS, RETURNS
from serialstock.models.batch import Batch
from serialstock.models.enums import InventorySource, ItemStatus, LedgerAction, ReturnDecision
from serialstock.models.item import Item
from serialstock.models.return_record import ReturnRecord
from serialstock.schemas.returns import ReturnResult, ReturnStats
from serialstock.schemas.source import ReturnSource
from serialstock.services.batch_allocation_service import BatchAllocationService
from serialstock.services.batch_counters import lock_batch, move_item_status
from serialstock.services.errors import InvalidStateError, NotFoundError, ValidationError
from serialstock.services.ledger_writer import write_serial_event
from serialstock.services.serial_assign_service import normalize_serial_number

log = logging.getLogger(__name__)


class ReturnService:
    """
    客户退货登记（单事务）：

    - 序列号必须属于一件 DELIVERED 的 Item
    - 原件 DELIVERED → RETURNED，回填 return_id；批次 delivered -1 / returned +1
    - 写 ReturnRecord + 台账 returned 事件
    - restock=True：同事务内新建 1 件的 FROM_RETURN 批次（新 Item 初始 RETURNED，
      不带序列号：序列号仍归属原件）；不会把原件复活成 AVAILABLE
    - decide()：pending → move_to_inventory（再入库件放回可售）/ keep_in_returns
    """

    def __init__(
        self,
        allocator: Optional[BatchAllocationService] = None,
        tx: Optional[TxManager] = None,
    ) -> None:
        self.tx = tx or TxManager()
        self.allocator = allocator or BatchAllocationService(tx=self.tx)

    async def record_return(
        self,
        session: AsyncSession,
        *,
        serial_number: str,
        actor: str,
        lpn_number: Optional[str] = None,
        tracking_number: Optional[str] = None,
        condition: Optional[str] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        restock: bool = False,
    ) -> ReturnResult:
        sn = normalize_serial_number(serial_number)
        if not (actor or "").strip():
            raise ValidationError("actor is required")

        result = await self.tx.run(
            session,
            fn=self._record_tx,
            serial_number=sn,
            actor=actor,
            lpn_number=lpn_number,
            tracking_number=tracking_number,
            condition=condition,
            reason=reason,
            notes=notes,
            restock=restock,
        )
        RETURNS.labels(restock="true" if restock else "false").inc()
        if result.restock_batch_id is not None:
            BATCHES.labels(source=InventorySource.FROM_RETURN.value).inc()
        log.info(
            "return %s recorded for serial %s (item %s, restock batch %s) by %s",
            result.return_id,
            sn,
            result.item_id,
            result.restock_batch_id,
            actor,
        )
        return result

    async def _record_tx(
        self,
        session: AsyncSession,
        *,
        serial_number: str,
        actor: str,
        lpn_number: Optional[str],
        tracking_number: Optional[str],
        condition: Optional[str],
        reason: Optional[str],
        notes: Optional[str],
        restock: bool,
    ) -> ReturnResult:
        item = (
            await session.execute(
                select(Item).where(Item.serial_number == serial_number).with_for_update()
            )
        ).scalar_one_or_none()
        if item is None:
            raise NotFoundError(
                f"serial number {serial_number!r} not found",
                serial_number=serial_number,
            )
        if item.status != ItemStatus.DELIVERED.value:
            raise InvalidStateError(
                f"item {item.id} is {item.status}; only delivered items can be returned",
                item_id=item.id,
                status=item.status,
            )

        batch = await lock_batch(session, item.batch_id)

        now = datetime.now(UTC)
        rec = ReturnRecord(
            serial_number=serial_number,
            item_id=item.id,
            delivery_id=item.delivery_id,
            lpn_number=lpn_number,
            tracking_number=tracking_number,
            condition=condition,
            reason=reason,
            notes=notes,
            received_by=actor,
            received_date=now,
        )
        session.add(rec)
        await session.flush()

        move_item_status(batch, item, ItemStatus.RETURNED)
        item.return_id = rec.id

        details = "item returned"
        if lpn_number:
            details += f" - LPN: {lpn_number}"
        if condition:
            details += f", condition: {condition}"
        await write_serial_event(
            session,
            serial_number=serial_number,
            item_id=item.id,
            action=LedgerAction.RETURNED,
            action_by=actor,
            details=details,
            reference_id=rec.id,
            action_date=now,
        )

        restock_batch_id: Optional[int] = None
        restock_item_ids: list[int] = []
        if restock:
            new_batch, new_items = await self._restock_in_tx(
                session,
                rec=rec,
                sku=batch.sku,
                product_name=batch.product_name,
                actor=actor,
            )
            rec.restock_batch_id = new_batch.id
            restock_batch_id = new_batch.id
            restock_item_ids = [it.id for it in new_items]

        await session.flush()
        return ReturnResult(
            return_id=rec.id,
            item_id=item.id,
            restock_batch_id=restock_batch_id,
            restock_item_ids=restock_item_ids,
        )

    async def _restock_in_tx(
        self,
        session: AsyncSession,
        *,
        rec: ReturnRecord,
        sku: str,
        product_name: str,
        actor: str,
    ) -> tuple[Batch, list[Item]]:
        """新建 1 件的 FROM_RETURN 批次（件初始 RETURNED，不带序列号）。"""
        return await self.allocator.create_in_tx(
            session,
            source=ReturnSource(sku=sku, product_name=product_name, return_id=str(rec.id)),
            quantity=1,
            actor=actor,
            notes=f"restocked from return {rec.id} (serial {rec.serial_number})",
            return_id=rec.id,
        )

    # ------------------------------------------------------------------
    # 写：退货决定
    # ------------------------------------------------------------------
    async def decide(
        self,
        session: AsyncSession,
        *,
        return_id: int,
        decision: ReturnDecision | str,
        actor: str,
        notes: Optional[str] = None,
    ) -> ReturnRecord:
        """
        对一条 pending 退货做出决定（单事务，只能决定一次）：

        - move_to_inventory：放回可售。尚未再入库则先建 1 件的 FROM_RETURN 批次；
          再把该批次里的再入库件 RETURNED → AVAILABLE（returned -1 / available +1）
        - keep_in_returns：只记录决定，库存不动
        两种决定都写一条台账事件（挂在原序列号上，reference_id = 退货单 id）。
        """
        try:
            d = ReturnDecision(decision)
        except ValueError as e:
            raise ValidationError(f"unknown return decision {decision!r}", decision=decision) from e
        if d is ReturnDecision.PENDING:
            raise ValidationError("decision must be move_to_inventory or keep_in_returns")
        if not (actor or "").strip():
            raise ValidationError("actor is required")

        rec, created_batch = await self.tx.run(
            session,
            fn=self._decide_tx,
            return_id=int(return_id),
            decision=d,
            actor=actor,
            notes=notes,
        )
        RETURN_DECISIONS.labels(decision=d.value).inc()
        if created_batch:
            BATCHES.labels(source=InventorySource.FROM_RETURN.value).inc()
        log.info(
            "return %s decided %s (restock batch %s) by %s",
            rec.id,
            d.value,
            rec.restock_batch_id,
            actor,
        )
        return rec

    async def _decide_tx(
        self,
        session: AsyncSession,
        *,
        return_id: int,
        decision: ReturnDecision,
        actor: str,
        notes: Optional[str],
    ) -> tuple[ReturnRecord, bool]:
        rec = await session.get(
            ReturnRecord, return_id, with_for_update=True, populate_existing=True
        )
        if rec is None:
            raise NotFoundError(f"return {return_id} not found", return_id=return_id)
        if rec.decision != ReturnDecision.PENDING.value:
            raise InvalidStateError(
                f"return {rec.id} has already been decided ({rec.decision})",
                return_id=rec.id,
                decision=rec.decision,
            )

        now = datetime.now(UTC)
        created_batch = False

        if decision is ReturnDecision.MOVE_TO_INVENTORY:
            if rec.restock_batch_id is None:
                original = await session.get(Item, rec.item_id)
                origin_batch = await session.get(Batch, original.batch_id)
                new_batch, _ = await self._restock_in_tx(
                    session,
                    rec=rec,
                    sku=origin_batch.sku,
                    product_name=origin_batch.product_name,
                    actor=actor,
                )
                rec.restock_batch_id = new_batch.id
                created_batch = True

            batch = await lock_batch(session, rec.restock_batch_id)
            unit = (
                await session.execute(
                    select(Item)
                    .where(Item.batch_id == batch.id)
                    .where(Item.status == ItemStatus.RETURNED.value)
                    .where(Item.delivery_id.is_(None))
                    .order_by(Item.id.asc())
                    .limit(1)
                    .with_for_update()
                )
            ).scalar_one_or_none()
            if unit is None:
                raise InvalidStateError(
                    f"restock batch {batch.id} has no returned unit to release",
                    return_id=rec.id,
                    batch_id=batch.id,
                )
            move_item_status(batch, unit, ItemStatus.AVAILABLE)
            action = LedgerAction.MOVED_TO_INVENTORY
            details = notes or f"return moved to inventory as item {unit.id} (batch {batch.id})"
        else:
            action = LedgerAction.KEPT_IN_RETURNS
            details = notes or "return kept in returns"

        await write_serial_event(
            session,
            serial_number=rec.serial_number,
            item_id=rec.item_id,
            action=action,
            action_by=actor,
            details=details,
            reference_id=rec.id,
            action_date=now,
        )

        rec.decision = decision.value
        rec.decision_date = now
        rec.decision_by = actor
        rec.decision_notes = notes
        await session.flush()
        return rec, created_batch

    # ------------------------------------------------------------------
    # 读：退货查询 / 统计
    # ------------------------------------------------------------------
    async def get_return(self, session: AsyncSession, *, return_id: int) -> ReturnRecord:
        return await self.tx.run(session, fn=self._get_tx, return_id=int(return_id))

    async def _get_tx(self, session: AsyncSession, *, return_id: int) -> ReturnRecord:
        rec = await session.get(ReturnRecord, return_id)
        if rec is None:
            raise NotFoundError(f"return {return_id} not found", return_id=return_id)
        return rec

    async def list_returns(
        self,
        session: AsyncSession,
        *,
        serial_number: Optional[str] = None,
        decision: Optional[ReturnDecision | str] = None,
    ) -> list[ReturnRecord]:
        """最新的在前；可按序列号、决定过滤（decision=pending 即待决队列）。"""
        sn = normalize_serial_number(serial_number) if serial_number is not None else None
        d: Optional[ReturnDecision] = None
        if decision is not None:
            try:
                d = ReturnDecision(decision)
            except ValueError as e:
                raise ValidationError(
                    f"unknown return decision {decision!r}", decision=decision
                ) from e
        return await self.tx.run(session, fn=self._list_tx, serial_number=sn, decision=d)

    async def _list_tx(
        self,
        session: AsyncSession,
        *,
        serial_number: Optional[str],
        decision: Optional[ReturnDecision],
    ) -> list[ReturnRecord]:
        stmt = select(ReturnRecord)
        if serial_number is not None:
            stmt = stmt.where(ReturnRecord.serial_number == serial_number)
        if decision is not None:
            stmt = stmt.where(ReturnRecord.decision == decision.value)
        stmt = stmt.order_by(ReturnRecord.received_date.desc(), ReturnRecord.id.desc())
        return list((await session.execute(stmt)).scalars().all())

    async def stats(self, session: AsyncSession) -> ReturnStats:
        return await self.tx.run(session, fn=self._stats_tx)

    async def _stats_tx(self, session: AsyncSession) -> ReturnStats:
        by_decision = dict(
            (
                await session.execute(
                    select(ReturnRecord.decision, func.count(ReturnRecord.id)).group_by(
                        ReturnRecord.decision
                    )
                )
            ).all()
        )
        by_condition: dict[str, int] = {}
        rows = await session.execute(
            select(ReturnRecord.condition, func.count(ReturnRecord.id)).group_by(
                ReturnRecord.condition
            )
        )
        for cond, n in rows.all():
            key = cond or "unknown"
            by_condition[key] = by_condition.get(key, 0) + int(n)
        restocked = (
            await session.execute(
                select(func.count(ReturnRecord.id)).where(ReturnRecord.restock_batch_id.is_not(None))
            )
        ).scalar_one()

        return ReturnStats(
            total=sum(by_decision.values()),
            pending=by_decision.get(ReturnDecision.PENDING.value, 0),
            moved_to_inventory=by_decision.get(ReturnDecision.MOVE_TO_INVENTORY.value, 0),
            kept_in_returns=by_decision.get(ReturnDecision.KEEP_IN_RETURNS.value, 0),
            restocked=int(restocked),
            by_condition=by_condition,
        )
