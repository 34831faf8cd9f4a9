# serialstock/services/batch_allocation_service.py
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.core.tx import TxManager, is_unique_violation
from serialstock.metrics import BATCHES, SERIALS
from serialstock.models.batch import Batch
from serialstock.models.enums import STATUS_COUNTER, LedgerAction
from serialstock.models.item import Item
from serialstock.schemas.batch import BatchCreated
from serialstock.schemas.source import PackageSource, ReturnSource
from serialstock.services.errors import DuplicateSerialNumberError, ValidationError
from serialstock.services.ledger_writer import write_serial_event
from serialstock.services.serial_assign_service import normalize_serial_number

log = logging.getLogger(__name__)


def _prepare_serials(serials: Iterable[str], quantity: int) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for raw in serials or ():
        sn = normalize_serial_number(raw)
        if sn in seen:
            raise ValidationError(
                f"serial number {sn!r} is listed more than once",
                serial_number=sn,
            )
        seen.add(sn)
        out.append(sn)
    if len(out) > quantity:
        raise ValidationError(
            f"{len(out)} pre-assigned serial numbers exceed quantity {quantity}",
            quantity=quantity,
        )
    return out


class BatchAllocationService:
    """
    收货建批：一个事务内创建 1 条 Batch + quantity 条 Item。

    - 新到货（PackageSource）：Item 初始 AVAILABLE，available = quantity
    - 退货入库（ReturnSource）：Item 初始 RETURNED，returned = quantity
    - 前 len(pre_assigned_serials) 件直接绑定序列号，每件写一条 assigned 台账
    - 全有或全无：不会出现缺件的批次，也不会出现无主的 Item
    """

    def __init__(self, tx: Optional[TxManager] = None) -> None:
        self.tx = tx or TxManager()

    async def create_batch(
        self,
        session: AsyncSession,
        *,
        source: PackageSource | ReturnSource,
        quantity: int,
        actor: str,
        pre_assigned_serials: Sequence[str] = (),
        notes: Optional[str] = None,
    ) -> BatchCreated:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"quantity must be a positive integer, got {quantity!r}")
        if not (actor or "").strip():
            raise ValidationError("actor is required")
        serials = _prepare_serials(pre_assigned_serials, quantity)

        batch, items = await self.tx.run(
            session,
            fn=self.create_in_tx,
            source=source,
            quantity=quantity,
            actor=actor,
            serials=serials,
            notes=notes,
        )
        BATCHES.labels(source=batch.source).inc()
        if serials:
            SERIALS.labels(path="receipt").inc(len(serials))
        log.info(
            "batch %s created: sku=%s source=%s qty=%d serials=%d by %s",
            batch.id,
            batch.sku,
            batch.source,
            quantity,
            len(serials),
            actor,
        )
        return BatchCreated(batch_id=batch.id, item_ids=[it.id for it in items])

    async def create_in_tx(
        self,
        session: AsyncSession,
        *,
        source: PackageSource | ReturnSource,
        quantity: int,
        actor: str,
        serials: Sequence[str] = (),
        notes: Optional[str] = None,
        return_id: Optional[int] = None,
    ) -> tuple[Batch, list[Item]]:
        """不控事务：调用方（create_batch / 退货再入库）负责事务边界。"""
        if serials:
            taken = (
                await session.execute(
                    select(Item.serial_number).where(Item.serial_number.in_(list(serials))).limit(1)
                )
            ).scalar_one_or_none()
            if taken is not None:
                raise DuplicateSerialNumberError(taken)

        now = datetime.now(UTC)
        initial = source.initial_status

        counters = {col: 0 for col in STATUS_COUNTER.values()}
        counters[STATUS_COUNTER[initial]] = quantity

        batch = Batch(
            sku=source.sku,
            product_name=source.product_name or source.sku,
            total_quantity=quantity,
            source=source.inventory_source.value,
            source_reference=source.reference,
            received_date=now,
            received_by=actor,
            serial_numbers_assigned=len(serials),
            serial_numbers_unassigned=quantity - len(serials),
            batch_notes=notes,
            **counters,
        )
        session.add(batch)
        await session.flush()

        items: list[Item] = []
        for i in range(quantity):
            sn = serials[i] if i < len(serials) else None
            items.append(
                Item(
                    batch_id=batch.id,
                    serial_number=sn,
                    status=initial.value,
                    assigned_date=now if sn else None,
                    assigned_by=actor if sn else None,
                    return_id=return_id,
                    created_at=now,
                )
            )
        session.add_all(items)

        try:
            await session.flush()
        except IntegrityError as e:
            if is_unique_violation(e, "serial_number"):
                raise DuplicateSerialNumberError(", ".join(serials)) from e
            raise

        for it in items:
            if it.serial_number:
                await write_serial_event(
                    session,
                    serial_number=it.serial_number,
                    item_id=it.id,
                    action=LedgerAction.ASSIGNED,
                    action_by=actor,
                    details=f"assigned on receipt (batch {batch.id})",
                    reference_id=source.reference or None,
                    action_date=now,
                )

        return batch, items
