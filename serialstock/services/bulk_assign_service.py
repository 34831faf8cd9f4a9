# serialstock/services/bulk_assign_service.py
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Iterable, Optional, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.core.tx import TxManager
from serialstock.metrics import BULK_PAIRS
from serialstock.models.batch import Batch
from serialstock.models.bulk_operation import BulkOperation
from serialstock.models.enums import BulkOperationStatus, BulkOperationType
from serialstock.schemas.bulk import BulkResult, SerialAssignment
from serialstock.services.errors import InventoryError, NotFoundError, ValidationError
from serialstock.services.serial_assign_service import SerialAssignService

log = logging.getLogger(__name__)

AssignmentLike = Union[SerialAssignment, Tuple[int, str]]


def _as_pairs(assignments: Iterable[AssignmentLike]) -> list[tuple[int, str]]:
    pairs: list[tuple[int, str]] = []
    for a in assignments:
        if isinstance(a, SerialAssignment):
            pairs.append((int(a.item_id), a.serial_number))
        else:
            item_id, sn = a
            pairs.append((int(item_id), sn))
    return pairs


class BulkAssignService:
    """
    批量绑定序列号（逐件独立事务，非整体原子）：

      1) 先落 BulkOperation 信封（in_progress，列出全部目标 item_ids）
      2) 逐对调用 SerialAssignService.assign；单对失败只记录，不阻断、不回滚其他对
      3) 全部尝试完后一次性定稿为 completed + {successful, failed, errors}

    只有信封本身无法创建时才整体失败（批次不存在 / actor 缺失）。
    按请求顺序串行执行，台账顺序与请求顺序一致。
    """

    def __init__(
        self,
        assigner: Optional[SerialAssignService] = None,
        tx: Optional[TxManager] = None,
    ) -> None:
        self.tx = tx or TxManager()
        self.assigner = assigner or SerialAssignService(tx=self.tx)

    async def bulk_assign(
        self,
        session: AsyncSession,
        *,
        batch_id: int,
        assignments: Iterable[AssignmentLike],
        actor: str,
        notes: Optional[str] = None,
    ) -> BulkResult:
        if not (actor or "").strip():
            raise ValidationError("actor is required")
        pairs = _as_pairs(assignments)

        op_id = await self.tx.run(
            session,
            fn=self._open_envelope_tx,
            batch_id=int(batch_id),
            item_ids=[item_id for item_id, _ in pairs],
            actor=actor,
            notes=notes,
        )

        successful = 0
        errors: list[str] = []
        done = 0
        try:
            for item_id, sn in pairs:
                try:
                    await self.assigner.assign(
                        session,
                        item_id=item_id,
                        serial_number=sn,
                        actor=actor,
                        notes=notes,
                        expected_batch_id=int(batch_id),
                    )
                    successful += 1
                except InventoryError as e:
                    log.warning(
                        "bulk op %s: item %s serial %r failed: %s", op_id, item_id, sn, e.message
                    )
                    errors.append(f"item {item_id} ({sn}): {e.message}")
                except Exception as e:
                    # 存储 / 驱动层意外错误：只记这一对失败，其余对照常尝试
                    log.exception("bulk op %s: item %s serial %r crashed", op_id, item_id, sn)
                    errors.append(f"item {item_id} ({sn}): unexpected error: {e}")
                done += 1
        finally:
            # 循环被取消时，未走完的对也要记入结果，信封一定定稿
            for item_id, sn in pairs[done:]:
                errors.append(f"item {item_id} ({sn}): not completed")
            result = BulkResult(
                operation_id=op_id,
                successful=successful,
                failed=len(errors),
                errors=errors,
            )
            await self.tx.run(session, fn=self._finalize_tx, operation_id=op_id, result=result)
        BULK_PAIRS.labels(result="ok").inc(result.successful)
        BULK_PAIRS.labels(result="failed").inc(result.failed)

        log.info(
            "bulk op %s completed: batch=%s ok=%d failed=%d by %s",
            op_id,
            batch_id,
            result.successful,
            result.failed,
            actor,
        )
        return result

    async def _open_envelope_tx(
        self,
        session: AsyncSession,
        *,
        batch_id: int,
        item_ids: list[int],
        actor: str,
        notes: Optional[str],
    ) -> int:
        if await session.get(Batch, batch_id) is None:
            raise NotFoundError(f"batch {batch_id} not found", batch_id=batch_id)

        op = BulkOperation(
            type=BulkOperationType.SERIAL_NUMBER_ASSIGNMENT.value,
            batch_id=batch_id,
            item_ids=item_ids,
            status=BulkOperationStatus.IN_PROGRESS.value,
            created_by=actor,
            created_at=datetime.now(UTC),
            notes=notes,
        )
        session.add(op)
        await session.flush()
        return op.id

    async def _finalize_tx(
        self,
        session: AsyncSession,
        *,
        operation_id: int,
        result: BulkResult,
    ) -> None:
        op = await session.get(
            BulkOperation, operation_id, with_for_update=True, populate_existing=True
        )
        if op is None:
            raise NotFoundError(f"bulk operation {operation_id} not found", operation_id=operation_id)
        op.status = BulkOperationStatus.COMPLETED.value
        op.completed_at = datetime.now(UTC)
        op.successful = result.successful
        op.failed = result.failed
        op.errors = list(result.errors)

    async def get_operation(self, session: AsyncSession, *, operation_id: int) -> BulkOperation:
        return await self.tx.run(session, fn=self._get_tx, operation_id=int(operation_id))

    async def _get_tx(self, session: AsyncSession, *, operation_id: int) -> BulkOperation:
        op = await session.get(BulkOperation, operation_id)
        if op is None:
            raise NotFoundError(f"bulk operation {operation_id} not found", operation_id=operation_id)
        return op
