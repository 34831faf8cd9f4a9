from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.models.enums import LedgerAction
from serialstock.models.serial_ledger import SerialLedger


async def write_serial_event(
    session: AsyncSession,
    *,
    serial_number: str,
    item_id: int,
    action: LedgerAction | str,
    action_by: str,
    details: Optional[str] = None,
    reference_id: Optional[str | int] = None,
    action_date: Optional[datetime] = None,
) -> int:
    """
    序列号台账写入（只增不改），返回新行 id。

    - 必须在调用方事务内执行，与触发它的 Item / Batch 变更同提交、同回滚；
    - reference_id 统一转字符串（交付单 / 退货单 id）。
    """
    stmt = (
        sa.insert(SerialLedger)
        .values(
            serial_number=serial_number,
            item_id=int(item_id),
            action=str(LedgerAction(action)),
            action_date=action_date or datetime.now(UTC),
            action_by=action_by,
            details=details,
            reference_id=None if reference_id is None else str(reference_id),
        )
        .returning(SerialLedger.id)
    )
    res = await session.execute(stmt)
    return int(res.scalar_one())
