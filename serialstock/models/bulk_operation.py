# serialstock/models/bulk_operation.py
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from serialstock.db.base import Base
from serialstock.models.enums import BulkOperationStatus, BulkOperationType


class BulkOperation(Base):
    """
    批量操作信封：

    - 处理开始前落一条 in_progress（列出全部目标 item_ids）
    - 全部逐件尝试完毕后一次性定稿为 completed（successful / failed / errors）
    """

    __tablename__ = "bulk_operations"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    type: Mapped[str] = mapped_column(
        sa.String(32),
        nullable=False,
        default=BulkOperationType.SERIAL_NUMBER_ASSIGNMENT.value,
    )
    batch_id: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    # 目标 item id（保持请求顺序）
    item_ids: Mapped[list[int]] = mapped_column(sa.JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=BulkOperationStatus.IN_PROGRESS.value
    )

    created_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    completed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    successful: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    failed: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    errors: Mapped[list[str] | None] = mapped_column(sa.JSON, nullable=True)

    __table_args__ = (sa.Index("ix_bulk_operations_batch", "batch_id"),)

    @property
    def results(self) -> dict[str, Any] | None:
        if self.status != BulkOperationStatus.COMPLETED.value:
            return None
        return {
            "successful": int(self.successful or 0),
            "failed": int(self.failed or 0),
            "errors": list(self.errors or []),
        }

    def __repr__(self) -> str:
        return (
            f"<BulkOperation id={self.id} type={self.type} status={self.status} "
            f"n={len(self.item_ids or [])} ok={self.successful} ng={self.failed}>"
        )
