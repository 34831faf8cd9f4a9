# serialstock/models/batch.py
from __future__ import annotations

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from serialstock.db.base import Base
from serialstock.models.enums import InventorySource


class Batch(Base):
    """
    批次（一次收货事件一条），只承载聚合计数：

    守恒约束（DB 层 CHECK 兜底）：
        total = available + reserved + delivered + returned
        serial_numbers_assigned + serial_numbers_unassigned = total

    计数只允许在与触发它的 Item 变更同一个事务里读改写。
    """

    __tablename__ = "batches"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    sku: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    product_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    total_quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    available_quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    delivered_quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    returned_quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    source: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=InventorySource.NEW_ARRIVAL.value
    )
    # 来源单据 ID（包裹 / 退货）
    source_reference: Mapped[str] = mapped_column(sa.String(128), nullable=False, default="")

    received_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    received_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)

    serial_numbers_assigned: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    serial_numbers_unassigned: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    batch_notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    updated_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=True,
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        sa.CheckConstraint(
            "total_quantity = available_quantity + reserved_quantity"
            " + delivered_quantity + returned_quantity",
            name="ck_batches_qty_conservation",
        ),
        sa.CheckConstraint(
            "serial_numbers_assigned + serial_numbers_unassigned = total_quantity",
            name="ck_batches_serial_conservation",
        ),
        sa.CheckConstraint(
            "available_quantity >= 0 AND reserved_quantity >= 0"
            " AND delivered_quantity >= 0 AND returned_quantity >= 0",
            name="ck_batches_qty_non_negative",
        ),
        sa.Index("ix_batches_sku", "sku"),
        sa.Index("ix_batches_received_date", "received_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Batch id={self.id} sku={self.sku} total={self.total_quantity} "
            f"avail={self.available_quantity} rsv={self.reserved_quantity} "
            f"dlv={self.delivered_quantity} ret={self.returned_quantity} "
            f"sn={self.serial_numbers_assigned}/{self.total_quantity}>"
        )
