# serialstock/models/item.py
from __future__ import annotations

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from serialstock.db.base import Base
from serialstock.models.enums import ItemStatus


class Item(Base):
    """
    单件（一件实物一条），归属一个 Batch：

        serial_number   可空；一旦非空，全库唯一（uq_items_serial_number 在提交时兜底）
        status          AVAILABLE / RESERVED / DELIVERED / RETURNED
        assigned_*      仅在绑定序列号后出现
        delivery_id     出库后回填
        return_id       来源于退货时回填
    """

    __tablename__ = "items"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    batch_id: Mapped[int] = mapped_column(
        sa.Integer,
        sa.ForeignKey("batches.id", ondelete="RESTRICT"),
        nullable=False,
    )

    serial_number: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)

    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=ItemStatus.AVAILABLE.value
    )

    assigned_date: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)

    delivery_id: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    return_id: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=True,
        onupdate=lambda: datetime.now(UTC),
    )

    notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    __table_args__ = (
        # NULL 不参与唯一判断（PG / SQLite 一致）
        sa.UniqueConstraint("serial_number", name="uq_items_serial_number"),
        sa.Index("ix_items_batch_id", "batch_id"),
        # FIFO 选件：status + 创建顺序
        sa.Index("ix_items_status_created", "status", "created_at", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Item id={self.id} batch={self.batch_id} sn={self.serial_number!r} "
            f"status={self.status}>"
        )
