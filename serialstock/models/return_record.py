# serialstock/models/return_record.py
from __future__ import annotations

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from serialstock.db.base import Base
from serialstock.models.enums import ReturnDecision


class ReturnRecord(Base):
    """
    退货记录（UTC 入库）
    - item_id / delivery_id 指向被退回的原件及其交付单
    - restock_batch_id：再入库时新建的 FROM_RETURN 批次
    - decision：pending → move_to_inventory / keep_in_returns，只决定一次
    """

    __tablename__ = "returns"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    serial_number: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    item_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False
    )
    delivery_id: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    lpn_number: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    condition: Mapped[str | None] = mapped_column(sa.String(16), nullable=True)
    reason: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    received_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    received_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    restock_batch_id: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    decision: Mapped[str] = mapped_column(
        sa.String(32), nullable=False, default=ReturnDecision.PENDING.value
    )
    decision_date: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    decision_by: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    __table_args__ = (
        sa.Index("ix_returns_serial", "serial_number"),
        sa.Index("ix_returns_item", "item_id"),
        sa.Index("ix_returns_decision", "decision"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReturnRecord id={self.id} sn={self.serial_number!r} item={self.item_id} "
            f"restock={self.restock_batch_id} decision={self.decision}>"
        )
