# serialstock/models/serial_ledger.py
from __future__ import annotations

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from serialstock.db.base import Base


class SerialLedger(Base):
    """
    序列号台账（只增不改）

    action: assigned / delivered / returned / moved_to_inventory / kept_in_returns
    reference_id: 交付单 / 退货单等业务引用（可空）
    """

    __tablename__ = "serial_ledger"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    serial_number: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    item_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    action: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    action_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    action_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)

    details: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    reference_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)

    __table_args__ = (
        sa.Index("ix_serial_ledger_serial", "serial_number"),
        sa.Index("ix_serial_ledger_item", "item_id"),
        sa.Index("ix_serial_ledger_action_date", "action_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<SerialLedger {self.action} sn={self.serial_number} item={self.item_id} "
            f"by={self.action_by} ref={self.reference_id}>"
        )
