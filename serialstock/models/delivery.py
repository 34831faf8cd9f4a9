# serialstock/models/delivery.py
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from serialstock.db.base import Base
from serialstock.models.enums import DeliveryStatus


class Delivery(Base):
    """
    交付记录：每次成功分配恰好一条，创建后不可变。
    收件人 / 面单信息按原样存 JSON，不做结构化。
    """

    __tablename__ = "deliveries"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    item_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False
    )
    batch_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("batches.id", ondelete="RESTRICT"), nullable=False
    )
    serial_number: Mapped[str] = mapped_column(sa.String(128), nullable=False)

    sku: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    product_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    customer_info: Mapped[dict[str, Any]] = mapped_column(sa.JSON, nullable=False, default=dict)
    shipping_label: Mapped[dict[str, Any] | None] = mapped_column(sa.JSON, nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    delivered_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=DeliveryStatus.DELIVERED.value
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        sa.Index("ix_deliveries_item", "item_id"),
        sa.Index("ix_deliveries_serial", "serial_number"),
    )

    def __repr__(self) -> str:
        return (
            f"<Delivery id={self.id} item={self.item_id} sn={self.serial_number} "
            f"by={self.delivered_by}>"
        )
