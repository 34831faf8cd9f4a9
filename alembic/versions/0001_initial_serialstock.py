"""initial serialstock schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "batches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("available_quantity", sa.Integer(), nullable=False),
        sa.Column("reserved_quantity", sa.Integer(), nullable=False),
        sa.Column("delivered_quantity", sa.Integer(), nullable=False),
        sa.Column("returned_quantity", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("source_reference", sa.String(length=128), nullable=False),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_by", sa.String(length=64), nullable=False),
        sa.Column("serial_numbers_assigned", sa.Integer(), nullable=False),
        sa.Column("serial_numbers_unassigned", sa.Integer(), nullable=False),
        sa.Column("batch_notes", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        # 守恒：四态计数之和 = 总数；已绑 + 未绑 = 总数
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
    )
    op.create_index("ix_batches_sku", "batches", ["sku"])
    op.create_index("ix_batches_received_date", "batches", ["received_date"])

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "batch_id",
            sa.Integer(),
            sa.ForeignKey("batches.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("serial_number", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("assigned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_by", sa.String(length=64), nullable=True),
        sa.Column("delivery_id", sa.Integer(), nullable=True),
        sa.Column("return_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        # 全局唯一（NULL 不参与比较）：并发绑定同一序列号时由它在提交前兜底
        sa.UniqueConstraint("serial_number", name="uq_items_serial_number"),
    )
    op.create_index("ix_items_batch_id", "items", ["batch_id"])
    op.create_index("ix_items_status_created", "items", ["status", "created_at", "id"])

    op.create_table(
        "serial_ledger",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("serial_number", sa.String(length=128), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("action_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("action_by", sa.String(length=64), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_serial_ledger_serial", "serial_ledger", ["serial_number"])
    op.create_index("ix_serial_ledger_item", "serial_ledger", ["item_id"])
    op.create_index("ix_serial_ledger_action_date", "serial_ledger", ["action_date"])

    op.create_table(
        "bulk_operations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("batch_id", sa.Integer(), nullable=True),
        sa.Column("item_ids", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("successful", sa.Integer(), nullable=True),
        sa.Column("failed", sa.Integer(), nullable=True),
        sa.Column("errors", sa.JSON(), nullable=True),
    )
    op.create_index("ix_bulk_operations_batch", "bulk_operations", ["batch_id"])

    op.create_table(
        "deliveries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("items.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "batch_id",
            sa.Integer(),
            sa.ForeignKey("batches.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("serial_number", sa.String(length=128), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("customer_info", sa.JSON(), nullable=False),
        sa.Column("shipping_label", sa.JSON(), nullable=True),
        sa.Column("tracking_number", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("delivered_by", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_deliveries_item", "deliveries", ["item_id"])
    op.create_index("ix_deliveries_serial", "deliveries", ["serial_number"])

    op.create_table(
        "returns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("serial_number", sa.String(length=128), nullable=False),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("items.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("delivery_id", sa.Integer(), nullable=True),
        sa.Column("lpn_number", sa.String(length=64), nullable=True),
        sa.Column("tracking_number", sa.String(length=128), nullable=True),
        sa.Column("condition", sa.String(length=16), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("received_by", sa.String(length=64), nullable=False),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("restock_batch_id", sa.Integer(), nullable=True),
        sa.Column("decision", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("decision_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_by", sa.String(length=64), nullable=True),
        sa.Column("decision_notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_returns_serial", "returns", ["serial_number"])
    op.create_index("ix_returns_item", "returns", ["item_id"])
    op.create_index("ix_returns_decision", "returns", ["decision"])


def downgrade() -> None:
    op.drop_index("ix_returns_decision", table_name="returns")
    op.drop_index("ix_returns_item", table_name="returns")
    op.drop_index("ix_returns_serial", table_name="returns")
    op.drop_table("returns")

    op.drop_index("ix_deliveries_serial", table_name="deliveries")
    op.drop_index("ix_deliveries_item", table_name="deliveries")
    op.drop_table("deliveries")

    op.drop_index("ix_bulk_operations_batch", table_name="bulk_operations")
    op.drop_table("bulk_operations")

    op.drop_index("ix_serial_ledger_action_date", table_name="serial_ledger")
    op.drop_index("ix_serial_ledger_item", table_name="serial_ledger")
    op.drop_index("ix_serial_ledger_serial", table_name="serial_ledger")
    op.drop_table("serial_ledger")

    op.drop_index("ix_items_status_created", table_name="items")
    op.drop_index("ix_items_batch_id", table_name="items")
    op.drop_table("items")

    op.drop_index("ix_batches_received_date", table_name="batches")
    op.drop_index("ix_batches_sku", table_name="batches")
    op.drop_table("batches")
