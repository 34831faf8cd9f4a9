# tests/services/test_delivery_service.py
from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.inventory import (
    assert_conservation,
    load_batch,
    load_items,
    load_ledger,
    receive,
)

from serialstock.schemas.delivery import CustomerInfo, DeliveryRequest, ShippingLabel
from serialstock.services.delivery_service import DeliveryService
from serialstock.services.errors import (
    DuplicateSerialNumberError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from serialstock.services.serial_assign_service import SerialAssignService


def _req(**kw) -> DeliveryRequest:
    kw.setdefault("customer_info", CustomerInfo(name="Alice", address="1 Main St"))
    return DeliveryRequest(**kw)


@pytest.mark.asyncio
async def test_fifo_delivery_then_serial_required(session: AsyncSession, async_session_maker):
    """
    收货 SKU1 × 3（SN1 预绑在最早那件）：
      1) 按 SKU 出库 → 取到 SN1，available 2 / delivered 1，序列号查询为 DELIVERED
      2) 再按 SKU 出库 → 取到无序列号的件，未提供序列号 → ValidationError，计数不变
    """
    created = await receive(session, sku="SKU1", qty=3, serials=["SN1"])
    svc = DeliveryService()

    res = await svc.deliver(
        session,
        request=_req(sku="SKU1", shipping_label=ShippingLabel(carrier="UPS"), tracking_number="1Z"),
        actor="u2",
    )
    assert res.serial_number == "SN1"
    assert res.item_id == created.item_ids[0]
    assert res.batch_id == created.batch_id
    assert res.sku == "SKU1"
    assert res.delivered_by == "u2"

    batch = await load_batch(async_session_maker, created.batch_id)
    assert (batch.available_quantity, batch.delivered_quantity) == (2, 1)

    validation = await SerialAssignService().validate(session, "SN1")
    assert validation.exists is True
    assert validation.current_status == "DELIVERED"
    assert validation.last_delivery_date is not None
    assert validation.item.delivery_id == res.delivery_id

    ledger = await load_ledger(async_session_maker, "SN1")
    assert [e.action for e in ledger] == ["assigned", "delivered"]
    assert ledger[-1].reference_id == str(res.delivery_id)

    with pytest.raises(ValidationError):
        await svc.deliver(session, request=_req(sku="SKU1"), actor="u2")

    batch = await load_batch(async_session_maker, created.batch_id)
    assert (batch.available_quantity, batch.delivered_quantity) == (2, 1)
    assert await svc.delivery_history_for_item(session, item_id=created.item_ids[1]) == []

    await assert_conservation(async_session_maker)


@pytest.mark.asyncio
async def test_serial_supplied_at_delivery_is_bound(session: AsyncSession, async_session_maker):
    created = await receive(session, sku="SKU1", qty=2)

    res = await DeliveryService().deliver(
        session, request=_req(sku="SKU1", serial_number=" SN-D "), actor="u2"
    )
    assert res.serial_number == "SN-D"
    assert res.item_id == created.item_ids[0]

    batch = await load_batch(async_session_maker, created.batch_id)
    assert batch.serial_numbers_assigned == 1
    assert batch.delivered_quantity == 1

    ledger = await load_ledger(async_session_maker, "SN-D")
    assert [e.action for e in ledger] == ["assigned", "delivered"]

    await assert_conservation(async_session_maker)


@pytest.mark.asyncio
async def test_supplied_serial_already_used_rolls_back(session: AsyncSession, async_session_maker):
    await receive(session, sku="OTHER", qty=1, serials=["SN-USED"])
    created = await receive(session, sku="SKU1", qty=1)

    with pytest.raises(DuplicateSerialNumberError):
        await DeliveryService().deliver(
            session, request=_req(sku="SKU1", serial_number="SN-USED"), actor="u2"
        )

    batch = await load_batch(async_session_maker, created.batch_id)
    assert (batch.available_quantity, batch.delivered_quantity) == (1, 0)
    assert batch.serial_numbers_assigned == 0
    await assert_conservation(async_session_maker)


@pytest.mark.asyncio
async def test_fifo_spans_batches_oldest_first(session: AsyncSession):
    old = await receive(session, sku="SKU2", qty=1, serials=["OLD-1"])
    await receive(session, sku="SKU2", qty=1, serials=["NEW-1"])
    svc = DeliveryService()

    available = await svc.get_available_items(session, sku="SKU2")
    assert [it.serial_number for it in available] == ["OLD-1", "NEW-1"]

    res = await svc.deliver(session, request=_req(sku="SKU2"), actor="u2")
    assert res.batch_id == old.batch_id
    assert res.serial_number == "OLD-1"

    available = await svc.get_available_items(session, sku="SKU2")
    assert [it.serial_number for it in available] == ["NEW-1"]


@pytest.mark.asyncio
async def test_deliver_by_batch_id(session: AsyncSession):
    await receive(session, sku="SKU3", qty=1, serials=["A-1"])
    second = await receive(session, sku="SKU3", qty=1, serials=["B-1"])

    res = await DeliveryService().deliver(
        session, request=_req(batch_id=second.batch_id), actor="u2"
    )
    assert res.serial_number == "B-1"


@pytest.mark.asyncio
async def test_no_available_item(session: AsyncSession):
    with pytest.raises(InsufficientStockError):
        await DeliveryService().deliver(session, request=_req(sku="NOPE"), actor="u2")


@pytest.mark.asyncio
async def test_available_items_requires_sku(session: AsyncSession):
    with pytest.raises(ValidationError):
        await DeliveryService().get_available_items(session, sku="  ")


@pytest.mark.asyncio
async def test_reserve_then_deliver_selected_item(session: AsyncSession, async_session_maker):
    created = await receive(session, sku="SKU4", qty=2, serials=["R-1", "R-2"])
    target = created.item_ids[1]
    svc = DeliveryService()

    item = await svc.reserve_item(session, item_id=target, actor="u3")
    assert item.status == "RESERVED"
    batch = await load_batch(async_session_maker, created.batch_id)
    assert (batch.available_quantity, batch.reserved_quantity) == (1, 1)

    # 预留件不参与 FIFO
    available = await svc.get_available_items(session, sku="SKU4")
    assert [it.id for it in available] == [created.item_ids[0]]

    with pytest.raises(InvalidStateError):
        await svc.reserve_item(session, item_id=target, actor="u3")

    res = await svc.deliver(session, request=_req(selected_item_id=target), actor="u3")
    assert res.item_id == target
    assert res.serial_number == "R-2"

    batch = await load_batch(async_session_maker, created.batch_id)
    assert (batch.available_quantity, batch.reserved_quantity, batch.delivered_quantity) == (
        1,
        0,
        1,
    )

    with pytest.raises(InvalidStateError):
        await svc.deliver(session, request=_req(selected_item_id=target), actor="u3")

    await assert_conservation(async_session_maker)


@pytest.mark.asyncio
async def test_selected_item_checks(session: AsyncSession):
    a = await receive(session, sku="SKU5", qty=1, serials=["S5-1"])
    b = await receive(session, sku="SKU6", qty=1, serials=["S6-1"])
    svc = DeliveryService()

    # 指定件不属于请求的批次
    with pytest.raises(ValidationError):
        await svc.deliver(
            session,
            request=_req(selected_item_id=a.item_ids[0], batch_id=b.batch_id),
            actor="u2",
        )
    # 指定件 SKU 与请求不符
    with pytest.raises(ValidationError):
        await svc.deliver(
            session, request=_req(selected_item_id=a.item_ids[0], sku="SKU6"), actor="u2"
        )
    # 请求序列号与件上已有序列号不符
    with pytest.raises(ValidationError):
        await svc.deliver(
            session,
            request=_req(selected_item_id=a.item_ids[0], serial_number="S6-1"),
            actor="u2",
        )
    with pytest.raises(NotFoundError):
        await svc.deliver(session, request=_req(selected_item_id=987654), actor="u2")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "request_kw,actor",
    [
        ({"sku": "SKU1", "quantity": 2}, "u2"),
        ({"sku": "SKU1"}, ""),
        ({}, "u2"),
    ],
)
async def test_deliver_rejects_bad_request(session: AsyncSession, request_kw, actor):
    with pytest.raises(ValidationError):
        await DeliveryService().deliver(session, request=_req(**request_kw), actor=actor)


@pytest.mark.asyncio
async def test_delivery_history_for_item(session: AsyncSession):
    created = await receive(session, sku="SKU7", qty=1, serials=["H-1"])
    svc = DeliveryService()
    res = await svc.deliver(session, request=_req(sku="SKU7"), actor="u2")

    history = await svc.delivery_history_for_item(session, item_id=created.item_ids[0])
    assert [d.id for d in history] == [res.delivery_id]
    assert history[0].customer_info == {"name": "Alice", "address": "1 Main St"}
    assert history[0].status == "delivered"

    with pytest.raises(NotFoundError):
        await svc.delivery_history_for_item(session, item_id=555_555)
