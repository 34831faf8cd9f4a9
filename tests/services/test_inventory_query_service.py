# tests/services/test_inventory_query_service.py
from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.inventory import receive, receive_return

from serialstock.schemas.delivery import DeliveryRequest
from serialstock.services.delivery_service import DeliveryService
from serialstock.services.errors import NotFoundError
from serialstock.services.inventory_query_service import InventoryQueryService


@pytest.mark.asyncio
async def test_empty_store(session: AsyncSession):
    q = InventoryQueryService()

    assert await q.summary_by_sku(session) == []

    stats = await q.stats(session)
    assert stats.total_batches == 0
    assert stats.total_items == 0
    assert stats.unique_skus == 0
    assert stats.serial_number_assignment_rate == 0.0


@pytest.mark.asyncio
async def test_summary_groups_by_sku(session: AsyncSession):
    await receive(session, sku="SKU1", qty=3, serials=["SN1"], product_name="Widget")
    await receive_return(session, sku="SKU1", qty=1)
    await receive(session, sku="SKU2", qty=2, serials=["A", "B"])

    summary = await InventoryQueryService().summary_by_sku(session)
    assert [s.sku for s in summary] == ["SKU1", "SKU2"]

    sku1, sku2 = summary
    assert sku1.product_name == "Widget"
    assert sku1.total_items == 4
    assert sku1.total_available == 3
    assert sku1.items_with_serial == 1
    assert sku1.items_without_serial == 3
    assert (sku1.sources.new_arrivals, sku1.sources.from_returns) == (1, 1)
    assert len(sku1.batches) == 2

    assert (sku2.total_items, sku2.total_available) == (2, 2)
    assert (sku2.items_with_serial, sku2.items_without_serial) == (2, 0)
    assert (sku2.sources.new_arrivals, sku2.sources.from_returns) == (1, 0)


@pytest.mark.asyncio
async def test_stats_partitions_items_by_status(session: AsyncSession):
    await receive(session, sku="SKU1", qty=3, serials=["SN1"])
    await receive_return(session, sku="SKU1", qty=1)
    second = await receive(session, sku="SKU2", qty=2, serials=["A", "B"])

    svc = DeliveryService()
    await svc.deliver(session, request=DeliveryRequest(sku="SKU1"), actor="u2")
    await svc.reserve_item(session, item_id=second.item_ids[1], actor="u2")

    stats = await InventoryQueryService().stats(session)
    assert stats.total_batches == 3
    assert stats.new_arrivals == 2
    assert stats.from_returns == 1
    assert stats.total_items == 6
    assert stats.total_available_items == 3
    assert stats.total_reserved_items == 1
    assert stats.total_delivered_items == 1
    assert stats.total_returned_items == 1
    assert stats.unique_skus == 2
    assert stats.items_with_serial_numbers == 3
    assert stats.items_without_serial_numbers == 3
    assert stats.serial_number_assignment_rate == 50.0


@pytest.mark.asyncio
async def test_assignment_rate_is_rounded(session: AsyncSession):
    await receive(session, qty=3, serials=["ONLY"])
    stats = await InventoryQueryService().stats(session)
    assert stats.serial_number_assignment_rate == 33.33


@pytest.mark.asyncio
async def test_batch_and_item_lookups(session: AsyncSession):
    created = await receive(session, sku="SKU1", qty=3)
    q = InventoryQueryService()

    batch = await q.get_batch(session, batch_id=created.batch_id)
    assert batch.sku == "SKU1"

    items = await q.list_batch_items(session, batch_id=created.batch_id)
    assert [it.id for it in items] == created.item_ids

    item = await q.get_item(session, item_id=created.item_ids[0])
    assert item.batch_id == created.batch_id

    with pytest.raises(NotFoundError):
        await q.get_batch(session, batch_id=999)
    with pytest.raises(NotFoundError):
        await q.list_batch_items(session, batch_id=999)
    with pytest.raises(NotFoundError):
        await q.get_item(session, item_id=999)
