# tests/services/test_bulk_assign_service.py
from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.inventory import assert_conservation, load_batch, load_items, receive

from serialstock.schemas.bulk import SerialAssignment
from serialstock.services.bulk_assign_service import BulkAssignService
from serialstock.services.errors import NotFoundError, ValidationError
from serialstock.services.serial_assign_service import SerialAssignService


@pytest.mark.asyncio
async def test_one_bad_pair_does_not_block_the_rest(session: AsyncSession, async_session_maker):
    """
    5 对绑定，第 3 对复用已存在的序列号：
      - successful=4 / failed=1，errors 里点名该序列号
      - 其余 4 件已绑定，失败那件保持无序列号
      - 操作记录定稿为 completed，结果可按 id 取回
    """
    await receive(session, sku="OTHER", qty=1, serials=["SN-TAKEN"])
    created = await receive(session, sku="SKU-B", qty=5)
    ids = created.item_ids

    serials = ["B-1", "B-2", "SN-TAKEN", "B-4", "B-5"]
    svc = BulkAssignService()
    result = await svc.bulk_assign(
        session,
        batch_id=created.batch_id,
        assignments=[SerialAssignment(item_id=i, serial_number=sn) for i, sn in zip(ids, serials)],
        actor="u1",
        notes="shelf scan",
    )

    assert result.successful == 4
    assert result.failed == 1
    assert len(result.errors) == 1
    assert "SN-TAKEN" in result.errors[0]
    assert str(ids[2]) in result.errors[0]
    assert result.all_failed is False

    items = {it.id: it for it in await load_items(async_session_maker, created.batch_id)}
    assert [items[i].serial_number for i in ids] == ["B-1", "B-2", None, "B-4", "B-5"]

    batch = await load_batch(async_session_maker, created.batch_id)
    assert batch.serial_numbers_assigned == 4
    assert batch.serial_numbers_unassigned == 1

    op = await svc.get_operation(session, operation_id=result.operation_id)
    assert op.status == "completed"
    assert op.item_ids == ids
    assert op.created_by == "u1"
    assert op.completed_at is not None
    assert op.results == {"successful": 4, "failed": 1, "errors": result.errors}

    await assert_conservation(async_session_maker)


@pytest.mark.asyncio
async def test_bulk_accepts_plain_pairs_and_reports_all_failed(session: AsyncSession):
    created = await receive(session, qty=2, serials=["S-1", "S-2"])

    result = await BulkAssignService().bulk_assign(
        session,
        batch_id=created.batch_id,
        assignments=[(created.item_ids[0], "S-9"), (created.item_ids[1], "S-1")],
        actor="u1",
    )
    # 第一件已有序列号 / 第二对序列号已被占用
    assert result.successful == 0
    assert result.failed == 2
    assert result.all_failed is True


@pytest.mark.asyncio
async def test_item_outside_batch_is_a_pair_failure(session: AsyncSession, async_session_maker):
    a = await receive(session, sku="A", qty=1)
    b = await receive(session, sku="B", qty=1)

    result = await BulkAssignService().bulk_assign(
        session,
        batch_id=a.batch_id,
        assignments=[(a.item_ids[0], "A-1"), (b.item_ids[0], "B-1")],
        actor="u1",
    )
    assert (result.successful, result.failed) == (1, 1)
    assert (await load_items(async_session_maker, b.batch_id))[0].serial_number is None


@pytest.mark.asyncio
async def test_missing_batch_fails_whole_call(session: AsyncSession):
    with pytest.raises(NotFoundError):
        await BulkAssignService().bulk_assign(
            session, batch_id=424242, assignments=[(1, "X")], actor="u1"
        )


@pytest.mark.asyncio
async def test_missing_actor_fails_whole_call(session: AsyncSession):
    created = await receive(session, qty=1)
    with pytest.raises(ValidationError):
        await BulkAssignService().bulk_assign(
            session, batch_id=created.batch_id, assignments=[(created.item_ids[0], "X")], actor=""
        )


@pytest.mark.asyncio
async def test_unknown_operation(session: AsyncSession):
    with pytest.raises(NotFoundError):
        await BulkAssignService().get_operation(session, operation_id=1)


class _FlakyStoreAssigner(SerialAssignService):
    """指定 item 在存储层抛出非业务异常。"""

    def __init__(self, broken_item_id: int) -> None:
        super().__init__()
        self.broken_item_id = broken_item_id

    async def assign(self, session: AsyncSession, *, item_id: int, **kwargs):
        if item_id == self.broken_item_id:
            raise RuntimeError("connection reset by peer")
        return await super().assign(session, item_id=item_id, **kwargs)


@pytest.mark.asyncio
async def test_unexpected_pair_error_is_recorded_and_envelope_completes(
    session: AsyncSession, async_session_maker
):
    created = await receive(session, sku="SKU-B", qty=3)
    first, broken, last = created.item_ids
    svc = BulkAssignService(assigner=_FlakyStoreAssigner(broken))

    result = await svc.bulk_assign(
        session,
        batch_id=created.batch_id,
        assignments=[(first, "F-1"), (broken, "F-2"), (last, "F-3")],
        actor="u1",
    )

    assert (result.successful, result.failed) == (2, 1)
    assert str(broken) in result.errors[0]
    assert "connection reset by peer" in result.errors[0]

    items = {it.id: it.serial_number for it in await load_items(async_session_maker, created.batch_id)}
    assert items == {first: "F-1", broken: None, last: "F-3"}

    op = await svc.get_operation(session, operation_id=result.operation_id)
    assert op.status == "completed"
    assert op.results == {"successful": 2, "failed": 1, "errors": result.errors}

    await assert_conservation(async_session_maker)


@pytest.mark.asyncio
async def test_out_of_range_item_id_does_not_stall_the_operation(
    session: AsyncSession, async_session_maker
):
    created = await receive(session, sku="SKU-B", qty=1)
    svc = BulkAssignService()

    result = await svc.bulk_assign(
        session,
        batch_id=created.batch_id,
        assignments=[(2**70, "X1"), (created.item_ids[0], "X2")],
        actor="u1",
    )

    assert (result.successful, result.failed) == (1, 1)
    assert str(2**70) in result.errors[0]
    assert (await load_items(async_session_maker, created.batch_id))[0].serial_number == "X2"

    op = await svc.get_operation(session, operation_id=result.operation_id)
    assert op.status == "completed"
    assert op.completed_at is not None


class _RacingAssigner(SerialAssignService):
    async def ensure_serial_free(self, session: AsyncSession, serial_number: str) -> None:
        return None


@pytest.mark.asyncio
async def test_raced_duplicate_is_a_recorded_failure(session: AsyncSession, async_session_maker):
    await receive(session, sku="OTHER", qty=1, serials=["SN-TAKEN"])
    created = await receive(session, sku="SKU-B", qty=2)
    a, b = created.item_ids
    svc = BulkAssignService(assigner=_RacingAssigner())

    result = await svc.bulk_assign(
        session,
        batch_id=created.batch_id,
        assignments=[(a, "SN-TAKEN"), (b, "R-2")],
        actor="u1",
    )

    assert (result.successful, result.failed) == (1, 1)
    assert "already exists" in result.errors[0]
    items = {it.id: it.serial_number for it in await load_items(async_session_maker, created.batch_id)}
    assert items == {a: None, b: "R-2"}
    await assert_conservation(async_session_maker)
