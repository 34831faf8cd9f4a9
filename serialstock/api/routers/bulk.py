# serialstock/api/routers/bulk.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.api.deps import get_session
from serialstock.schemas.bulk import BulkAssignIn, BulkOperationOut, BulkResult
from serialstock.services.bulk_assign_service import BulkAssignService

router = APIRouter(tags=["bulk-operations"])

svc = BulkAssignService()


@router.post("/batches/{batch_id}/serials/bulk", response_model=BulkResult)
async def bulk_assign_serials(
    batch_id: int,
    payload: BulkAssignIn,
    session: AsyncSession = Depends(get_session),
) -> BulkResult:
    # 单对失败不影响响应码：调用方根据 successful / errors 自行展示
    return await svc.bulk_assign(
        session,
        batch_id=batch_id,
        assignments=payload.assignments,
        actor=payload.actor,
        notes=payload.notes,
    )


@router.get("/bulk-operations/{operation_id}", response_model=BulkOperationOut)
async def get_bulk_operation(
    operation_id: int,
    session: AsyncSession = Depends(get_session),
) -> BulkOperationOut:
    op = await svc.get_operation(session, operation_id=operation_id)
    return BulkOperationOut.model_validate(op)
