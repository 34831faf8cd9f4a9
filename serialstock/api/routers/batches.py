# serialstock/api/routers/batches.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.api.deps import get_session
from serialstock.schemas.batch import BatchCreated, BatchCreateIn, BatchOut, ItemOut
from serialstock.services.batch_allocation_service import BatchAllocationService
from serialstock.services.inventory_query_service import InventoryQueryService

router = APIRouter(prefix="/batches", tags=["batches"])

svc = BatchAllocationService()
query = InventoryQueryService()


@router.post("", response_model=BatchCreated, status_code=status.HTTP_201_CREATED)
async def create_batch(
    payload: BatchCreateIn,
    session: AsyncSession = Depends(get_session),
) -> BatchCreated:
    return await svc.create_batch(
        session,
        source=payload.source,
        quantity=payload.quantity,
        actor=payload.actor,
        pre_assigned_serials=payload.pre_assigned_serials,
        notes=payload.notes,
    )


@router.get("/{batch_id}", response_model=BatchOut)
async def get_batch(
    batch_id: int,
    session: AsyncSession = Depends(get_session),
) -> BatchOut:
    batch = await query.get_batch(session, batch_id=batch_id)
    return BatchOut.model_validate(batch)


@router.get("/{batch_id}/items", response_model=List[ItemOut])
async def list_batch_items(
    batch_id: int,
    session: AsyncSession = Depends(get_session),
) -> List[ItemOut]:
    items = await query.list_batch_items(session, batch_id=batch_id)
    return [ItemOut.model_validate(it) for it in items]
